"""Logging setup for the image optimizer worker."""

import os
import sys
import logging
from typing import Optional

ROOT_LOGGER_NAME = "image-optimizer"

LOG_FORMATS = {
    "structured": (
        "%(asctime)s | %(name)s | %(levelname)-8s | "
        "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s"
    ),
    "simple": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# SDK loggers that log every HTTP request at INFO
NOISY_SDK_LOGGERS = (
    "azure.core.pipeline.policies.http_logging_policy",
    "botocore",
    "aiobotocore",
)


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    value = logging.getLevelName(name)
    # getLevelName returns a string for unknown names
    return value if isinstance(value, int) else logging.INFO


def _build_formatter(format_type: str) -> logging.Formatter:
    chosen = os.getenv("LOG_FORMAT", format_type).lower()
    if chosen == "structured":
        return logging.Formatter(LOG_FORMATS["structured"], datefmt=DATE_FORMAT)
    return logging.Formatter(LOG_FORMATS["simple"])


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: Optional[str] = None,
    format_type: str = "structured",
) -> logging.Logger:
    """
    Give ``name`` a single stdout handler.

    Args:
        name: Logger name
        level: Level name; falls back to LOG_LEVEL, then INFO
        format_type: "structured" or "simple"; LOG_FORMAT takes precedence

    Returns:
        The configured logger. Calling again updates the level but never
        adds a second handler.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_build_formatter(format_type))
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Return the logger for ``name``.

    Component loggers (``image-optimizer.<component>``) have no handler of
    their own and propagate to the top-level logger, which is set up on
    first use and otherwise left as ``configure_logging`` made it.
    """
    if name.startswith(ROOT_LOGGER_NAME + "."):
        if not logging.getLogger(ROOT_LOGGER_NAME).handlers:
            setup_logger(ROOT_LOGGER_NAME)
        return logging.getLogger(name)
    return setup_logger(name)


def configure_logging(level: Optional[str] = None, format_type: str = "structured") -> logging.Logger:
    """Reset the top-level logger for a worker process and quiet the SDKs."""
    top_level = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(top_level.handlers):
        top_level.removeHandler(handler)

    top_level = setup_logger(ROOT_LOGGER_NAME, level=level, format_type=format_type)

    for name in NOISY_SDK_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return top_level
