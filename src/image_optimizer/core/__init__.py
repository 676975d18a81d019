"""Core pipeline components for the image optimizer."""

from .logging_config import configure_logging, get_logger, setup_logger
from .exceptions import (
    OptimizerError,
    StorageError,
    BlobNotFoundError,
    QueueError,
    ConfigurationError,
)
from .models import (
    BlobEvent,
    BlobProperties,
    BlobRef,
    DecodeFailure,
    HandleResult,
    ImageFormat,
    OptimizationMode,
    OptimizedImage,
    Outcome,
    PipelineConfig,
    RawImage,
    TransformConfig,
    TransformFailure,
)

__all__ = [
    "BlobEvent",
    "BlobProperties",
    "BlobRef",
    "DecodeFailure",
    "HandleResult",
    "ImageFormat",
    "OptimizationMode",
    "OptimizedImage",
    "Outcome",
    "PipelineConfig",
    "RawImage",
    "TransformConfig",
    "TransformFailure",
    "setup_logger",
    "get_logger",
    "configure_logging",
    "OptimizerError",
    "StorageError",
    "BlobNotFoundError",
    "QueueError",
    "ConfigurationError",
]
