"""Observability utilities: per-message log context and handling metrics."""

import logging
import uuid
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field, replace
from enum import Enum

from .logging_config import get_logger


class LogLevel(Enum):
    """Log levels for structured logging."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass
class LogContext:
    """Context carried by every log line of one message's handling."""

    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    operation: str = ""
    component: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def with_operation(self, operation: str) -> "LogContext":
        """Same message, next pipeline step."""
        return replace(self, operation=operation, metadata=dict(self.metadata))

    def with_metadata(self, **kwargs: Any) -> "LogContext":
        """Same message, with extra fields rendered on every line."""
        return replace(self, metadata={**self.metadata, **kwargs})


class StructuredLogger:
    """Logger that renders a LogContext into each line.

    Lines look like
    ``[download] [3f2a9c01b7de] Downloaded source blob (blob=images/a.png, bytes=1024)``.
    """

    def __init__(self, name: str = "image-optimizer.pipeline", level: Optional[int] = None):
        self._logger = get_logger(name)
        if level is not None:
            self._logger.setLevel(level)

    @staticmethod
    def format_message(
        message: str, context: Optional[LogContext] = None, **kwargs: Any
    ) -> str:
        if context is None:
            if not kwargs:
                return message
            extras = ", ".join(f"{k}={v}" for k, v in kwargs.items())
            return f"{message} ({extras})"

        formatted = f"[{context.correlation_id}] {message}"
        if context.operation:
            formatted = f"[{context.operation}] {formatted}"

        fields = {**context.metadata, **kwargs}
        if fields:
            formatted = f"{formatted} ({', '.join(f'{k}={v}' for k, v in fields.items())})"
        return formatted

    def _log(
        self,
        level: LogLevel,
        message: str,
        context: Optional[LogContext] = None,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        self._logger.log(
            getattr(logging, level.value),
            self.format_message(message, context, **kwargs),
            exc_info=exc_info,
        )

    def debug(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(LogLevel.DEBUG, message, context, **kwargs)

    def info(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        """Log info message."""
        self._log(LogLevel.INFO, message, context, **kwargs)

    def warning(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(LogLevel.WARNING, message, context, **kwargs)

    def error(
        self,
        message: str,
        context: Optional[LogContext] = None,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        """Log error message, with the active traceback if ``exc_info``."""
        self._log(LogLevel.ERROR, message, context, exc_info=exc_info, **kwargs)


@dataclass
class HandlingMetric:
    """Timing and outcome of one message handling."""

    operation: str
    start_time: float
    end_time: float
    success: bool
    outcome: str = ""
    error_message: Optional[str] = None

    @property
    def duration(self) -> float:
        """Operation duration in seconds."""
        return self.end_time - self.start_time

    @property
    def duration_ms(self) -> float:
        """Operation duration in milliseconds."""
        return self.duration * 1000


class MetricsCollector:
    """In-process collector of handling metrics."""

    def __init__(self) -> None:
        self._metrics: List[HandlingMetric] = []

    def record_metric(self, metric: HandlingMetric) -> None:
        self._metrics.append(metric)

    def get_metrics(self, operation: Optional[str] = None) -> List[HandlingMetric]:
        """Get recorded metrics, optionally filtered by operation."""
        if operation:
            return [m for m in self._metrics if m.operation == operation]
        return self._metrics.copy()

    def get_summary(self, operation: Optional[str] = None) -> Dict[str, Any]:
        """Summary statistics, including a count per outcome."""
        metrics = self.get_metrics(operation)

        if not metrics:
            return {}

        durations = [m.duration for m in metrics]
        successful = [m for m in metrics if m.success]

        outcomes: Dict[str, int] = {}
        for metric in metrics:
            if metric.outcome:
                outcomes[metric.outcome] = outcomes.get(metric.outcome, 0) + 1

        return {
            "total_operations": len(metrics),
            "successful_operations": len(successful),
            "failed_operations": len(metrics) - len(successful),
            "success_rate": len(successful) / len(metrics),
            "avg_duration": sum(durations) / len(durations),
            "max_duration": max(durations),
            "outcomes": outcomes,
        }

    def clear_metrics(self) -> None:
        self._metrics.clear()
