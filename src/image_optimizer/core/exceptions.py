"""Custom exceptions for the image optimizer."""

from __future__ import annotations


class OptimizerError(Exception):
    """Base exception for all image optimizer errors."""


class StorageError(OptimizerError):
    """Error raised for blob storage failures.

    ``retryable`` marks faults that a later attempt may not hit again
    (throttling, timeouts, connection resets).
    """

    def __init__(self, message: str, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class BlobNotFoundError(StorageError):
    """Error raised when a blob or its container does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=False)


class QueueError(OptimizerError):
    """Error raised for queue transport failures."""


class ConfigurationError(OptimizerError):
    """Error raised for invalid configuration options."""
