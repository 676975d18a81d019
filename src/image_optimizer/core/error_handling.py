# src/image_optimizer/core/error_handling.py

import asyncio
import functools
import logging

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
)
from botocore.exceptions import BotoCoreError, ClientError as BotocoreClientError

from .exceptions import BlobNotFoundError, OptimizerError, QueueError, StorageError

NOT_FOUND_S3_ERROR_CODES = ("NoSuchKey", "NoSuchBucket", "NotFound", "404")
RETRYABLE_S3_ERROR_CODES = (
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "RequestTimeout",
    "RequestTimeTooSkewed",
    "InternalError",
    "ServiceUnavailable",
)


def _is_retryable_status(status_code):
    return status_code is None or status_code == 429 or status_code >= 500


def _translate_client_error(operation, error):
    code = error.response.get("Error", {}).get("Code", "")
    status_code = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    if code in NOT_FOUND_S3_ERROR_CODES or status_code == 404:
        return BlobNotFoundError(f"{operation}: {code or 'not found'}")
    retryable = code in RETRYABLE_S3_ERROR_CODES or _is_retryable_status(status_code)
    return StorageError(f"S3 operation {operation} failed: {error}", retryable=retryable)


def _translate_azure_error(operation, error):
    if isinstance(error, ResourceNotFoundError):
        return BlobNotFoundError(f"{operation}: {error.reason or 'not found'}")
    if isinstance(error, ClientAuthenticationError):
        return StorageError(f"Azure operation {operation} was not authorized: {error}", retryable=False)
    if isinstance(error, HttpResponseError):
        return StorageError(
            f"Azure operation {operation} failed: {error}",
            retryable=_is_retryable_status(error.status_code),
        )
    return StorageError(f"Azure operation {operation} failed: {error}")


def translate_storage_errors(func):
    """
    Decorator for blob store coroutines that maps SDK exceptions onto
    StorageError / BlobNotFoundError.

    Errors the pipeline already understands pass through untouched.
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__ + '.' + func.__name__)
        try:
            return await func(*args, **kwargs)
        except OptimizerError:
            raise
        except (BotocoreClientError, BotoCoreError, AzureError, asyncio.TimeoutError, ConnectionError) as e:
            if isinstance(e, BotocoreClientError):
                translated = _translate_client_error(func.__name__, e)
            elif isinstance(e, BotoCoreError):
                translated = StorageError(f"S3 operation {func.__name__} failed: {e}")
            elif isinstance(e, AzureError):
                translated = _translate_azure_error(func.__name__, e)
            else:
                translated = StorageError(
                    f"Storage operation {func.__name__} timed out or lost its connection: {e!r}"
                )
            if not isinstance(translated, BlobNotFoundError):
                logger.warning(f"Storage operation '{func.__name__}' failed: {translated}")
            raise translated from e

    return wrapper


def retry_storage_operation(max_attempts=3, initial_delay=0.5, backoff_factor=2.0):
    """
    Decorator to retry blob store coroutines with exponential backoff.

    Only StorageErrors flagged retryable are retried; once attempts run out
    the last error propagates so the queue can redeliver the message.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            logger = logging.getLogger(func.__module__ + '.' + func.__name__)
            delay = initial_delay
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except StorageError as e:
                    if not e.retryable:
                        raise
                    if attempt >= max_attempts:
                        logger.error(
                            f"Storage operation '{func.__name__}' failed after {max_attempts} attempts: {e}"
                        )
                        raise
                    logger.info(
                        f"Storage operation '{func.__name__}' failed. Attempt {attempt}/{max_attempts}. "
                        f"Retrying in {delay:.2f}s. Error: {e}"
                    )
                    await asyncio.sleep(delay)
                    delay *= backoff_factor
        return wrapper
    return decorator


def translate_queue_errors(func):
    """
    Decorator for queue adapter coroutines that maps SDK exceptions onto
    QueueError.
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except OptimizerError:
            raise
        except (BotocoreClientError, BotoCoreError, AzureError, asyncio.TimeoutError, ConnectionError) as e:
            raise QueueError(f"Queue operation {func.__name__} failed: {e}") from e

    return wrapper
