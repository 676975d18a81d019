# tests/core/test_error_handling.py

import asyncio

import pytest
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
    ServiceRequestError,
)
from botocore.exceptions import ClientError as BotocoreClientError, EndpointConnectionError

from image_optimizer.core.exceptions import (
    BlobNotFoundError,
    ConfigurationError,
    QueueError,
    StorageError,
)
from image_optimizer.core.error_handling import (
    retry_storage_operation,
    translate_queue_errors,
    translate_storage_errors,
)


def _client_error(code, status_code):
    return BotocoreClientError(
        {
            "Error": {"Code": code, "Message": "simulated"},
            "ResponseMetadata": {"HTTPStatusCode": status_code},
        },
        "GetObject",
    )


def _raising(error):
    @translate_storage_errors
    async def download():
        raise error

    return download


# --- translate_storage_errors: S3 ---

@pytest.mark.parametrize("code,status_code", [("NoSuchKey", 404), ("NoSuchBucket", 404), ("404", 404)])
def test_s3_not_found_becomes_blob_not_found(code, status_code):
    with pytest.raises(BlobNotFoundError) as exc_info:
        asyncio.run(_raising(_client_error(code, status_code))())

    assert exc_info.value.retryable is False
    assert isinstance(exc_info.value.__cause__, BotocoreClientError)


@pytest.mark.parametrize("code,status_code", [("SlowDown", 503), ("InternalError", 500), ("Throttling", 429)])
def test_s3_throttling_and_server_errors_are_retryable(code, status_code):
    with pytest.raises(StorageError) as exc_info:
        asyncio.run(_raising(_client_error(code, status_code))())

    assert not isinstance(exc_info.value, BlobNotFoundError)
    assert exc_info.value.retryable is True


def test_s3_access_denied_is_not_retryable():
    with pytest.raises(StorageError) as exc_info:
        asyncio.run(_raising(_client_error("AccessDenied", 403))())

    assert exc_info.value.retryable is False
    assert "download" in str(exc_info.value)


def test_botocore_connection_error_is_retryable():
    error = EndpointConnectionError(endpoint_url="http://localhost:4566")

    with pytest.raises(StorageError) as exc_info:
        asyncio.run(_raising(error)())

    assert exc_info.value.retryable is True


# --- translate_storage_errors: Azure ---

def test_azure_not_found_becomes_blob_not_found():
    with pytest.raises(BlobNotFoundError):
        asyncio.run(_raising(ResourceNotFoundError("The specified blob does not exist."))())


def test_azure_authentication_error_is_not_retryable():
    with pytest.raises(StorageError) as exc_info:
        asyncio.run(_raising(ClientAuthenticationError("bad key"))())

    assert exc_info.value.retryable is False


@pytest.mark.parametrize("status_code,retryable", [(503, True), (429, True), (400, False), (409, False)])
def test_azure_http_errors_follow_status_code(status_code, retryable):
    error = HttpResponseError("simulated")
    error.status_code = status_code

    with pytest.raises(StorageError) as exc_info:
        asyncio.run(_raising(error)())

    assert exc_info.value.retryable is retryable


def test_azure_transport_error_is_retryable():
    with pytest.raises(StorageError) as exc_info:
        asyncio.run(_raising(ServiceRequestError("connection reset"))())

    assert exc_info.value.retryable is True


# --- translate_storage_errors: everything else ---

def test_timeouts_and_connection_errors_are_retryable():
    for error in (asyncio.TimeoutError(), ConnectionResetError("reset")):
        with pytest.raises(StorageError) as exc_info:
            asyncio.run(_raising(error)())
        assert exc_info.value.retryable is True


def test_pipeline_errors_pass_through():
    original = ConfigurationError("not translated")

    with pytest.raises(ConfigurationError) as exc_info:
        asyncio.run(_raising(original)())

    assert exc_info.value is original


def test_unrelated_errors_are_not_translated():
    with pytest.raises(ValueError):
        asyncio.run(_raising(ValueError("bug"))())


def test_return_value_is_preserved():
    @translate_storage_errors
    async def get_properties():
        return {"size": 3}

    assert asyncio.run(get_properties()) == {"size": 3}


# --- retry_storage_operation ---

class _Flaky:
    def __init__(self, failures, error_factory):
        self.calls = 0
        self.failures = failures
        self.error_factory = error_factory

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_factory()
        return "done"


def test_retry_succeeds_after_transient_failures():
    flaky = _Flaky(2, lambda: StorageError("throttled", retryable=True))
    operation = retry_storage_operation(max_attempts=3, initial_delay=0)(flaky)

    assert asyncio.run(operation()) == "done"
    assert flaky.calls == 3


def test_retry_gives_up_after_max_attempts():
    flaky = _Flaky(10, lambda: StorageError("throttled", retryable=True))
    operation = retry_storage_operation(max_attempts=3, initial_delay=0)(flaky)

    with pytest.raises(StorageError):
        asyncio.run(operation())
    assert flaky.calls == 3


def test_retry_does_not_repeat_permanent_errors():
    flaky = _Flaky(10, lambda: BlobNotFoundError("gone"))
    operation = retry_storage_operation(max_attempts=3, initial_delay=0)(flaky)

    with pytest.raises(BlobNotFoundError):
        asyncio.run(operation())
    assert flaky.calls == 1


def test_retry_sees_translated_sdk_errors():
    calls = []

    @retry_storage_operation(max_attempts=2, initial_delay=0)
    @translate_storage_errors
    async def upload():
        calls.append(1)
        raise _client_error("SlowDown", 503)

    with pytest.raises(StorageError):
        asyncio.run(upload())
    assert len(calls) == 2


# --- translate_queue_errors ---

def test_queue_sdk_errors_become_queue_error():
    @translate_queue_errors
    async def receive():
        raise ServiceRequestError("queue unreachable")

    with pytest.raises(QueueError) as exc_info:
        asyncio.run(receive())

    assert "receive" in str(exc_info.value)


def test_queue_errors_leave_other_exceptions_alone():
    @translate_queue_errors
    async def delete():
        raise KeyError("receipt")

    with pytest.raises(KeyError):
        asyncio.run(delete())
