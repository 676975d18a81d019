"""Testing utilities and fakes for the image optimizer."""

from .fakes import (
    BlobContainer,
    BlobObject,
    FakeBlobStore,
    FakeLogger,
    FakeQueueSource,
    create_test_image,
    event_message,
    setup_test_blob_environment,
)

__all__ = [
    "BlobContainer",
    "BlobObject",
    "FakeBlobStore",
    "FakeLogger",
    "FakeQueueSource",
    "create_test_image",
    "event_message",
    "setup_test_blob_environment",
]
