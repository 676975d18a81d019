"""Blob store adapters."""

from .azure import AzureBlobStore
from .s3 import S3BlobStore

__all__ = ["AzureBlobStore", "S3BlobStore"]
