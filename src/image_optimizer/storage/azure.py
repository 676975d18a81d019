"""Azure Blob Storage store on the azure-storage-blob async client."""

from typing import Any, Dict, Optional

from azure.core.exceptions import ResourceExistsError
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient

from ..core import get_logger
from ..core.error_handling import retry_storage_operation, translate_storage_errors
from ..core.exceptions import BlobNotFoundError
from ..core.models import BlobProperties, BlobRef


class AzureBlobStore:
    """Async Azure store. Close it with ``async with`` or ``close()``."""

    def __init__(self, service_client: BlobServiceClient):
        self._service = service_client
        self._logger = get_logger("image-optimizer.storage.azure")

    @classmethod
    def from_connection_string(cls, connection_string: str) -> "AzureBlobStore":
        return cls(BlobServiceClient.from_connection_string(connection_string))

    async def __aenter__(self) -> "AzureBlobStore":
        await self._service.__aenter__()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._service.close()

    def _blob_client(self, ref: BlobRef) -> Any:
        return self._service.get_blob_client(container=ref.container, blob=ref.path)

    @retry_storage_operation()
    @translate_storage_errors
    async def download(self, ref: BlobRef) -> bytes:
        self._logger.debug(f"Downloading {ref}")
        downloader = await self._blob_client(ref).download_blob()
        return await downloader.readall()

    @retry_storage_operation()
    @translate_storage_errors
    async def _read_properties(self, ref: BlobRef) -> Any:
        return await self._blob_client(ref).get_blob_properties()

    async def get_properties(self, ref: BlobRef) -> Optional[BlobProperties]:
        try:
            properties = await self._read_properties(ref)
        except BlobNotFoundError:
            return None
        return BlobProperties(
            metadata=dict(properties.metadata or {}),
            content_type=properties.content_settings.content_type,
            size=properties.size or 0,
        )

    @retry_storage_operation()
    @translate_storage_errors
    async def upload(
        self,
        ref: BlobRef,
        data: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
        overwrite: bool = True,
    ) -> None:
        self._logger.debug(f"Uploading {len(data)} bytes to {ref}")
        await self._blob_client(ref).upload_blob(
            data,
            overwrite=overwrite,
            metadata=dict(metadata or {}),
            content_settings=ContentSettings(content_type=content_type),
        )

    @retry_storage_operation()
    @translate_storage_errors
    async def create_container_if_not_exists(self, container: str) -> None:
        try:
            await self._service.get_container_client(container).create_container()
            self._logger.info(f"Created container {container}")
        except ResourceExistsError:
            pass
