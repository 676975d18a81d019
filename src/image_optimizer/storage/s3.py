"""S3 blob store on aioboto3. Buckets play the role of containers."""

from contextlib import AsyncExitStack
from typing import Any, Dict, Optional

import aioboto3
from botocore.exceptions import ClientError

from ..core import get_logger
from ..core.error_handling import retry_storage_operation, translate_storage_errors
from ..core.exceptions import BlobNotFoundError, StorageError
from ..core.models import BlobProperties, BlobRef


class S3BlobStore:
    """
    Async S3 store. Use as an async context manager so the shared client
    is opened once per worker:

        async with S3BlobStore(region_name="eu-west-1") as store:
            data = await store.download(ref)
    """

    def __init__(
        self,
        session: Optional[aioboto3.Session] = None,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ):
        self._session = session or aioboto3.Session()
        self._region_name = region_name
        self._endpoint_url = endpoint_url
        self._exit_stack = AsyncExitStack()
        self._client: Any = None
        self._logger = get_logger("image-optimizer.storage.s3")

    async def __aenter__(self) -> "S3BlobStore":
        self._client = await self._exit_stack.enter_async_context(
            self._session.client(  # type: ignore[reportUnknownMemberType]
                "s3", region_name=self._region_name, endpoint_url=self._endpoint_url
            )
        )
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self._exit_stack.aclose()
        self._client = None

    @property
    def client(self) -> Any:
        if self._client is None:
            raise StorageError("S3BlobStore used outside 'async with'", retryable=False)
        return self._client

    @retry_storage_operation()
    @translate_storage_errors
    async def download(self, ref: BlobRef) -> bytes:
        self._logger.debug(f"Downloading s3://{ref.container}/{ref.path}")
        response = await self.client.get_object(Bucket=ref.container, Key=ref.path)
        async with response["Body"] as stream:
            return await stream.read()

    @retry_storage_operation()
    @translate_storage_errors
    async def _head_object(self, ref: BlobRef) -> Dict[str, Any]:
        return await self.client.head_object(Bucket=ref.container, Key=ref.path)

    async def get_properties(self, ref: BlobRef) -> Optional[BlobProperties]:
        try:
            response = await self._head_object(ref)
        except BlobNotFoundError:
            return None
        return BlobProperties(
            metadata=dict(response.get("Metadata") or {}),
            content_type=response.get("ContentType"),
            size=response.get("ContentLength", 0),
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
        self._logger.debug(f"Uploading {len(data)} bytes to s3://{ref.container}/{ref.path}")
        kwargs: Dict[str, Any] = {
            "Bucket": ref.container,
            "Key": ref.path,
            "Body": data,
            "ContentType": content_type,
            "Metadata": dict(metadata or {}),
        }
        if not overwrite:
            kwargs["IfNoneMatch"] = "*"
        await self.client.put_object(**kwargs)

    @retry_storage_operation()
    @translate_storage_errors
    async def create_container_if_not_exists(self, container: str) -> None:
        kwargs: Dict[str, Any] = {"Bucket": container}
        if self._region_name and self._region_name != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self._region_name}
        try:
            await self.client.create_bucket(**kwargs)
            self._logger.info(f"Created bucket {container}")
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                raise
