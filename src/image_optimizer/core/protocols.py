"""Protocol definitions for the storage and queue collaborators."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Union

from .models import BlobProperties, BlobRef

MessageBody = Union[str, bytes, Dict[str, Any]]


class BlobStoreProtocol(Protocol):
    """Async blob storage keyed by (container, path)."""

    async def download(self, ref: BlobRef) -> bytes:
        """Return the full content of a blob; raises BlobNotFoundError if absent."""
        ...

    async def get_properties(self, ref: BlobRef) -> Optional[BlobProperties]:
        """Return blob properties, or None if the blob does not exist."""
        ...

    async def upload(
        self,
        ref: BlobRef,
        data: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
        overwrite: bool = True,
    ) -> None:
        """Write bytes, content type and metadata in one call."""
        ...

    async def create_container_if_not_exists(self, container: str) -> None:
        """Create a container unless it already exists."""
        ...


@dataclass
class QueueMessage:
    """One delivery of a queue message."""

    id: str
    body: MessageBody
    dequeue_count: int = 1
    receipt: Any = None


class QueueSourceProtocol(Protocol):
    """At-least-once message source."""

    async def receive(self, max_messages: int) -> List[QueueMessage]:
        """Receive up to ``max_messages``; they stay invisible until deleted or timed out."""
        ...

    async def delete(self, message: QueueMessage) -> None:
        """Acknowledge a message."""
        ...

    async def dead_letter(self, message: QueueMessage) -> None:
        """Copy a message to the poison queue."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for the context-aware pipeline logger."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...
