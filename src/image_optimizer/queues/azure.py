"""Azure Storage Queue source on the azure-storage-queue async client."""

import json
from typing import Any, Dict, List, Optional, Union

from azure.core.exceptions import ResourceExistsError
from azure.storage.queue import BinaryBase64DecodePolicy, BinaryBase64EncodePolicy
from azure.storage.queue.aio import QueueClient

from ..core import get_logger
from ..core.error_handling import translate_queue_errors
from ..core.protocols import QueueMessage


def _outgoing_body(body: Union[str, bytes, Dict[str, Any]], base64: bool) -> Union[str, bytes]:
    """Body in the form the client's encode policy accepts: bytes for base64, text otherwise."""
    if isinstance(body, dict):
        body = json.dumps(body)
    if base64:
        return body if isinstance(body, bytes) else body.encode("utf-8")
    return body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body


class AzureQueueSource:
    """
    Receives from a storage queue and forwards poison messages to
    ``<queue>-poison``.

    Event Grid writes base64-encoded JSON to storage queues, so by default
    bodies are base64-decoded to bytes and re-encoded on the way out. With
    ``base64=False`` the clients use the SDK's text policy and bodies are
    forwarded as text.
    """

    def __init__(
        self,
        queue_client: QueueClient,
        poison_client: Optional[QueueClient] = None,
        visibility_timeout: int = 300,
        base64: bool = True,
    ):
        self._queue = queue_client
        self._poison = poison_client
        self._visibility_timeout = visibility_timeout
        self._base64 = base64
        self._poison_ready = False
        self._logger = get_logger("image-optimizer.queues.azure")

    @classmethod
    def from_connection_string(
        cls,
        connection_string: str,
        queue_name: str,
        poison_queue_name: Optional[str] = None,
        base64: bool = True,
        visibility_timeout: int = 300,
    ) -> "AzureQueueSource":
        policies = {}
        if base64:
            policies = {
                "message_encode_policy": BinaryBase64EncodePolicy(),
                "message_decode_policy": BinaryBase64DecodePolicy(),
            }
        queue = QueueClient.from_connection_string(connection_string, queue_name, **policies)
        poison = None
        if poison_queue_name:
            poison = QueueClient.from_connection_string(
                connection_string, poison_queue_name, **policies
            )
        return cls(queue, poison, visibility_timeout=visibility_timeout, base64=base64)

    async def __aenter__(self) -> "AzureQueueSource":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self._queue.close()
        if self._poison is not None:
            await self._poison.close()

    @translate_queue_errors
    async def receive(self, max_messages: int) -> List[QueueMessage]:
        messages: List[QueueMessage] = []
        pager = self._queue.receive_messages(
            messages_per_page=max_messages,
            max_messages=max_messages,
            visibility_timeout=self._visibility_timeout,
        )
        async for message in pager:
            messages.append(
                QueueMessage(
                    id=message.id,
                    body=message.content,
                    dequeue_count=message.dequeue_count or 1,
                    receipt=message,
                )
            )
        return messages

    @translate_queue_errors
    async def delete(self, message: QueueMessage) -> None:
        await self._queue.delete_message(message.receipt)

    @translate_queue_errors
    async def dead_letter(self, message: QueueMessage) -> None:
        if self._poison is None:
            self._logger.warning(f"No poison queue configured, dropping message {message.id}")
            return
        if not self._poison_ready:
            try:
                await self._poison.create_queue()
            except ResourceExistsError:
                pass
            self._poison_ready = True
        await self._poison.send_message(_outgoing_body(message.body, self._base64))
