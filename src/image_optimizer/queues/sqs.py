"""SQS queue source on aioboto3."""

import json
from contextlib import AsyncExitStack
from typing import Any, List, Optional

import aioboto3

from ..core import get_logger
from ..core.error_handling import translate_queue_errors
from ..core.exceptions import QueueError
from ..core.protocols import QueueMessage

# SQS caps a single receive at ten messages
SQS_MAX_BATCH = 10


class SqsQueueSource:
    """Long-polls an SQS queue; poison messages go to a second queue."""

    def __init__(
        self,
        queue_name: str,
        poison_queue_name: Optional[str] = None,
        session: Optional[aioboto3.Session] = None,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        visibility_timeout: int = 300,
        wait_time_seconds: int = 20,
    ):
        self._queue_name = queue_name
        self._poison_queue_name = poison_queue_name
        self._session = session or aioboto3.Session()
        self._region_name = region_name
        self._endpoint_url = endpoint_url
        self._visibility_timeout = visibility_timeout
        self._wait_time_seconds = wait_time_seconds
        self._exit_stack = AsyncExitStack()
        self._client: Any = None
        self._queue_url: Optional[str] = None
        self._poison_url: Optional[str] = None
        self._logger = get_logger("image-optimizer.queues.sqs")

    @translate_queue_errors
    async def __aenter__(self) -> "SqsQueueSource":
        self._client = await self._exit_stack.enter_async_context(
            self._session.client(  # type: ignore[reportUnknownMemberType]
                "sqs", region_name=self._region_name, endpoint_url=self._endpoint_url
            )
        )
        response = await self._client.get_queue_url(QueueName=self._queue_name)
        self._queue_url = response["QueueUrl"]
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self._exit_stack.aclose()
        self._client = None

    @property
    def client(self) -> Any:
        if self._client is None:
            raise QueueError("SqsQueueSource used outside 'async with'")
        return self._client

    @translate_queue_errors
    async def receive(self, max_messages: int) -> List[QueueMessage]:
        response = await self.client.receive_message(
            QueueUrl=self._queue_url,
            MaxNumberOfMessages=min(max_messages, SQS_MAX_BATCH),
            WaitTimeSeconds=self._wait_time_seconds,
            VisibilityTimeout=self._visibility_timeout,
            AttributeNames=["ApproximateReceiveCount"],
        )
        return [
            QueueMessage(
                id=message["MessageId"],
                body=message["Body"],
                dequeue_count=int(message.get("Attributes", {}).get("ApproximateReceiveCount", 1)),
                receipt=message["ReceiptHandle"],
            )
            for message in response.get("Messages", [])
        ]

    @translate_queue_errors
    async def delete(self, message: QueueMessage) -> None:
        await self.client.delete_message(QueueUrl=self._queue_url, ReceiptHandle=message.receipt)

    @translate_queue_errors
    async def dead_letter(self, message: QueueMessage) -> None:
        if not self._poison_queue_name:
            self._logger.warning(f"No poison queue configured, dropping message {message.id}")
            return
        if self._poison_url is None:
            # create_queue returns the existing URL when the queue already exists
            response = await self.client.create_queue(QueueName=self._poison_queue_name)
            self._poison_url = response["QueueUrl"]

        body = message.body
        if isinstance(body, bytes):
            body = body.decode("utf-8", errors="replace")
        elif not isinstance(body, str):
            body = json.dumps(body)
        await self.client.send_message(QueueUrl=self._poison_url, MessageBody=body)
