"""Queue worker: receive, handle, acknowledge."""

import asyncio
from typing import Optional

from ..core import get_logger
from ..core.exceptions import QueueError
from ..core.protocols import QueueMessage, QueueSourceProtocol
from ..core.services import PipelineOrchestrator


class QueueWorker:
    """
    Pulls messages from a queue source and hands each one to the
    orchestrator.

    A returned result deletes the message. A raised exception leaves the
    message on the queue so it becomes visible again after its visibility
    timeout. Once a failing message has been delivered
    ``max_delivery_attempts`` times it is copied to the poison queue and
    deleted.
    """

    def __init__(
        self,
        source: QueueSourceProtocol,
        orchestrator: PipelineOrchestrator,
        concurrency: int = 4,
        batch_size: int = 10,
        poll_interval: float = 5.0,
        max_delivery_attempts: int = 5,
    ):
        self._source = source
        self._orchestrator = orchestrator
        self._semaphore = asyncio.Semaphore(concurrency)
        self._batch_size = batch_size
        self._poll_interval = poll_interval
        self._max_delivery_attempts = max_delivery_attempts
        self._logger = get_logger("image-optimizer.worker")

    async def process_message(self, message: QueueMessage) -> bool:
        """Handle one delivery. Returns True when the message was acknowledged."""
        try:
            result = await self._orchestrator.handle(message.body)
        except Exception as e:  # noqa: BLE001
            self._logger.error(
                f"Message {message.id} failed on delivery {message.dequeue_count}: {e}",
                exc_info=True,
            )
            await self._handle_failure(message)
            return False

        await self._source.delete(message)
        self._logger.info(
            f"Acknowledged message {message.id} ({result.outcome.value}"
            f"{': ' + result.reason if result.reason else ''})"
        )
        return True

    async def _handle_failure(self, message: QueueMessage) -> None:
        if message.dequeue_count < self._max_delivery_attempts:
            self._logger.info(
                f"Message {message.id} will be redelivered "
                f"(attempt {message.dequeue_count}/{self._max_delivery_attempts})"
            )
            return

        self._logger.warning(
            f"Moving message {message.id} to the poison queue after "
            f"{message.dequeue_count} deliveries"
        )
        await self._source.dead_letter(message)
        await self._source.delete(message)

    async def _process_bounded(self, message: QueueMessage) -> bool:
        async with self._semaphore:
            try:
                return await self.process_message(message)
            except QueueError as e:
                # Ack or poison forwarding failed; the message reappears later
                self._logger.error(f"Queue operation failed for message {message.id}: {e}")
                return False
            except Exception as e:  # noqa: BLE001
                # One message must not stop the poll loop
                self._logger.error(
                    f"Unexpected error acknowledging message {message.id}: {e}", exc_info=True
                )
                return False

    async def run_once(self) -> int:
        """Receive one batch and handle it. Returns the number of messages received."""
        messages = await self._source.receive(self._batch_size)
        if messages:
            await asyncio.gather(*(self._process_bounded(m) for m in messages))
        return len(messages)

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Poll until ``stop_event`` is set."""
        stop_event = stop_event or asyncio.Event()
        self._logger.info("Worker started")

        while not stop_event.is_set():
            try:
                received = await self.run_once()
            except QueueError as e:
                self._logger.error(f"Receiving from the queue failed: {e}")
                received = 0

            if received == 0:
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self._poll_interval)
                except asyncio.TimeoutError:
                    pass

        self._logger.info("Worker stopped")
