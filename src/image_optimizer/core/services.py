"""Pipeline orchestrator: decode, gate, fetch, transform, store."""

import asyncio
import time
from typing import Optional

from .decoder import decode_message
from .exceptions import BlobNotFoundError
from .gate import OptimizationGate, create_gate
from .models import (
    BlobRef,
    DecodeFailure,
    HandleResult,
    Outcome,
    PipelineConfig,
    RawImage,
    TransformFailure,
)
from .observability import HandlingMetric, LogContext, MetricsCollector, StructuredLogger
from .protocols import BlobStoreProtocol, LoggerProtocol, MessageBody
from .transform import TransformEngine


class PipelineOrchestrator:
    """
    Handles one queue message per ``handle`` call.

    Returning a HandleResult means the message should be acknowledged,
    whether the blob was optimized, was already optimized, or can never be
    processed. Any raised exception means the message should be redelivered.
    The upload is the only durable side effect and it is the last step, so
    a redelivery after a failure or cancellation starts from a clean state.
    """

    def __init__(
        self,
        store: BlobStoreProtocol,
        config: PipelineConfig,
        logger: Optional[LoggerProtocol] = None,
        gate: Optional[OptimizationGate] = None,
        transform_engine: Optional[TransformEngine] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._store = store
        self._config = config
        self._logger = logger or StructuredLogger("image-optimizer.pipeline")
        self._gate = gate or create_gate(store, config)
        self._transform_engine = transform_engine or TransformEngine(config.transform_config)
        self._metrics_collector = metrics_collector

    @property
    def config(self) -> PipelineConfig:
        return self._config

    async def handle(self, raw_message: MessageBody) -> HandleResult:
        """Process one message. Raises to signal redelivery."""
        start_time = time.time()
        log_context = LogContext(
            operation="handle_message", component="pipeline_orchestrator"
        ).with_metadata(mode=self._gate.mode.value)

        try:
            result = await self._process(raw_message, log_context)
        except Exception as e:
            self._record(start_time, success=False, error_message=str(e))
            self._logger.error(
                "Message handling failed, leaving it for redelivery",
                log_context.with_metadata(error=f"{type(e).__name__}: {e}"),
            )
            raise

        result.correlation_id = log_context.correlation_id
        result.processing_time = time.time() - start_time
        self._record(start_time, success=True, outcome=result.outcome.value)
        return result

    async def _process(self, raw_message: MessageBody, log_context: LogContext) -> HandleResult:
        self._logger.info("Received message", log_context.with_operation("receive"))

        # Step 1: decode
        event = decode_message(raw_message)
        if isinstance(event, DecodeFailure):
            self._logger.warning(
                f"Discarding malformed message: {event.reason}",
                log_context.with_operation("decode"),
                raw_message=event.raw_snippet,
            )
            return HandleResult(outcome=Outcome.DISCARDED, reason=event.reason)

        source = BlobRef.from_event(event)
        log_context = log_context.with_metadata(blob=str(source))
        self._logger.info(
            "Resolved blob",
            log_context.with_operation("decode"),
            container=source.container,
            path=source.path,
        )

        # Step 2: idempotency checkpoint
        check = await self._gate.check(source)
        if check.already_optimized:
            self._logger.info(
                f"Skipping blob: {check.reason}", log_context.with_operation("gate")
            )
            return HandleResult(
                outcome=Outcome.SKIPPED,
                reason=check.reason,
                source=source,
                destination=check.destination,
            )

        # Step 3: download; storage faults propagate
        try:
            data = await self._store.download(source)
        except BlobNotFoundError as e:
            self._logger.warning(
                "Discarding message for a blob that no longer exists",
                log_context.with_operation("download"),
                error=str(e),
            )
            return HandleResult(
                outcome=Outcome.DISCARDED,
                reason="source blob not found",
                source=source,
            )
        raw = RawImage(data=data)
        self._logger.info(
            "Downloaded source blob", log_context.with_operation("download"), bytes=raw.byte_length
        )

        # Step 4: transform off the event loop
        optimized = await asyncio.to_thread(self._transform_engine.optimize, raw)
        if isinstance(optimized, TransformFailure):
            self._logger.error(
                f"Discarding blob that cannot be optimized: {optimized.reason}",
                log_context.with_operation("transform"),
                bytes=optimized.byte_length,
                detail=optimized.detail,
            )
            return HandleResult(
                outcome=Outcome.DISCARDED,
                reason=optimized.reason,
                source=source,
                original_bytes=raw.byte_length,
            )
        self._logger.info(
            "Optimized image",
            log_context.with_operation("transform"),
            bytes=optimized.byte_length,
            width=optimized.width,
            height=optimized.height,
        )

        # Step 5: upload bytes and completion marker in one call
        destination = check.destination
        await self._gate.prepare_destination(destination)
        await self._store.upload(
            destination,
            optimized.data,
            content_type=optimized.content_type,
            metadata=check.upload_metadata,
            overwrite=True,
        )
        self._logger.info(
            "Uploaded optimized image",
            log_context.with_operation("upload"),
            destination=str(destination),
            content_type=optimized.content_type,
        )

        return HandleResult(
            outcome=Outcome.OPTIMIZED,
            source=source,
            destination=destination,
            original_bytes=raw.byte_length,
            optimized_bytes=optimized.byte_length,
        )

    def _record(
        self,
        start_time: float,
        success: bool,
        outcome: str = "",
        error_message: Optional[str] = None,
    ) -> None:
        if self._metrics_collector is None:
            return
        self._metrics_collector.record_metric(
            HandlingMetric(
                operation="handle_message",
                start_time=start_time,
                end_time=time.time(),
                success=success,
                outcome=outcome,
                error_message=error_message,
            )
        )
