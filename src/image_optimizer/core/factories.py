"""Factories that wire stores, queues and the orchestrator from settings."""

from typing import Any, Optional

from .config import OptimizerSettings
from .observability import MetricsCollector, StructuredLogger
from .protocols import BlobStoreProtocol, LoggerProtocol
from .services import PipelineOrchestrator


class BlobStoreFactory:
    """Factory for the configured blob store backend."""

    @staticmethod
    def create_store(settings: OptimizerSettings) -> Any:
        """Create an unopened store; enter it with ``async with``."""
        if settings.backend == "aws":
            from ..storage.s3 import S3BlobStore

            return S3BlobStore(
                region_name=settings.aws_region, endpoint_url=settings.aws_endpoint_url
            )

        from ..storage.azure import AzureBlobStore

        return AzureBlobStore.from_connection_string(settings.connection_string())


class QueueSourceFactory:
    """Factory for the configured queue backend."""

    @staticmethod
    def create_source(settings: OptimizerSettings) -> Any:
        """Create an unopened queue source; enter it with ``async with``."""
        if settings.backend == "aws":
            from ..queues.sqs import SqsQueueSource

            return SqsQueueSource(
                settings.queue_name,
                poison_queue_name=settings.poison_queue_name,
                region_name=settings.aws_region,
                endpoint_url=settings.aws_endpoint_url,
                visibility_timeout=settings.visibility_timeout,
            )

        from ..queues.azure import AzureQueueSource

        return AzureQueueSource.from_connection_string(
            settings.connection_string(),
            settings.queue_name,
            poison_queue_name=settings.poison_queue_name,
            base64=settings.message_base64,
            visibility_timeout=settings.visibility_timeout,
        )


class PipelineFactory:
    """Factory for a fully configured orchestrator."""

    @staticmethod
    def create_orchestrator(
        store: BlobStoreProtocol,
        settings: Optional[OptimizerSettings] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ) -> PipelineOrchestrator:
        settings = settings or OptimizerSettings()  # type: ignore[call-arg]
        return PipelineOrchestrator(
            store=store,
            config=settings.pipeline_config(),
            logger=logger or StructuredLogger("image-optimizer.pipeline"),
            metrics_collector=metrics_collector,
        )
