"""Environment-driven settings for the optimizer worker."""

import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .models import ImageFormat, OptimizationMode, PipelineConfig


class OptimizerSettings(BaseSettings):
    """Settings loaded from environment variables or .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Pipeline
    queue_name: str = Field("image-optimization-queue", alias="QUEUE_NAME")
    connection_ref: str = Field("QueueStorageAccount", alias="STORAGE_CONNECTION_REF")
    destination_container: str = Field(
        "optimized-images", alias="OPTIMIZED_CONTAINER_NAME", min_length=1
    )
    max_width: int = Field(1280, alias="RESIZE_WIDTH", ge=1)
    quality: int = Field(75, alias="ENCODE_QUALITY", ge=1, le=100)
    output_format: ImageFormat = Field(ImageFormat.JPEG, alias="OUTPUT_FORMAT")
    mode: OptimizationMode = Field(
        OptimizationMode.CROSS_CONTAINER, alias="OPTIMIZATION_MODE"
    )

    # Backend
    backend: Literal["azure", "aws"] = Field("azure", alias="STORAGE_BACKEND")
    aws_region: Optional[str] = Field(None, alias="AWS_REGION")
    aws_endpoint_url: Optional[str] = Field(None, alias="AWS_ENDPOINT_URL")

    # Queue worker
    concurrency: int = Field(4, alias="WORKER_CONCURRENCY", ge=1)
    batch_size: int = Field(10, alias="QUEUE_BATCH_SIZE", ge=1, le=32)
    visibility_timeout: int = Field(300, alias="QUEUE_VISIBILITY_TIMEOUT", ge=1)
    poll_interval: float = Field(5.0, alias="QUEUE_POLL_INTERVAL", ge=0)
    max_delivery_attempts: int = Field(5, alias="MAX_DELIVERY_ATTEMPTS", ge=1)
    message_base64: bool = Field(True, alias="QUEUE_MESSAGE_BASE64")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_format: Literal["structured", "simple"] = Field("structured", alias="LOG_FORMAT")

    @property
    def poison_queue_name(self) -> str:
        return f"{self.queue_name}-poison"

    def connection_string(self) -> str:
        """Resolve ``connection_ref`` to the connection string it names."""
        value = os.getenv(self.connection_ref)
        if not value:
            raise ConfigurationError(
                f"Environment variable {self.connection_ref!r} holding the storage "
                "connection string is not set"
            )
        return value

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            queue_name=self.queue_name,
            connection_ref=self.connection_ref,
            destination_container=self.destination_container,
            max_width=self.max_width,
            quality=self.quality,
            output_format=self.output_format,
            mode=self.mode,
        )


def load_settings(**overrides: object) -> OptimizerSettings:
    """Build settings, turning validation errors into ConfigurationError."""
    try:
        return OptimizerSettings(**overrides)  # type: ignore[arg-type]
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid optimizer settings: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> OptimizerSettings:
    """Return cached settings instance."""
    return load_settings()
