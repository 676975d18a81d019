"""Shared data models for the image optimizer."""

from enum import Enum
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

OPTIMIZED_METADATA_KEY = "optimized"
OPTIMIZED_METADATA_VALUE = "true"


class ImageFormat(str, Enum):
    """Output encodings the transform engine can produce."""

    JPEG = "jpeg"
    WEBP = "webp"
    PNG = "png"

    @property
    def pillow_format(self) -> str:
        return self.value.upper()

    @property
    def content_type(self) -> str:
        return f"image/{self.value}"


class OptimizationMode(str, Enum):
    """Where optimized output goes and how completion is recorded."""

    CROSS_CONTAINER = "cross_container"
    IN_PLACE = "in_place"


class BlobEvent(BaseModel):
    """A decoded queue message naming one uploaded blob."""

    container_name: str = Field(min_length=1)
    blob_path: str = Field(min_length=1)


class BlobRef(BaseModel):
    """Logical identity of a blob; the idempotency key."""

    model_config = ConfigDict(frozen=True)

    container: str
    path: str

    @classmethod
    def from_event(cls, event: BlobEvent) -> "BlobRef":
        return cls(container=event.container_name, path=event.blob_path)

    def __str__(self) -> str:
        return f"{self.container}/{self.path}"


class BlobProperties(BaseModel):
    """Properties of a stored blob."""

    metadata: Dict[str, str] = Field(default_factory=dict)
    content_type: Optional[str] = None
    size: int = 0

    @property
    def is_optimized(self) -> bool:
        return self.metadata.get(OPTIMIZED_METADATA_KEY) == OPTIMIZED_METADATA_VALUE


class RawImage(BaseModel):
    """Source bytes as downloaded from the blob store."""

    data: bytes
    content_type: Optional[str] = None

    @property
    def byte_length(self) -> int:
        return len(self.data)


class OptimizedImage(BaseModel):
    """Re-encoded output of the transform engine."""

    data: bytes
    format: ImageFormat
    width: int
    height: int

    @property
    def content_type(self) -> str:
        return self.format.content_type

    @property
    def byte_length(self) -> int:
        return len(self.data)


class TransformConfig(BaseModel):
    """Resize and encode policy."""

    max_width: int = Field(default=1280, ge=1)
    quality: int = Field(default=75, ge=1, le=100)
    format: ImageFormat = ImageFormat.JPEG


class DecodeFailure(BaseModel):
    """A queue message that can never be processed."""

    reason: str
    raw_snippet: str = ""


class TransformFailure(BaseModel):
    """Source bytes that could not be turned into an optimized image."""

    reason: str
    byte_length: int
    detail: str = ""


DecodeResult = Union[BlobEvent, DecodeFailure]
TransformResult = Union[OptimizedImage, TransformFailure]


class PipelineConfig(BaseModel):
    """Explicit configuration handed to the orchestrator at construction."""

    queue_name: str = "image-optimization-queue"
    connection_ref: str = "QueueStorageAccount"
    destination_container: str = Field(default="optimized-images", min_length=1)
    max_width: int = Field(default=1280, ge=1)
    quality: int = Field(default=75, ge=1, le=100)
    output_format: ImageFormat = ImageFormat.JPEG
    mode: OptimizationMode = OptimizationMode.CROSS_CONTAINER

    @property
    def transform_config(self) -> TransformConfig:
        return TransformConfig(
            max_width=self.max_width, quality=self.quality, format=self.output_format
        )


class Outcome(str, Enum):
    """How an acknowledged message ended."""

    OPTIMIZED = "optimized"
    SKIPPED = "skipped"
    DISCARDED = "discarded"


class HandleResult(BaseModel):
    """Result of handling one message. Returning it means acknowledge."""

    outcome: Outcome
    reason: str = ""
    correlation_id: str = ""
    source: Optional[BlobRef] = None
    destination: Optional[BlobRef] = None
    original_bytes: int = 0
    optimized_bytes: int = 0
    processing_time: float = 0.0
