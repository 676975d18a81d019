"""Optimization gate: the idempotency checkpoint of the pipeline.

Two strategies decide whether a blob was already optimized and where the
optimized output goes:

* ``CrossContainerGate`` writes to a separate container. Any object already
  at the destination is the pipeline's own output, so existence means done.
* ``InPlaceGate`` overwrites the source and marks it with
  ``optimized=true`` metadata in the same upload call.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from pydantic import BaseModel, Field

from .models import (
    OPTIMIZED_METADATA_KEY,
    OPTIMIZED_METADATA_VALUE,
    BlobRef,
    OptimizationMode,
    PipelineConfig,
)
from .protocols import BlobStoreProtocol


class GateCheck(BaseModel):
    """Outcome of a gate check for one source blob."""

    already_optimized: bool
    destination: BlobRef
    upload_metadata: Dict[str, str] = Field(default_factory=dict)
    reason: str = ""


def completion_metadata(existing: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    metadata = dict(existing or {})
    metadata[OPTIMIZED_METADATA_KEY] = OPTIMIZED_METADATA_VALUE
    return metadata


class OptimizationGate(ABC):
    """Abstract gate strategy."""

    mode: OptimizationMode

    def __init__(self, store: BlobStoreProtocol):
        self._store = store

    @abstractmethod
    def destination_for(self, source: BlobRef) -> BlobRef:
        """Where the optimized version of ``source`` is written."""
        ...

    @abstractmethod
    async def check(self, source: BlobRef) -> GateCheck:
        """Read the store and decide whether ``source`` still needs work."""
        ...

    async def is_already_optimized(self, source: BlobRef) -> bool:
        return (await self.check(source)).already_optimized

    async def prepare_destination(self, destination: BlobRef) -> None:
        """Hook run before the upload."""


class CrossContainerGate(OptimizationGate):
    """Output goes to ``destination_container`` under the same path."""

    mode = OptimizationMode.CROSS_CONTAINER

    def __init__(self, store: BlobStoreProtocol, destination_container: str):
        super().__init__(store)
        self._destination_container = destination_container

    def destination_for(self, source: BlobRef) -> BlobRef:
        return BlobRef(container=self._destination_container, path=source.path)

    async def check(self, source: BlobRef) -> GateCheck:
        destination = self.destination_for(source)

        # Upload events for our own output must not be optimized again
        if source.container == self._destination_container:
            return GateCheck(
                already_optimized=True,
                destination=destination,
                reason="blob is in the destination container",
            )

        properties = await self._store.get_properties(destination)
        if properties is not None:
            return GateCheck(
                already_optimized=True,
                destination=destination,
                reason="destination blob already exists",
            )
        return GateCheck(
            already_optimized=False,
            destination=destination,
            upload_metadata=completion_metadata(),
        )

    async def prepare_destination(self, destination: BlobRef) -> None:
        await self._store.create_container_if_not_exists(destination.container)


class InPlaceGate(OptimizationGate):
    """Output overwrites the source blob, marked with metadata."""

    mode = OptimizationMode.IN_PLACE

    def destination_for(self, source: BlobRef) -> BlobRef:
        return source

    async def check(self, source: BlobRef) -> GateCheck:
        properties = await self._store.get_properties(source)
        if properties is not None and properties.is_optimized:
            return GateCheck(
                already_optimized=True,
                destination=source,
                reason="blob is marked optimized",
            )

        existing = properties.metadata if properties is not None else {}
        return GateCheck(
            already_optimized=False,
            destination=source,
            upload_metadata=completion_metadata(existing),
        )


def create_gate(store: BlobStoreProtocol, config: PipelineConfig) -> OptimizationGate:
    """Select the gate strategy for the configured mode."""
    if config.mode == OptimizationMode.IN_PLACE:
        return InPlaceGate(store)
    return CrossContainerGate(store, config.destination_container)
