"""Unit tests for the optimization gate strategies."""

import asyncio

import pytest

from image_optimizer.core.gate import CrossContainerGate, InPlaceGate, create_gate
from image_optimizer.core.models import BlobRef, OptimizationMode, PipelineConfig
from image_optimizer.testing.fakes import FakeBlobStore

SOURCE = BlobRef(container="images", path="photo.png")


@pytest.fixture
def store():
    store = FakeBlobStore()
    store.create_container("images").add_blob("photo.png", b"png-bytes", "image/png")
    return store


class TestCrossContainerGate:
    """Tests for CrossContainerGate."""

    def test_missing_destination_means_not_optimized(self, store):
        """Test work is needed when the destination object is absent."""
        gate = CrossContainerGate(store, "optimized-images")

        check = asyncio.run(gate.check(SOURCE))

        assert check.already_optimized is False
        assert check.destination == BlobRef(container="optimized-images", path="photo.png")
        assert check.upload_metadata == {"optimized": "true"}

    def test_existing_destination_means_optimized(self, store):
        """Test any destination object counts as completion."""
        store.create_container("optimized-images").add_blob("photo.png", b"jpeg-bytes")
        gate = CrossContainerGate(store, "optimized-images")

        assert asyncio.run(gate.is_already_optimized(SOURCE)) is True

    def test_event_for_destination_container_is_skipped(self, store):
        """Test the pipeline's own uploads are never re-optimized."""
        gate = CrossContainerGate(store, "optimized-images")
        own_output = BlobRef(container="optimized-images", path="photo.png")

        check = asyncio.run(gate.check(own_output))

        assert check.already_optimized is True
        assert "destination container" in check.reason
        assert store.calls["get_properties"] == 0

    def test_prepare_destination_creates_container(self, store):
        """Test the destination container is created on demand."""
        gate = CrossContainerGate(store, "optimized-images")

        asyncio.run(gate.prepare_destination(gate.destination_for(SOURCE)))

        assert store.get_container("optimized-images") is not None


class TestInPlaceGate:
    """Tests for InPlaceGate."""

    def test_unmarked_blob_is_not_optimized(self, store):
        """Test a blob without the marker needs work."""
        gate = InPlaceGate(store)

        check = asyncio.run(gate.check(SOURCE))

        assert check.already_optimized is False
        assert check.destination == SOURCE
        assert check.upload_metadata == {"optimized": "true"}

    def test_marked_blob_is_optimized(self, store):
        """Test optimized=true short-circuits."""
        store.get_container("images").add_blob("photo.png", b"jpeg", metadata={"optimized": "true"})
        gate = InPlaceGate(store)

        assert asyncio.run(gate.is_already_optimized(SOURCE)) is True

    @pytest.mark.parametrize("value", ["false", "TRUE", "1", ""])
    def test_only_exact_true_counts(self, store, value):
        """Test the marker value must be exactly 'true'."""
        store.get_container("images").add_blob("photo.png", b"png", metadata={"optimized": value})
        gate = InPlaceGate(store)

        assert asyncio.run(gate.is_already_optimized(SOURCE)) is False

    def test_existing_metadata_is_carried_into_upload(self, store):
        """Test user metadata survives the in-place overwrite."""
        store.get_container("images").add_blob("photo.png", b"png", metadata={"owner": "alice"})
        gate = InPlaceGate(store)

        check = asyncio.run(gate.check(SOURCE))

        assert check.upload_metadata == {"owner": "alice", "optimized": "true"}

    def test_missing_blob_is_not_optimized(self, store):
        """Test an absent blob reads as not optimized."""
        gate = InPlaceGate(store)

        check = asyncio.run(gate.check(BlobRef(container="images", path="missing.png")))

        assert check.already_optimized is False


class TestCreateGate:
    """Tests for create_gate."""

    def test_cross_container_mode(self, store):
        gate = create_gate(store, PipelineConfig(destination_container="out"))

        assert isinstance(gate, CrossContainerGate)
        assert gate.mode == OptimizationMode.CROSS_CONTAINER
        assert gate.destination_for(SOURCE).container == "out"

    def test_in_place_mode(self, store):
        gate = create_gate(store, PipelineConfig(mode=OptimizationMode.IN_PLACE))

        assert isinstance(gate, InPlaceGate)
        assert gate.destination_for(SOURCE) == SOURCE
