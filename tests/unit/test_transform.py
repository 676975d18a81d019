"""Unit tests for the transform engine."""

import io

import pytest
from PIL import Image

from image_optimizer.core.models import (
    ImageFormat,
    OptimizedImage,
    RawImage,
    TransformConfig,
    TransformFailure,
)
from image_optimizer.core.transform import TransformEngine, optimize
from image_optimizer.testing.fakes import create_test_image


def _open(result: OptimizedImage) -> Image.Image:
    image = Image.open(io.BytesIO(result.data))
    image.load()
    return image


class TestOptimize:
    """Tests for optimize."""

    def test_large_png_becomes_bounded_jpeg(self):
        """Test a 3000x2000 PNG is resized to 1280 wide and re-encoded as JPEG."""
        raw = RawImage(data=create_test_image(3000, 2000, format="PNG"))

        result = optimize(raw, TransformConfig())

        assert isinstance(result, OptimizedImage)
        assert (result.width, result.height) == (1280, 853)
        assert result.content_type == "image/jpeg"
        decoded = _open(result)
        assert decoded.format == "JPEG"
        assert decoded.size == (1280, 853)

    def test_small_image_is_not_enlarged(self):
        """Test images narrower than the limit keep their size."""
        raw = RawImage(data=create_test_image(640, 480))

        result = optimize(raw, TransformConfig(max_width=1280))

        assert isinstance(result, OptimizedImage)
        assert (result.width, result.height) == (640, 480)

    def test_image_exactly_at_limit_is_unchanged_in_size(self):
        """Test the boundary width is not resized."""
        raw = RawImage(data=create_test_image(1280, 100))

        result = optimize(raw, TransformConfig())

        assert isinstance(result, OptimizedImage)
        assert result.width == 1280

    def test_output_is_deterministic(self):
        """Test identical input and config give identical bytes."""
        raw = RawImage(data=create_test_image(2000, 1000, format="PNG"))
        config = TransformConfig(max_width=800, quality=70)

        first = optimize(raw, config)
        second = optimize(raw, config)

        assert isinstance(first, OptimizedImage)
        assert isinstance(second, OptimizedImage)
        assert first.data == second.data

    def test_lower_quality_gives_smaller_output(self):
        """Test the quality setting reaches the encoder."""
        raw = RawImage(data=create_test_image(800, 600, format="PNG"))

        low = optimize(raw, TransformConfig(quality=20))
        high = optimize(raw, TransformConfig(quality=95))

        assert isinstance(low, OptimizedImage)
        assert isinstance(high, OptimizedImage)
        assert low.byte_length < high.byte_length

    def test_non_image_bytes_fail_with_length(self):
        """Test undecodable input returns a TransformFailure."""
        data = b"This is not an image"

        result = optimize(RawImage(data=data), TransformConfig())

        assert isinstance(result, TransformFailure)
        assert result.reason == "undecodable image data"
        assert result.byte_length == len(data)

    def test_empty_input_fails(self):
        """Test zero bytes are rejected."""
        result = optimize(RawImage(data=b""), TransformConfig())

        assert isinstance(result, TransformFailure)
        assert result.byte_length == 0

    def test_truncated_image_fails(self):
        """Test a cut-off JPEG is reported as corrupt, not half-encoded."""
        data = create_test_image(400, 400)
        truncated = data[: len(data) // 2]

        result = optimize(RawImage(data=truncated), TransformConfig())

        assert isinstance(result, TransformFailure)
        assert result.byte_length == len(truncated)

    def test_unsupported_source_format_fails(self):
        """Test decodable but unsupported formats are rejected."""
        buffer = io.BytesIO()
        Image.new("RGB", (20, 20), "red").save(buffer, format="PPM")

        result = optimize(RawImage(data=buffer.getvalue()), TransformConfig())

        assert isinstance(result, TransformFailure)
        assert result.reason == "unsupported source format"
        assert result.detail == "PPM"

    def test_transparency_is_flattened_onto_white_for_jpeg(self):
        """Test transparent pixels do not turn black in JPEG output."""
        raw = RawImage(data=create_test_image(200, 200, format="PNG", mode="RGBA"))

        result = optimize(raw, TransformConfig())

        assert isinstance(result, OptimizedImage)
        decoded = _open(result)
        assert decoded.mode == "RGB"
        r, g, b = decoded.getpixel((10, 10))
        # Half-transparent red over white is pink, not dark red
        assert r > 200
        assert g > 90

    def test_png_output_keeps_alpha(self):
        """Test alpha survives when the output format supports it."""
        raw = RawImage(data=create_test_image(200, 200, format="PNG", mode="RGBA"))

        result = optimize(raw, TransformConfig(format=ImageFormat.PNG))

        assert isinstance(result, OptimizedImage)
        assert result.content_type == "image/png"
        assert _open(result).mode == "RGBA"

    def test_webp_output(self):
        """Test WEBP encoding."""
        raw = RawImage(data=create_test_image(1600, 800))

        result = optimize(raw, TransformConfig(format=ImageFormat.WEBP, max_width=400))

        assert isinstance(result, OptimizedImage)
        assert result.content_type == "image/webp"
        decoded = _open(result)
        assert decoded.format == "WEBP"
        assert decoded.size == (400, 200)

    def test_exif_orientation_is_applied(self):
        """Test rotated camera images are turned upright before resizing."""
        exif = Image.Exif()
        exif[0x0112] = 6  # rotate 90 degrees clockwise
        buffer = io.BytesIO()
        Image.new("RGB", (200, 100), "red").save(buffer, format="JPEG", exif=exif.tobytes())

        result = optimize(RawImage(data=buffer.getvalue()), TransformConfig())

        assert isinstance(result, OptimizedImage)
        assert (result.width, result.height) == (100, 200)

    @pytest.mark.parametrize("source_format", ["GIF", "BMP", "TIFF"])
    def test_other_supported_sources(self, source_format):
        """Test every supported source format decodes."""
        raw = RawImage(data=create_test_image(300, 150, format=source_format))

        result = optimize(raw, TransformConfig(max_width=150))

        assert isinstance(result, OptimizedImage)
        assert (result.width, result.height) == (150, 75)


class TestTransformEngine:
    """Tests for TransformEngine."""

    def test_engine_uses_bound_config(self):
        """Test the engine applies its own config."""
        engine = TransformEngine(TransformConfig(max_width=100))

        result = engine.optimize(RawImage(data=create_test_image(400, 200)))

        assert isinstance(result, OptimizedImage)
        assert result.width == 100
