"""Transform engine: resize and re-encode image bytes. No I/O."""

import io
import warnings

from PIL import Image, ImageOps, UnidentifiedImageError

from .image_utils import normalize_mode, resize_to_max_width
from .models import (
    ImageFormat,
    OptimizedImage,
    RawImage,
    TransformConfig,
    TransformFailure,
    TransformResult,
)

SUPPORTED_SOURCE_FORMATS = frozenset({"JPEG", "PNG", "GIF", "WEBP", "BMP", "TIFF", "MPO"})


def _save_options(image_format: ImageFormat, quality: int) -> dict:
    if image_format == ImageFormat.JPEG:
        return {"quality": quality, "optimize": True, "progressive": True}
    if image_format == ImageFormat.WEBP:
        return {"quality": quality, "method": 4}
    return {"optimize": True}


def optimize(raw: RawImage, config: TransformConfig) -> TransformResult:
    """
    Resize ``raw`` to at most ``config.max_width`` and re-encode it.

    Output is deterministic for identical bytes and config. Bytes that
    cannot be decoded, or decode to an unsupported format, produce a
    TransformFailure carrying the input length.

    Args:
        raw: Source image bytes
        config: Width limit, quality and output format

    Returns:
        OptimizedImage on success, TransformFailure otherwise
    """
    byte_length = raw.byte_length
    if byte_length == 0:
        return TransformFailure(reason="empty image data", byte_length=0)

    try:
        with warnings.catch_warnings():
            # Treat oversized images as failures rather than warnings
            warnings.simplefilter("error", Image.DecompressionBombWarning)
            with Image.open(io.BytesIO(raw.data)) as source:
                source_format = source.format
                if source_format not in SUPPORTED_SOURCE_FORMATS:
                    return TransformFailure(
                        reason="unsupported source format",
                        byte_length=byte_length,
                        detail=str(source_format),
                    )
                source.load()
                image = ImageOps.exif_transpose(source)
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        Image.DecompressionBombWarning,
    ) as exc:
        return TransformFailure(
            reason="undecodable image data", byte_length=byte_length, detail=str(exc)
        )
    except (OSError, SyntaxError, ValueError) as exc:
        # Truncated or corrupt data surfaces from load() as OSError
        return TransformFailure(
            reason="corrupt image data", byte_length=byte_length, detail=str(exc)
        )

    # Palette and 1-bit images only resize with NEAREST, so convert first
    image = normalize_mode(image, keep_alpha=config.format != ImageFormat.JPEG)
    image = resize_to_max_width(image, config.max_width)

    output = io.BytesIO()
    try:
        image.save(
            output,
            format=config.format.pillow_format,
            **_save_options(config.format, config.quality),
        )
    except (OSError, ValueError) as exc:
        return TransformFailure(
            reason="image could not be re-encoded",
            byte_length=byte_length,
            detail=f"{source_format} {image.mode}: {exc}",
        )

    return OptimizedImage(
        data=output.getvalue(),
        format=config.format,
        width=image.width,
        height=image.height,
    )


class TransformEngine:
    """Callable wrapper around ``optimize`` bound to one config."""

    def __init__(self, config: TransformConfig):
        self.config = config

    def optimize(self, raw: RawImage) -> TransformResult:
        return optimize(raw, self.config)
