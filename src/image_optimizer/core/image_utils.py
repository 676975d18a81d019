"""Pillow helpers used by the transform engine."""

from typing import Tuple

from PIL import Image

# Background used when flattening transparency for formats without alpha
FLATTEN_BACKGROUND = (255, 255, 255)


def target_size(width: int, height: int, max_width: int) -> Tuple[int, int]:
    """
    Calculate the output size for a width limit, never enlarging.

    Args:
        width: Source width in pixels
        height: Source height in pixels
        max_width: Largest allowed output width

    Returns:
        (width, height) keeping the source aspect ratio
    """
    if width <= max_width:
        return width, height
    new_height = max(1, round(height * max_width / width))
    return max_width, new_height


def resize_to_max_width(img: "Image.Image", max_width: int) -> "Image.Image":
    """Downscale ``img`` so its width is at most ``max_width``."""
    size = target_size(img.width, img.height, max_width)
    if size == img.size:
        return img
    return img.resize(size, Image.Resampling.LANCZOS)


def has_alpha(img: "Image.Image") -> bool:
    if img.mode in ("RGBA", "LA", "PA"):
        return True
    return img.mode == "P" and "transparency" in img.info


def flatten_to_rgb(img: "Image.Image") -> "Image.Image":
    """
    Convert any mode to RGB, compositing transparency onto white.

    JPEG cannot store alpha; a plain ``convert("RGB")`` would turn
    transparent pixels black.
    """
    if has_alpha(img):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, FLATTEN_BACKGROUND)
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def normalize_mode(img: "Image.Image", keep_alpha: bool) -> "Image.Image":
    """Bring ``img`` into a mode every output encoder accepts."""
    if not keep_alpha:
        return flatten_to_rgb(img)
    if has_alpha(img):
        return img if img.mode == "RGBA" else img.convert("RGBA")
    return img if img.mode == "RGB" else img.convert("RGB")
