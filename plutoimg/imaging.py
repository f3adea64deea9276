"""Image naming, aspect ratio parsing, resizing and focus-aware cropping."""

from __future__ import annotations

import math
import secrets

from PIL import Image

from .params import _parse_float, _parse_int

_LANCZOS = Image.Resampling.LANCZOS


def _extension(name: str) -> str:
    base = name.rsplit("/", 1)[-1]
    dot = base.rfind(".")
    return base[dot:] if dot >= 0 else ""


def generate_image_filename(original_name: str) -> str:
    """Return a random 32-digit hex name that keeps the original extension."""
    return secrets.token_hex(16) + _extension(original_name)


def parse_aspect_ratio(s: str) -> float:
    """Parse a ratio such as ``3by2`` into width divided by height."""
    parts = s.split("by")
    if len(parts) != 2:
        raise ValueError("invalid ratio")
    try:
        w = _parse_float(parts[0])
        h = _parse_float(parts[1])
    except ValueError:
        raise ValueError("invalid ratio") from None
    if h == 0:
        raise ValueError("invalid ratio")
    return w / h


def _sized(img: Image.Image, width: int, height: int) -> Image.Image:
    if width <= 0 or height <= 0:
        return Image.new(img.mode, (max(width, 0), max(height, 0)))
    if img.size == (width, height):
        return img.copy()
    return img.resize((width, height), _LANCZOS)


def _int_or_zero(text: str) -> int:
    try:
        return _parse_int(text)
    except ValueError:
        return 0


def resize_to_width(img: Image.Image, width: int, ratio: str) -> Image.Image:
    """Resize to a width; the height follows ``ratio`` or else the image."""
    height = 0
    parts = ratio.split("by")
    if len(parts) == 2:
        rw, rh = _int_or_zero(parts[0]), _int_or_zero(parts[1])
        if rw > 0 and rh > 0:
            height = int(width * rh / rw)

    if width <= 0 and height <= 0:
        return img.copy()
    if height <= 0:
        src_w, src_h = img.size
        scale = src_w / width
        height = int(0.7 + src_h / scale)
    return _sized(img, width, height)


def _fit_resize(img: Image.Image, width: int, height: int) -> Image.Image:
    """Resize, deriving a missing dimension (0) from the source aspect."""
    if width < 0 or height < 0 or (width == 0 and height == 0):
        return Image.new(img.mode, (0, 0))
    src_w, src_h = img.size
    if src_w <= 0 or src_h <= 0:
        return Image.new(img.mode, (0, 0))
    if width == 0:
        width = max(1, math.floor(height * src_w / src_h + 0.5))
    elif height == 0:
        height = max(1, math.floor(width * src_h / src_w + 0.5))
    return _sized(img, width, height)


def _clamp01(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return min(max(value, 0.0), 1.0)


def crop_to_aspect_advanced(
    img: Image.Image,
    mode: str,
    aspect_ratio: float,
    focus_x: float,
    focus_y: float,
    width: int,
    height: int,
) -> Image.Image:
    """Crop or resize an image to a target size or aspect ratio.

    ``mode`` "contain" fits the whole image into the target box; any other
    mode crops to the target aspect around the normalized focus point and
    then scales to the requested dimensions. ``aspect_ratio`` is used only
    when one of ``width`` and ``height`` is missing (0). With nothing to do
    the image is returned unchanged.
    """
    src_w, src_h = img.size
    focus_x = _clamp01(focus_x)
    focus_y = _clamp01(focus_y)

    if width > 0 and height > 0:
        target_w, target_h = width, height
    elif width > 0 and aspect_ratio > 0:
        target_w, target_h = width, int(width / aspect_ratio)
    elif height > 0 and aspect_ratio > 0:
        target_w, target_h = int(height * aspect_ratio), height
    elif aspect_ratio > 0:
        target_h = src_h
        target_w = int(target_h * aspect_ratio)
    else:
        return img

    if target_w <= 0 or target_h <= 0:
        raise ValueError("target dimensions must be positive")
    if src_w <= 0 or src_h <= 0:
        raise ValueError("source image is empty")

    src_ratio = src_w / src_h
    target_ratio = target_w / target_h

    if mode == "contain":
        if src_ratio > target_ratio:
            new_w = target_w
            new_h = int(new_w / src_ratio)
        else:
            new_h = target_h
            new_w = int(new_h * src_ratio)
        return _fit_resize(img, new_w, new_h)

    if src_ratio > target_ratio:
        crop_h = src_h
        crop_w = int(crop_h * target_ratio)
    else:
        crop_w = src_w
        crop_h = int(crop_w / target_ratio)

    x0 = min(max(int((src_w - crop_w) * focus_x), 0), src_w - crop_w)
    y0 = min(max(int((src_h - crop_h) * focus_y), 0), src_h - crop_h)
    cropped = img.crop((x0, y0, x0 + crop_w, y0 + crop_h))

    if width > 0 or height > 0:
        return _fit_resize(cropped, max(width, 0), max(height, 0))
    return cropped