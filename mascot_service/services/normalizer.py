from __future__ import annotations

import logging
from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

from mascot_service.errors import DecodeError
from mascot_service.models import NormalizedImage, RawImage

logger = logging.getLogger(__name__)

RESAMPLE_LANCZOS = Image.Resampling.LANCZOS


def decode_image(raw: RawImage) -> Image.Image:
    """Decode ``raw`` into a fully loaded Pillow image, raising ``DecodeError``."""

    if not raw.data:
        raise DecodeError("empty image payload")
    try:
        image = Image.open(BytesIO(raw.data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"unreadable image ({raw.media_type}, {len(raw.data)} bytes): {exc}") from exc
    return image


def center_square_box(width: int, height: int) -> tuple[int, int, int, int]:
    side = min(width, height)
    left = (width - side) // 2
    top = (height - side) // 2
    return left, top, left + side, top + side


def square_from_image(image: Image.Image, size: int) -> NormalizedImage:
    if size <= 0:
        raise ValueError(f"size must be positive, got {size}")
    upright = ImageOps.exif_transpose(image)
    box = center_square_box(*upright.size)
    cropped = upright.crop(box)
    if cropped.mode != "RGB":
        cropped = cropped.convert("RGBA")
        flattened = Image.new("RGBA", cropped.size, (255, 255, 255, 255))
        flattened.alpha_composite(cropped)
        cropped = flattened.convert("RGB")
    resized = cropped.resize((size, size), RESAMPLE_LANCZOS)
    return NormalizedImage(resized)


def normalize(raw: RawImage, size: int) -> NormalizedImage:
    """Orientation-correct, center-crop and resize ``raw`` to ``size x size``."""

    image = decode_image(raw)
    normalized = square_from_image(image, size)
    logger.debug(
        "[normalize] src=%sx%s type=%s -> %s",
        image.width,
        image.height,
        raw.media_type,
        size,
    )
    return normalized
