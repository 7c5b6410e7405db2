from __future__ import annotations

import logging
from typing import Tuple

from PIL import Image

from mascot_service.models import InpaintMask, PlacementRect

logger = logging.getLogger(__name__)

LOCKED = (0, 0, 0, 255)
UNLOCKED = (0, 0, 0, 0)


def padded_hole(
    canvas_width: int,
    canvas_height: int,
    rect: PlacementRect,
    pad_px: int,
) -> Tuple[int, int, int, int]:
    """Padded rect clamped to the canvas, as an exclusive ``(l, t, r, b)`` box."""

    pad = max(int(pad_px), 0)
    left = max(rect.left - pad, 0)
    top = max(rect.top - pad, 0)
    right = min(rect.left + rect.width + pad, canvas_width)
    bottom = min(rect.top + rect.height + pad, canvas_height)
    return left, top, max(right, left), max(bottom, top)


def make_mask(
    canvas_width: int,
    canvas_height: int,
    rect: PlacementRect,
    pad_px: int,
) -> InpaintMask:
    """Opaque (locked) canvas with a transparent (editable) hole over the mascot."""

    mask = Image.new("RGBA", (canvas_width, canvas_height), LOCKED)
    hole = padded_hole(canvas_width, canvas_height, rect, pad_px)
    left, top, right, bottom = hole
    if right > left and bottom > top:
        mask.paste(UNLOCKED, hole)

    logger.debug(
        "[mask] canvas=%sx%s hole=%s pad=%s",
        canvas_width,
        canvas_height,
        hole,
        pad_px,
    )
    return InpaintMask(image=mask, hole=hole)
