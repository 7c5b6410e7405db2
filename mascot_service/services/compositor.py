"""Local mascot renderer: the always-available fallback path.

Layer order on the base photo:

  1. base photo (opaque RGB)
  2. contact shadow (blurred, darkened silhouette, offset down-right)
  3. mascot (resized by width, rotated about its own center)

No network access happens here; given decodable inputs this must succeed.
"""
from __future__ import annotations

import logging
import math
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image, ImageFilter, UnidentifiedImageError

from mascot_service.config import PlacementConfig
from mascot_service.errors import CompositingError
from mascot_service.models import (
    DraftComposite,
    NormalizedImage,
    PlacementPlan,
    PlacementRect,
    RawImage,
)
from mascot_service.services.placement import resolve_rect, target_width

logger = logging.getLogger(__name__)

RESAMPLE_LANCZOS = Image.Resampling.LANCZOS
RESAMPLE_BICUBIC = Image.Resampling.BICUBIC
TRANSPARENT = (0, 0, 0, 0)


def load_mascot(mascot: RawImage) -> Image.Image:
    try:
        image = Image.open(BytesIO(mascot.data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise CompositingError(f"mascot asset is not a valid image: {exc}") from exc
    return image.convert("RGBA")


def render_mascot(
    mascot: Image.Image,
    plan: PlacementPlan,
    canvas_width: int,
    canvas_height: int,
) -> Image.Image:
    """Scale by width (aspect preserved) then rotate with a transparent fill."""

    width = target_width(plan, canvas_width)
    height = max(1, int(round(width * mascot.height / float(mascot.width))))
    resized = mascot.resize((width, height), RESAMPLE_LANCZOS)
    rotated = resized.rotate(
        plan.rotation_degrees,
        resample=RESAMPLE_BICUBIC,
        expand=True,
        fillcolor=TRANSPARENT,
    )
    if rotated.width > canvas_width or rotated.height > canvas_height:
        # very tall mascots: shrink the rotated box to fit the canvas
        rotated.thumbnail((canvas_width, canvas_height), RESAMPLE_LANCZOS)
    return rotated


def make_shadow(mascot: Image.Image, *, opacity: float, blur_radius: float) -> Tuple[Image.Image, int]:
    """Return a blurred black silhouette of ``mascot`` and the padding added around it."""

    pad = int(math.ceil(max(blur_radius, 0.0) * 2))
    alpha = mascot.getchannel("A").point(lambda a: int(a * opacity))
    silhouette = Image.new("RGBA", mascot.size, (0, 0, 0, 0))
    silhouette.putalpha(alpha)

    padded = Image.new("RGBA", (mascot.width + 2 * pad, mascot.height + 2 * pad), TRANSPARENT)
    padded.paste(silhouette, (pad, pad))
    if blur_radius > 0:
        padded = padded.filter(ImageFilter.GaussianBlur(blur_radius))
    return padded, pad


def composite_layers(
    base: Image.Image,
    mascot: Image.Image,
    rect: PlacementRect,
    config: PlacementConfig,
) -> Image.Image:
    canvas = base.convert("RGBA")

    shadow, pad = make_shadow(
        mascot,
        opacity=config.shadow_opacity,
        blur_radius=config.shadow_blur_radius,
    )
    offset = config.shadow_offset_px
    shadow_layer = Image.new("RGBA", canvas.size, TRANSPARENT)
    shadow_layer.paste(shadow, (rect.left + offset - pad, rect.top + offset - pad))
    canvas = Image.alpha_composite(canvas, shadow_layer)

    mascot_layer = Image.new("RGBA", canvas.size, TRANSPARENT)
    mascot_layer.paste(mascot, (rect.left, rect.top))
    canvas = Image.alpha_composite(canvas, mascot_layer)
    return canvas.convert("RGB")


def composite_draft(
    base: NormalizedImage,
    mascot: RawImage,
    plan: PlacementPlan,
    config: Optional[PlacementConfig] = None,
) -> DraftComposite:
    """Render ``mascot`` onto ``base`` at ``plan`` with a soft contact shadow."""

    cfg = config or PlacementConfig()
    mascot_image = load_mascot(mascot)
    canvas_w, canvas_h = base.image.size

    try:
        rendered = render_mascot(mascot_image, plan, canvas_w, canvas_h)
        rect = resolve_rect(plan, rendered.width, rendered.height, canvas_w, canvas_h)
        composed = composite_layers(base.image, rendered, rect, cfg)
    except (OSError, ValueError) as exc:
        raise CompositingError(f"failed to render mascot: {exc}") from exc

    logger.debug(
        "[compose] canvas=%s rect=(%s,%s,%s,%s) rot=%.2f anchor=%s",
        canvas_w,
        rect.left,
        rect.top,
        rect.width,
        rect.height,
        rect.rotation_degrees,
        plan.anchor,
    )
    return DraftComposite(image=NormalizedImage(composed), rect=rect)
