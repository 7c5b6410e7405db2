from __future__ import annotations

import logging
import random
from typing import Optional, Tuple

from mascot_service.config import PlacementConfig
from mascot_service.models import PlacementPlan, PlacementRect

logger = logging.getLogger(__name__)

ANCHORS: Tuple[str, ...] = ("top-left", "top-right", "bottom-left", "bottom-right")


class PlacementPlanner:
    """Constrained-random choice of corner, width fraction and tilt.

    The random source is injected so a seeded ``random.Random`` reproduces
    the exact same placement sequence.
    """

    def __init__(
        self,
        config: Optional[PlacementConfig] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or PlacementConfig()
        self.rng = rng if rng is not None else random.Random()

    def plan(self, canvas_width: int, canvas_height: int) -> PlacementPlan:
        if canvas_width <= 0 or canvas_height <= 0:
            raise ValueError(f"invalid canvas {canvas_width}x{canvas_height}")

        cfg = self.config
        anchor = self.rng.choice(ANCHORS)
        scale = self.rng.uniform(cfg.scale_min, cfg.scale_max)
        rotation = self.rng.uniform(-cfg.rotation_deg, cfg.rotation_deg)
        margin = int(round(canvas_width * cfg.margin_frac))

        plan = PlacementPlan(
            anchor=anchor,
            scale=scale,
            rotation_degrees=rotation,
            margin_px=margin,
        )
        logger.debug(
            "[placement.plan] canvas=%sx%s anchor=%s scale=%.3f rot=%.2f margin=%s",
            canvas_width,
            canvas_height,
            anchor,
            scale,
            rotation,
            margin,
        )
        return plan


def target_width(plan: PlacementPlan, canvas_width: int) -> int:
    """Rendered mascot width before rotation."""

    return max(1, min(int(round(canvas_width * plan.scale)), canvas_width))


def resolve_rect(
    plan: PlacementPlan,
    item_width: int,
    item_height: int,
    canvas_width: int,
    canvas_height: int,
) -> PlacementRect:
    """Anchor an ``item_width x item_height`` box in the planned corner.

    The box is clamped so it always lies fully inside the canvas; callers must
    shrink items larger than the canvas before resolving.
    """

    if item_width > canvas_width or item_height > canvas_height:
        raise ValueError(
            f"item {item_width}x{item_height} does not fit canvas {canvas_width}x{canvas_height}"
        )

    margin = plan.margin_px
    if plan.anchor.endswith("left"):
        left = margin
    else:
        left = canvas_width - margin - item_width
    if plan.anchor.startswith("top"):
        top = margin
    else:
        top = canvas_height - margin - item_height

    left = min(max(left, 0), canvas_width - item_width)
    top = min(max(top, 0), canvas_height - item_height)
    return PlacementRect(
        left=left,
        top=top,
        width=item_width,
        height=item_height,
        rotation_degrees=plan.rotation_degrees,
    )
