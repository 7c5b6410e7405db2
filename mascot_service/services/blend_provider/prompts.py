"""Fixed instruction text sent to generative backends. Not user editable."""
from __future__ import annotations

from .base import BlendMode

FACE_COVERAGE_LIMIT_PCT = 15

WHOLE_IMAGE_INSTRUCTION = (
    "You are given two images. The first is a photo; the second is a mascot "
    "character on a transparent background. Insert the mascot into the photo so "
    "that it looks naturally present in the scene, placed near one of the corners. "
    "Preserve the mascot's exact shape, proportions, outline and colours; do not "
    "redraw or restyle it. Never cover more than {face_pct}% of any person's face. "
    "Match the scene's lighting direction, colour temperature and add a soft "
    "contact shadow consistent with the scene. Keep the rest of the photo unchanged. "
    "Do not add any text, watermarks or logos. Return a single square image of "
    "{size}x{size} pixels."
)

REGION_EDIT_INSTRUCTION = (
    "Blend the mascot already drawn in the editable region into the surrounding "
    "photo. Preserve the mascot's exact shape, proportions and colours. Match the "
    "scene's lighting and colour temperature and refine the shadow beneath the "
    "mascot so it sits naturally in the scene. Do not change anything outside the "
    "editable region. Do not add any text, watermarks or logos. Return a single "
    "square image of {size}x{size} pixels."
)


def instruction_for(mode: BlendMode, size: int) -> str:
    if mode is BlendMode.WHOLE:
        return WHOLE_IMAGE_INSTRUCTION.format(size=size, face_pct=FACE_COVERAGE_LIMIT_PCT)
    return REGION_EDIT_INSTRUCTION.format(size=size)
