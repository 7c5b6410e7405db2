"""Image types shared by the compositing pipeline."""

from .images import (  # noqa: F401
    BlendOutcome,
    DraftComposite,
    InpaintMask,
    NormalizedImage,
    PlacementPlan,
    PlacementRect,
    Provenance,
    RawImage,
    detect_media_type,
    image_to_png_bytes,
)

__all__ = [
    "BlendOutcome",
    "DraftComposite",
    "InpaintMask",
    "NormalizedImage",
    "PlacementPlan",
    "PlacementRect",
    "Provenance",
    "RawImage",
    "detect_media_type",
    "image_to_png_bytes",
]
