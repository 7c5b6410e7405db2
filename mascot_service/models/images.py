"""Request-scoped image types passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from typing import List, Tuple

from PIL import Image

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
JPG_MAGIC = b"\xff\xd8\xff"
WEBP_MAGIC = b"RIFF"


def detect_media_type(data: bytes) -> str:
    if data.startswith(PNG_MAGIC):
        return "image/png"
    if data.startswith(JPG_MAGIC):
        return "image/jpeg"
    if data.startswith(WEBP_MAGIC) and data[8:12] == b"WEBP":
        return "image/webp"
    return "application/octet-stream"


def image_to_png_bytes(image: Image.Image) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@dataclass(frozen=True)
class RawImage:
    """Opaque encoded bytes plus the declared encoding."""

    data: bytes
    media_type: str = ""

    def __post_init__(self) -> None:
        if not self.media_type:
            object.__setattr__(self, "media_type", detect_media_type(self.data))

    def __len__(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class NormalizedImage:
    """Square, orientation-corrected RGB canvas."""

    image: Image.Image

    def __post_init__(self) -> None:
        width, height = self.image.size
        if width != height:
            raise ValueError(f"normalized image must be square, got {width}x{height}")

    @property
    def size(self) -> int:
        return self.image.width

    def to_png(self) -> bytes:
        return image_to_png_bytes(self.image)

    def to_raw(self) -> RawImage:
        return RawImage(self.to_png(), "image/png")


@dataclass(frozen=True)
class PlacementPlan:
    """Where, how large and how tilted the mascot should appear."""

    anchor: str
    scale: float
    rotation_degrees: float
    margin_px: int


@dataclass(frozen=True)
class PlacementRect:
    left: int
    top: int
    width: int
    height: int
    rotation_degrees: float = 0.0

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    @property
    def box(self) -> Tuple[int, int, int, int]:
        return self.left, self.top, self.right, self.bottom

    def fits(self, canvas_width: int, canvas_height: int) -> bool:
        return (
            self.left >= 0
            and self.top >= 0
            and self.right <= canvas_width
            and self.bottom <= canvas_height
        )


@dataclass(frozen=True)
class DraftComposite:
    image: NormalizedImage
    rect: PlacementRect


@dataclass(frozen=True)
class InpaintMask:
    """RGBA mask: alpha 255 is locked, alpha 0 may be edited."""

    image: Image.Image
    hole: Tuple[int, int, int, int]

    def to_png(self) -> bytes:
        return image_to_png_bytes(self.image)


class Provenance(str, Enum):
    GENERATIVE = "generative"
    FALLBACK = "fallback"


@dataclass
class BlendOutcome:
    image: NormalizedImage
    provenance: Provenance
    attempts: List[str] = field(default_factory=list)
    request_id: str | None = None

    @property
    def is_generative(self) -> bool:
        return self.provenance is Provenance.GENERATIVE

    def to_png(self) -> bytes:
        return self.image.to_png()
