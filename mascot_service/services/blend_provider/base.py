from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from io import BytesIO
from typing import ClassVar, FrozenSet, Optional, Protocol, Union

from PIL import Image, UnidentifiedImageError

from mascot_service.models import DraftComposite, InpaintMask, NormalizedImage, RawImage

QUOTA_ERROR_CODES = frozenset(
    {
        "quota_exceeded",
        "insufficient_quota",
        "rate_limited",
        "rate_limit_exceeded",
        "resource_exhausted",
        "too_many_requests",
    }
)


class BlendMode(str, Enum):
    WHOLE = "whole"
    REGION = "region"


@dataclass(frozen=True)
class WholeImageRequest:
    """Two whole images in, one replacement image out."""

    mode: ClassVar[BlendMode] = BlendMode.WHOLE

    base_photo: NormalizedImage
    mascot: RawImage
    instruction: str

    @property
    def size(self) -> int:
        return self.base_photo.size


@dataclass(frozen=True)
class RegionEditRequest:
    """Draft composite plus mask; only the unlocked hole may change."""

    mode: ClassVar[BlendMode] = BlendMode.REGION

    draft: DraftComposite
    mask: InpaintMask
    instruction: str

    @property
    def size(self) -> int:
        return self.draft.image.size


BlendRequest = Union[WholeImageRequest, RegionEditRequest]


class BlendStatus(str, Enum):
    SUCCESS = "success"
    NO_IMAGE = "no_image"
    QUOTA_EXCEEDED = "quota_exceeded"
    MALFORMED = "malformed"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class BlendResult:
    status: BlendStatus
    image: Optional[RawImage] = None
    detail: str = ""

    @property
    def usable(self) -> bool:
        return self.status is BlendStatus.SUCCESS and self.image is not None

    @classmethod
    def success(cls, image: RawImage) -> "BlendResult":
        return cls(BlendStatus.SUCCESS, image=image)

    @classmethod
    def no_image(cls, detail: str = "") -> "BlendResult":
        return cls(BlendStatus.NO_IMAGE, detail=detail)

    @classmethod
    def quota_exceeded(cls, detail: str = "") -> "BlendResult":
        return cls(BlendStatus.QUOTA_EXCEEDED, detail=detail)

    @classmethod
    def malformed(cls, detail: str = "") -> "BlendResult":
        return cls(BlendStatus.MALFORMED, detail=detail)

    @classmethod
    def timeout(cls, detail: str = "") -> "BlendResult":
        return cls(BlendStatus.TIMEOUT, detail=detail)

    @classmethod
    def error(cls, detail: str = "") -> "BlendResult":
        return cls(BlendStatus.ERROR, detail=detail)


class BlendProvider(Protocol):
    name: str
    modes: FrozenSet[BlendMode]

    async def blend(self, request: BlendRequest) -> BlendResult:
        ...


def result_from_image_bytes(data: bytes | None) -> BlendResult:
    """Wrap provider bytes as a success only if they decode as an image."""

    if not data:
        return BlendResult.no_image("empty image payload")
    try:
        with Image.open(BytesIO(data)) as probe:
            probe.verify()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        return BlendResult.malformed(f"payload is not an image: {exc}")
    return BlendResult.success(RawImage(bytes(data)))
