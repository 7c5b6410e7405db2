from __future__ import annotations

from typing import FrozenSet

from .base import BlendMode, BlendRequest, BlendResult


class NullBlendProvider:
    """Used when no generative backend is configured; every request falls back."""

    name = "none"
    modes: FrozenSet[BlendMode] = frozenset({BlendMode.WHOLE, BlendMode.REGION})

    async def blend(self, request: BlendRequest) -> BlendResult:
        return BlendResult.no_image("no blend provider configured")
