from __future__ import annotations

import asyncio
import time
from io import BytesIO
from typing import Any, Awaitable, Callable, List, Sequence, Union

import pytest
from PIL import Image, ImageDraw

from mascot_service.config import get_settings
from mascot_service.models import RawImage
from mascot_service.services.blend_provider.base import BlendMode, BlendRequest, BlendResult
from mascot_service.services.blend_provider.factory import get_provider
from mascot_service.services.mascot_cache import get_mascot_cache
from mascot_service.services.orchestrator import get_orchestrator
from mascot_service.services.telegram_client import get_telegram_client


@pytest.fixture(autouse=True)
def _reset_cached_singletons():
    caches = (get_settings, get_provider, get_mascot_cache, get_orchestrator, get_telegram_client)
    for cached in caches:
        cached.cache_clear()
    yield
    for cached in caches:
        cached.cache_clear()


def make_png(
    color: tuple[int, int, int] = (255, 255, 255),
    size: tuple[int, int] = (64, 64),
    fmt: str = "PNG",
) -> bytes:
    image = Image.new("RGB", size, color)
    buffer = BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def make_mascot_png(size: tuple[int, int] = (80, 120), color=(220, 30, 30, 255)) -> bytes:
    """Opaque coloured body on a transparent background."""

    image = Image.new("RGBA", size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(image)
    w, h = size
    draw.rectangle([w // 8, h // 8, w - w // 8 - 1, h - h // 8 - 1], fill=color)
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


Step = Union[BlendResult, Callable[[BlendRequest], Awaitable[BlendResult]]]


def slow(seconds: float, result: BlendResult | None = None) -> Callable[[BlendRequest], Awaitable[BlendResult]]:
    async def _step(request: BlendRequest) -> BlendResult:
        await asyncio.sleep(seconds)
        return result or BlendResult.success(RawImage(make_png((0, 255, 0))))

    return _step


def raising(exc: BaseException) -> Callable[[BlendRequest], Awaitable[BlendResult]]:
    async def _step(request: BlendRequest) -> BlendResult:
        raise exc

    return _step


class ScriptedProvider:
    """Blend provider that replays a fixed script of results, one per call."""

    name = "scripted"

    def __init__(
        self,
        script: Sequence[Step],
        modes: frozenset = frozenset({BlendMode.WHOLE, BlendMode.REGION}),
    ) -> None:
        self.script: List[Step] = list(script)
        self.modes = modes
        self.calls: List[tuple[float, BlendRequest]] = []

    async def blend(self, request: BlendRequest) -> BlendResult:
        self.calls.append((time.monotonic(), request))
        step = self.script[min(len(self.calls), len(self.script)) - 1]
        if callable(step):
            return await step(request)
        return step


class CountingFetcher:
    def __init__(self, data: bytes | None = None, *, delay: float = 0.0, error: Exception | None = None) -> None:
        self.data = data if data is not None else make_mascot_png()
        self.delay = delay
        self.error = error
        self.calls = 0

    async def __call__(self, source: str) -> RawImage:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return RawImage(self.data, "image/png")


@pytest.fixture()
def mascot_bytes() -> bytes:
    return make_mascot_png()


@pytest.fixture()
def photo_bytes() -> bytes:
    return make_png((40, 90, 200), size=(160, 96), fmt="JPEG")


def run(coro: Awaitable[Any]) -> Any:
    return asyncio.run(coro)
