"""Process-wide, fetch-once holder for the mascot asset."""
from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import time
from functools import lru_cache
from pathlib import Path
from typing import Awaitable, Callable, Optional

import httpx

from mascot_service.config import MascotConfig, get_settings
from mascot_service.errors import AssetUnavailableError
from mascot_service.models import RawImage

logger = logging.getLogger("mascot-service")

Fetcher = Callable[[str], Awaitable[RawImage]]


def decode_b64_text(text: str) -> bytes:
    t = text.strip()
    if t.startswith("data:image/"):
        comma = t.find(",")
        if comma >= 0:
            t = t[comma + 1 :].strip()
    try:
        return base64.b64decode(t, validate=False)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 content: {e}") from e


def read_local_asset(path: Path) -> bytes:
    """Supports binary images and ``*.b64`` text files (base64 or data URL)."""
    if path.suffix.lower() == ".b64":
        return decode_b64_text(path.read_text(encoding="utf-8", errors="ignore"))
    return path.read_bytes()


async def fetch_asset(source: str, *, timeout: float = 15.0) -> RawImage:
    """Resolve the mascot from a local path or an http(s) URL."""

    token = source.strip()
    if token.lower().startswith(("http://", "https://")):
        try:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                response = await client.get(token)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise AssetUnavailableError(f"failed to download mascot {token}: {exc}") from exc
        media_type = response.headers.get("content-type", "").split(";")[0].strip()
        return RawImage(response.content, media_type)

    path = Path(token).expanduser()
    try:
        data = await asyncio.to_thread(read_local_asset, path)
    except (OSError, ValueError) as exc:
        raise AssetUnavailableError(f"failed to read mascot {path}: {exc}") from exc
    return RawImage(data)


class MascotCache:
    """Loads the mascot at most once and serves the same bytes afterwards.

    Concurrent first callers wait on a single in-flight fetch; once populated
    the value is immutable and reads skip the lock entirely. A failed fetch
    leaves the cache empty so a later request can try again.
    """

    def __init__(
        self,
        source: str | None,
        *,
        fetcher: Optional[Fetcher] = None,
        timeout: float = 15.0,
    ) -> None:
        self.source = source
        self.timeout = timeout
        self._fetcher = fetcher
        self._value: RawImage | None = None
        self._lock = asyncio.Lock()
        self.fetch_count = 0

    @property
    def is_loaded(self) -> bool:
        return self._value is not None

    async def get(self) -> RawImage:
        value = self._value
        if value is not None:
            return value

        async with self._lock:
            if self._value is not None:
                return self._value
            self._value = await self._load()
            return self._value

    async def _load(self) -> RawImage:
        if not self.source:
            raise AssetUnavailableError("MASCOT_SOURCE is not configured")

        self.fetch_count += 1
        start = time.time()
        try:
            if self._fetcher is not None:
                raw = await self._fetcher(self.source)
            else:
                raw = await fetch_asset(self.source, timeout=self.timeout)
        except AssetUnavailableError:
            logger.exception("[mascot.load] source=%s failed", self.source)
            raise
        except Exception as exc:
            logger.exception("[mascot.load] source=%s failed", self.source)
            raise AssetUnavailableError(f"failed to load mascot from {self.source}: {exc}") from exc

        if not raw.data:
            raise AssetUnavailableError(f"mascot source {self.source} returned no bytes")

        logger.info(
            "[mascot.load] source=%s bytes=%d type=%s time=%.0fms",
            self.source,
            len(raw.data),
            raw.media_type,
            (time.time() - start) * 1000,
        )
        return raw


@lru_cache(maxsize=1)
def get_mascot_cache() -> MascotCache:
    """Return the process-wide mascot cache."""

    cfg: MascotConfig = get_settings().mascot
    return MascotCache(cfg.source, timeout=cfg.fetch_timeout)
