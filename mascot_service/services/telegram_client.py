"""Thin Telegram Bot API adapter: resolve a photo to bytes and deliver a reply."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Optional

import httpx

from mascot_service.config import TelegramConfig, get_settings
from mascot_service.models import RawImage

logger = logging.getLogger("mascot-service")


class TelegramError(RuntimeError):
    """Bot API call failed (transport, non-2xx or ``ok=false``)."""


class TelegramClient:
    def __init__(
        self,
        config: TelegramConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not config.bot_token:
            raise TelegramError("BOT_TOKEN is not configured")
        self.config = config
        self._transport = transport

    @property
    def _api_root(self) -> str:
        return f"{self.config.api_base}/bot{self.config.bot_token}"

    @property
    def _file_root(self) -> str:
        return f"{self.config.api_base}/file/bot{self.config.bot_token}"

    def _client(self) -> httpx.AsyncClient:
        kwargs: Dict[str, Any] = {"timeout": self.config.timeout}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    async def _call(
        self,
        method: str,
        *,
        data: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Any:
        try:
            async with self._client() as client:
                r = await client.post(f"{self._api_root}/{method}", data=data, json=json, files=files)
        except httpx.HTTPError as exc:
            raise TelegramError(f"{method} transport error: {exc}") from exc

        try:
            payload = r.json()
        except ValueError as exc:
            raise TelegramError(f"{method} returned non-JSON body (status={r.status_code})") from exc
        if not isinstance(payload, dict):
            raise TelegramError(f"{method} returned unexpected body (status={r.status_code})")
        if r.status_code >= 400 or not payload.get("ok"):
            raise TelegramError(
                f"{method} failed status={r.status_code} description={payload.get('description')}"
            )
        return payload.get("result")

    async def fetch_file(self, file_id: str) -> RawImage:
        """Resolve ``file_id`` via getFile and download the bytes."""

        result = await self._call("getFile", json={"file_id": file_id})
        file_path = (result or {}).get("file_path")
        if not file_path:
            raise TelegramError(f"getFile returned no file_path for {file_id}")

        try:
            async with self._client() as client:
                r = await client.get(f"{self._file_root}/{file_path}")
                r.raise_for_status()
        except httpx.HTTPError as exc:
            raise TelegramError(f"download of {file_path} failed: {exc}") from exc

        media_type = r.headers.get("content-type", "").split(";")[0].strip()
        if not media_type.startswith("image/"):
            media_type = ""
        logger.info("[telegram.fetch] file_id=%s path=%s bytes=%d", file_id, file_path, len(r.content))
        return RawImage(r.content, media_type)

    async def send_photo(self, chat_id: int | str, png: bytes, *, caption: str | None = None) -> Any:
        data: Dict[str, Any] = {"chat_id": str(chat_id)}
        if caption:
            data["caption"] = caption
        files = {"photo": ("pfp.png", png, "image/png")}
        result = await self._call("sendPhoto", data=data, files=files)
        logger.info("[telegram.send_photo] chat_id=%s bytes=%d", chat_id, len(png))
        return result

    async def send_message(self, chat_id: int | str, text: str) -> Any:
        return await self._call("sendMessage", json={"chat_id": chat_id, "text": text})


@lru_cache(maxsize=1)
def get_telegram_client() -> TelegramClient:
    return TelegramClient(get_settings().telegram)
