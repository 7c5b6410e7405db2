# -*- coding: utf-8 -*-
"""
OpenAI images.edit backend.
- Region mode: image=<draft>, mask=<inpaint mask> (transparent = editable).
- Whole mode: image=[<photo>, <mascot>] (multi-image edit, gpt-image models).
- The SDK's own retries are disabled; retry policy belongs to the orchestrator.
"""

from __future__ import annotations

import base64
import binascii
import logging
import time
import uuid
from typing import Any, FrozenSet, Optional

import httpx
import openai
from openai import AsyncOpenAI

from .base import (
    QUOTA_ERROR_CODES,
    BlendMode,
    BlendRequest,
    BlendResult,
    RegionEditRequest,
    WholeImageRequest,
    result_from_image_bytes,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-image-1"
_LEGACY_SIZES = (256, 512, 1024)
_DECLINED_CODES = {"moderation_blocked", "content_policy_violation"}

# Only these keyword arguments are passed on to the OpenAI SDK
_ALLOWED_OPENAI_KWARGS = {"api_key", "base_url", "timeout", "max_retries", "http_client"}


def _sanitize_openai_kwargs(kw: dict[str, Any]) -> dict[str, Any]:
    cleaned = {k: v for k, v in kw.items() if k in _ALLOWED_OPENAI_KWARGS}
    for k in set(kw) - _ALLOWED_OPENAI_KWARGS:
        logger.debug("Removed unsupported OpenAI kwarg '%s' from client kwargs", k)
    return cleaned


def _build_openai_client(
    api_key: str,
    *,
    base_url: Optional[str] = None,
    proxy: Optional[str] = None,
    timeout: float = 60.0,
) -> AsyncOpenAI:
    """
    Build the async SDK client:
      - a proxy is configured only on the injected httpx.AsyncClient
      - max_retries=0 so a single attempt stays inside its time window
    """
    if not api_key:
        raise ValueError("OPENAI_API_KEY is not configured.")

    kw: dict[str, Any] = {"api_key": api_key, "timeout": timeout, "max_retries": 0}
    if base_url:
        kw["base_url"] = base_url
    if proxy:
        kw["http_client"] = httpx.AsyncClient(
            proxy=proxy, timeout=httpx.Timeout(timeout, connect=10.0)
        )
    return AsyncOpenAI(**_sanitize_openai_kwargs(kw))


def _request_size(model: str, size: int) -> str:
    if model.startswith("dall-e"):
        side = next((s for s in _LEGACY_SIZES if s >= size), _LEGACY_SIZES[-1])
        return f"{side}x{side}"
    # gpt-image models only accept 1024 squares; the orchestrator resizes the result
    return "1024x1024"


def _status_error_code(exc: openai.APIStatusError) -> str:
    body = exc.body
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict):
            return str(error.get("code") or error.get("type") or "").lower()
    return str(getattr(exc, "code", "") or "").lower()


class OpenAIBlendProvider:
    name = "openai"
    modes: FrozenSet[BlendMode] = frozenset({BlendMode.WHOLE, BlendMode.REGION})

    def __init__(
        self,
        api_key: str,
        *,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        proxy: Optional[str] = None,
        timeout: float = 60.0,
    ) -> None:
        if not api_key:
            raise ValueError("OPENAI_API_KEY is not configured.")
        self.api_key = api_key
        self.base_url = base_url
        self.model = model or DEFAULT_MODEL
        self.proxy = proxy
        self.timeout = timeout

    def _edit_kwargs(self, request: BlendRequest) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "prompt": request.instruction,
            "size": _request_size(self.model, request.size),
            "n": 1,
        }
        if isinstance(request, RegionEditRequest):
            kwargs["image"] = ("draft.png", request.draft.image.to_png(), "image/png")
            kwargs["mask"] = ("mask.png", request.mask.to_png(), "image/png")
        elif isinstance(request, WholeImageRequest):
            mascot = request.mascot
            ext = "png" if mascot.media_type == "image/png" else "jpg"
            kwargs["image"] = [
                ("photo.png", request.base_photo.to_png(), "image/png"),
                (f"mascot.{ext}", mascot.data, mascot.media_type or "image/png"),
            ]
        else:  # pragma: no cover - guarded by the type union
            raise TypeError(f"unsupported blend request {type(request).__name__}")

        if self.model.startswith("dall-e"):
            kwargs["response_format"] = "b64_json"
        return kwargs

    async def blend(self, request: BlendRequest) -> BlendResult:
        trace_id = uuid.uuid4().hex[:8]
        start = time.time()
        client = _build_openai_client(
            self.api_key, base_url=self.base_url, proxy=self.proxy, timeout=self.timeout
        )
        try:
            async with client:
                resp = await client.images.edit(**self._edit_kwargs(request))
        except openai.RateLimitError as exc:
            logger.warning("[blend.openai>%s] rate limited: %s", trace_id, exc)
            return BlendResult.quota_exceeded(str(exc))
        except openai.APIStatusError as exc:
            code = _status_error_code(exc)
            if code in QUOTA_ERROR_CODES:
                return BlendResult.quota_exceeded(f"status={exc.status_code} code={code}")
            if code in _DECLINED_CODES:
                return BlendResult.no_image(f"provider declined: {code}")
            logger.warning("[blend.openai>%s] status=%s code=%s", trace_id, exc.status_code, code)
            return BlendResult.error(f"status={exc.status_code} code={code or '-'}")
        except openai.APIError as exc:
            logger.warning("[blend.openai>%s] api error: %s", trace_id, exc)
            return BlendResult.error(str(exc))

        data = getattr(resp, "data", None) or []
        b64_png = getattr(data[0], "b64_json", None) if data else None
        if not b64_png:
            result = BlendResult.no_image("images.edit returned no b64_json")
        else:
            try:
                result = result_from_image_bytes(base64.b64decode(b64_png, validate=True))
            except (binascii.Error, ValueError) as exc:
                result = BlendResult.malformed(f"invalid base64 payload: {exc}")

        logger.info(
            "[blend.openai>%s] mode=%s model=%s status=%s time=%.0fms",
            trace_id,
            request.mode.value,
            self.model,
            result.status.value,
            (time.time() - start) * 1000,
        )
        return result
