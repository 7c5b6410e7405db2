from __future__ import annotations

import base64
import binascii
import logging
import time
import uuid
from typing import FrozenSet, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .base import (
    BlendMode,
    BlendRequest,
    BlendResult,
    WholeImageRequest,
    result_from_image_bytes,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash-image"


class GenAIBlendProvider:
    """google-genai backend: photo + mascot in, blended photo out (whole-image mode)."""

    name = "genai"
    modes: FrozenSet[BlendMode] = frozenset({BlendMode.WHOLE})

    def __init__(self, api_key: str, *, model: Optional[str] = None) -> None:
        if not api_key:
            raise ValueError("GOOGLE_API_KEY is required for the genai blend provider")
        self.api_key = api_key
        self.model = model or DEFAULT_MODEL
        self.client = genai.Client(api_key=api_key)

    def _contents(self, request: WholeImageRequest) -> list[types.Part]:
        mascot = request.mascot
        return [
            types.Part.from_text(text=request.instruction),
            types.Part.from_bytes(data=request.base_photo.to_png(), mime_type="image/png"),
            types.Part.from_bytes(data=mascot.data, mime_type=mascot.media_type or "image/png"),
        ]

    async def blend(self, request: BlendRequest) -> BlendResult:
        if not isinstance(request, WholeImageRequest):
            return BlendResult.error(f"genai provider does not support {request.mode.value} mode")

        trace_id = uuid.uuid4().hex[:8]
        start = time.time()
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=self._contents(request),
                config=types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
            )
        except genai_errors.APIError as exc:
            status = str(getattr(exc, "status", "") or "").upper()
            if exc.code == 429 or status == "RESOURCE_EXHAUSTED":
                logger.warning("[blend.genai>%s] quota exhausted: %s", trace_id, exc)
                return BlendResult.quota_exceeded(str(exc))
            logger.warning("[blend.genai>%s] api error code=%s: %s", trace_id, exc.code, exc)
            return BlendResult.error(f"code={exc.code} status={status or '-'}")
        except httpx.HTTPError as exc:
            logger.warning("[blend.genai>%s] transport error: %s", trace_id, exc)
            return BlendResult.error(f"transport error: {exc}")

        result = self._extract(response)
        logger.info(
            "[blend.genai>%s] model=%s status=%s time=%.0fms",
            trace_id,
            self.model,
            result.status.value,
            (time.time() - start) * 1000,
        )
        return result

    @staticmethod
    def _extract(response: object) -> BlendResult:
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None) if feedback else None
        if block_reason:
            return BlendResult.no_image(f"prompt blocked: {block_reason}")

        for candidate in getattr(response, "candidates", None) or []:
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or []:
                inline = getattr(part, "inline_data", None)
                if not inline or not getattr(inline, "data", None):
                    continue
                data = inline.data
                if isinstance(data, str):
                    try:
                        data = base64.b64decode(data, validate=True)
                    except (binascii.Error, ValueError) as exc:
                        return BlendResult.malformed(f"invalid base64 inline data: {exc}")
                return result_from_image_bytes(data)

        return BlendResult.no_image("response carried no inline image")
