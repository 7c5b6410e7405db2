from __future__ import annotations

import base64
import binascii
import logging
import time
import uuid
from typing import Any, Dict, FrozenSet, Optional

import httpx

from .base import (
    QUOTA_ERROR_CODES,
    BlendMode,
    BlendRequest,
    BlendResult,
    RegionEditRequest,
    WholeImageRequest,
    result_from_image_bytes,
)

logger = logging.getLogger("mascot-service")


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _error_code(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    error = payload.get("error")
    if isinstance(error, dict):
        code = error.get("code") or error.get("status") or error.get("type")
    else:
        code = error or payload.get("code")
    return str(code or "").strip().lower()


def classify_response(status_code: int, payload: Any) -> BlendResult:
    """Turn a gateway response into one of the blend outcomes."""

    code = _error_code(payload)
    if status_code == 429 or code in QUOTA_ERROR_CODES:
        return BlendResult.quota_exceeded(f"status={status_code} code={code or '-'}")
    if status_code >= 400:
        return BlendResult.error(f"status={status_code} code={code or '-'}")
    if not isinstance(payload, dict):
        return BlendResult.malformed("response body is not a JSON object")
    if code:
        return BlendResult.no_image(f"provider declined: {code}")

    b64 = payload.get("image_base64")
    if not b64:
        data_url = payload.get("data_url")
        if isinstance(data_url, str) and "," in data_url:
            header, b64 = data_url.split(",", 1)
            if not header.startswith("data:") or ";base64" not in header:
                return BlendResult.malformed(f"unsupported data URL header: {header[:32]}")
    if not b64:
        return BlendResult.no_image("response carried no image payload")
    if not isinstance(b64, str):
        return BlendResult.malformed("image payload is not a string")

    try:
        decoded = base64.b64decode(b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        return BlendResult.malformed(f"invalid base64 payload: {exc}")
    return result_from_image_bytes(decoded)


class HttpBlendProvider:
    """
    Generic JSON blend gateway:
      POST {api_url} {mode, prompt, size, images: {...base64}}
        -> {image_base64} | {data_url} | {error: {code}}
    """

    name = "http"
    modes: FrozenSet[BlendMode] = frozenset({BlendMode.WHOLE, BlendMode.REGION})

    def __init__(
        self,
        api_url: str,
        *,
        api_key: Optional[str] = None,
        proxy: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_url:
            raise ValueError("BLEND_API_URL is required for the http blend provider")
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.proxy = proxy
        self.timeout = timeout
        self._transport = transport

    def _payload(self, request: BlendRequest) -> Dict[str, Any]:
        images: Dict[str, str]
        if isinstance(request, WholeImageRequest):
            images = {
                "base": _b64(request.base_photo.to_png()),
                "mascot": _b64(request.mascot.data),
            }
        elif isinstance(request, RegionEditRequest):
            images = {
                "draft": _b64(request.draft.image.to_png()),
                "mask": _b64(request.mask.to_png()),
            }
        else:  # pragma: no cover - guarded by the type union
            raise TypeError(f"unsupported blend request {type(request).__name__}")

        return {
            "mode": request.mode.value,
            "prompt": request.instruction,
            "size": f"{request.size}x{request.size}",
            "images": images,
        }

    def _client(self) -> httpx.AsyncClient:
        kwargs: Dict[str, Any] = {"timeout": self.timeout}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        elif self.proxy:
            kwargs["proxy"] = self.proxy
        return httpx.AsyncClient(**kwargs)

    async def blend(self, request: BlendRequest) -> BlendResult:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        trace_id = uuid.uuid4().hex[:8]
        start = time.time()
        try:
            async with self._client() as client:
                response = await client.post(self.api_url, json=self._payload(request), headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("[blend.http>%s] transport error: %s", trace_id, exc)
            return BlendResult.error(f"transport error: {exc}")

        try:
            payload: Any = response.json()
        except ValueError:
            payload = None
            if response.status_code < 400:
                logger.warning("[blend.http>%s] non-JSON body status=%s", trace_id, response.status_code)
                return BlendResult.malformed("gateway returned non-JSON body")

        result = classify_response(response.status_code, payload)
        logger.info(
            "[blend.http>%s] mode=%s status=%s http=%s time=%.0fms",
            trace_id,
            request.mode.value,
            result.status.value,
            response.status_code,
            (time.time() - start) * 1000,
        )
        return result
