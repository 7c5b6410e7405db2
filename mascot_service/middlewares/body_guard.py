from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger("mascot-service.body-guard")

DEFAULT_MAX_BODY_BYTES = 20 * 1024 * 1024


class BodyGuardMiddleware(BaseHTTPMiddleware):
    """Reject uploads and webhook bodies above ``max_bytes``."""

    WATCH_PATH_PREFIXES = ("/api/", "/telegram/")

    def __init__(self, app, *, max_bytes: int | None = None, **_: Any) -> None:  # type: ignore[override]
        self.max_body_bytes = self._normalise_limit(max_bytes, DEFAULT_MAX_BODY_BYTES)
        super().__init__(app)

    @staticmethod
    def _normalise_limit(candidate: int | None, fallback: int) -> int | None:
        if candidate is None:
            candidate = fallback
        if candidate <= 0:
            return None
        return candidate

    def _too_large(self, content_length: int | None, body_len: int) -> bool:
        if self.max_body_bytes is None:
            return False
        if content_length and content_length > self.max_body_bytes:
            return True
        return body_len > self.max_body_bytes

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if request.method not in {"POST", "PUT", "PATCH"}:
            return await call_next(request)

        path = request.url.path
        if not any(path.startswith(prefix) for prefix in self.WATCH_PATH_PREFIXES):
            return await call_next(request)

        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        start = time.time()

        content_length_header = request.headers.get("content-length")
        try:
            content_length = int(content_length_header) if content_length_header else None
        except (TypeError, ValueError):
            content_length = None

        if self._too_large(content_length, 0):
            size = content_length
        else:
            body = await request.body()
            size = len(body)
            if not self._too_large(None, size):
                logger.debug("[guard] rid=%s path=%s size=%s", rid, path, size)

                async def receive() -> dict[str, Any]:
                    return {"type": "http.request", "body": body, "more_body": False}

                response = await call_next(Request(request.scope, receive))
                logger.debug(
                    "[guard] rid=%s done status=%s dur_ms=%s",
                    rid,
                    response.status_code,
                    int((time.time() - start) * 1000),
                )
                return response

        logger.warning(
            "[guard] rid=%s path=%s method=%s cl=%s size=%s reason=oversize",
            rid,
            path,
            request.method,
            content_length_header,
            size,
        )
        return JSONResponse(
            status_code=413,
            content={
                "ok": False,
                "error": "REQUEST_BODY_BLOCKED",
                "reason": f"oversize:{size}",
                "limit": self.max_body_bytes,
            },
        )


__all__ = ["BodyGuardMiddleware"]
