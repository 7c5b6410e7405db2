from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Response

from mascot_service.config import get_settings
from mascot_service.middlewares.body_guard import BodyGuardMiddleware
from mascot_service.routes.blend import router as blend_router
from mascot_service.routes.telegram import router as telegram_router

settings = get_settings()
LOG_LEVEL = settings.log_level

# align uvicorn with the service log level
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger("uvicorn").setLevel(LOG_LEVEL)
logging.getLogger("uvicorn.error").setLevel(LOG_LEVEL)
logging.getLogger("uvicorn.access").setLevel(LOG_LEVEL)
logging.getLogger("mascot-service").setLevel(LOG_LEVEL)

logger = logging.getLogger("mascot-service")
app = FastAPI(title="Mascot Blend Service", version="1.0.0")

app.add_middleware(BodyGuardMiddleware, max_bytes=settings.guard.max_body_bytes)
logger.info("BodyGuardMiddleware ready", extra={"max_body_bytes": settings.guard.max_body_bytes})

app.include_router(blend_router)
app.include_router(telegram_router)


@app.get("/", include_in_schema=False)
def root() -> dict[str, Any]:
    return {"service": "mascot-service", "ok": True}


@app.head("/", include_in_schema=False)
def root_head() -> Response:
    return Response(status_code=200)


@app.get("/health")
def health() -> dict[str, bool]:
    return {"ok": True}


logger.info(
    "mascot-service ready",
    extra={
        "environment": settings.environment,
        "blend_provider": settings.blend.provider,
        "output_size": settings.canvas.output_size,
        "ai_input_size": settings.canvas.ai_input_size,
        "telegram": settings.telegram.is_configured,
    },
)
