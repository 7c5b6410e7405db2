from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from mascot_service.errors import AssetUnavailableError, CompositingError, DecodeError
from mascot_service.models import RawImage
from mascot_service.services.orchestrator import BlendOrchestrator, get_orchestrator

logger = logging.getLogger("mascot-service")

router = APIRouter(prefix="/api", tags=["blend"])


@router.post(
    "/blend",
    response_class=Response,
    responses={200: {"content": {"image/png": {}}}},
)
async def api_blend(
    request: Request,
    orchestrator: BlendOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Raw image body in, mascot PNG out. Provenance is reported in a header."""

    content_type = (request.headers.get("content-type") or "").split(";")[0].strip().lower()
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=415, detail=f"content_type not allowed: {content_type or '-'}")

    body = await request.body()
    if not body:
        raise HTTPException(status_code=400, detail="empty request body")

    rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
    try:
        outcome = await orchestrator.run(RawImage(body, content_type), request_id=rid)
    except DecodeError as exc:
        logger.warning("[api.blend] rid=%s undecodable input: %s", rid, exc)
        raise HTTPException(status_code=422, detail="could not decode image") from exc
    except AssetUnavailableError as exc:
        logger.error("[api.blend] rid=%s mascot unavailable: %s", rid, exc)
        raise HTTPException(status_code=503, detail="mascot asset unavailable") from exc
    except CompositingError as exc:
        logger.error("[api.blend] rid=%s compositing failed: %s", rid, exc)
        raise HTTPException(status_code=500, detail="compositing failed") from exc

    headers = {
        "X-Blend-Provenance": outcome.provenance.value,
        "X-Blend-Attempts": ",".join(outcome.attempts) or "-",
        "X-Request-ID": rid,
    }
    return Response(content=outcome.to_png(), media_type="image/png", headers=headers)
