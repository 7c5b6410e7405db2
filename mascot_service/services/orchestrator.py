"""End-to-end request driver.

    Normalizing -> Drafting -> Blending(1) -> [backoff] -> Blending(2) -> Resolved

Every request resolves to a ``BlendOutcome`` with an image. Provider failures
(timeout, no image, quota, malformed payload, unexpected exceptions) only decide
between the generative result and the local fallback; decode, asset and
compositing failures end the request.
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
import uuid
from functools import lru_cache
from typing import List, Optional, Tuple

from mascot_service.config import BlendConfig, CanvasConfig, PlacementConfig, get_settings
from mascot_service.errors import DecodeError
from mascot_service.models import (
    BlendOutcome,
    DraftComposite,
    NormalizedImage,
    Provenance,
    RawImage,
)
from mascot_service.services.blend_provider.base import (
    BlendMode,
    BlendProvider,
    BlendRequest,
    BlendResult,
    BlendStatus,
    RegionEditRequest,
    WholeImageRequest,
)
from mascot_service.services.blend_provider.factory import get_provider
from mascot_service.services.blend_provider.prompts import instruction_for
from mascot_service.services.compositor import composite_draft
from mascot_service.services.mascot_cache import MascotCache, get_mascot_cache
from mascot_service.services.mask import make_mask
from mascot_service.services.normalizer import decode_image, square_from_image
from mascot_service.services.placement import PlacementPlanner

logger = logging.getLogger("mascot-service")


class BlendOrchestrator:
    def __init__(
        self,
        *,
        provider: BlendProvider,
        mascot_cache: MascotCache,
        canvas: Optional[CanvasConfig] = None,
        placement: Optional[PlacementConfig] = None,
        blend: Optional[BlendConfig] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.provider = provider
        self.mascot_cache = mascot_cache
        self.canvas = canvas or CanvasConfig()
        self.placement = placement or PlacementConfig()
        self.blend_cfg = blend or BlendConfig()
        self.planner = PlacementPlanner(self.placement, rng)

    @property
    def mode(self) -> BlendMode:
        modes = self.provider.modes
        wanted = self.blend_cfg.mode
        if wanted and BlendMode(wanted) in modes:
            return BlendMode(wanted)
        if BlendMode.REGION in modes:
            return BlendMode.REGION
        return BlendMode.WHOLE

    @property
    def windows(self) -> Tuple[float, float]:
        return self.blend_cfg.timeout_first, self.blend_cfg.timeout_second

    async def run(self, raw: RawImage, *, request_id: Optional[str] = None) -> BlendOutcome:
        rid = request_id or uuid.uuid4().hex[:8]
        start = time.time()

        ai_base, out_base = await asyncio.to_thread(self._normalize_pair, raw)
        mascot = await self.mascot_cache.get()

        draft = await self._draft(ai_base, mascot)
        request = self._build_request(ai_base, mascot, draft)

        attempts: List[str] = []
        for number, window in enumerate(self.windows, start=1):
            if number > 1:
                await asyncio.sleep(self.blend_cfg.backoff)
            result = await self._attempt(request, window, rid=rid, number=number)
            if result.usable:
                image = await asyncio.to_thread(self._finalise, result.image)
                if image is not None:
                    attempts.append(result.status.value)
                    logger.info(
                        "[blend.resolved] rid=%s provenance=generative attempts=%s time=%.0fms",
                        rid,
                        attempts,
                        (time.time() - start) * 1000,
                    )
                    return BlendOutcome(image, Provenance.GENERATIVE, attempts, rid)
                result = BlendResult.malformed("generated image could not be decoded")
            attempts.append(result.status.value)

        fallback = await self._draft(out_base, mascot)
        logger.info(
            "[blend.resolved] rid=%s provenance=fallback attempts=%s time=%.0fms",
            rid,
            attempts,
            (time.time() - start) * 1000,
        )
        return BlendOutcome(fallback.image, Provenance.FALLBACK, attempts, rid)

    def _normalize_pair(self, raw: RawImage) -> Tuple[NormalizedImage, NormalizedImage]:
        image = decode_image(raw)
        ai_base = square_from_image(image, self.canvas.ai_input_size)
        out_base = square_from_image(image, self.canvas.output_size)
        return ai_base, out_base

    async def _draft(self, base: NormalizedImage, mascot: RawImage) -> DraftComposite:
        plan = self.planner.plan(base.size, base.size)
        return await asyncio.to_thread(composite_draft, base, mascot, plan, self.placement)

    def _build_request(
        self,
        base: NormalizedImage,
        mascot: RawImage,
        draft: DraftComposite,
    ) -> BlendRequest:
        mode = self.mode
        instruction = instruction_for(mode, base.size)
        if mode is BlendMode.REGION:
            mask = make_mask(base.size, base.size, draft.rect, self.placement.mask_pad_px)
            return RegionEditRequest(draft=draft, mask=mask, instruction=instruction)
        return WholeImageRequest(base_photo=base, mascot=mascot, instruction=instruction)

    async def _attempt(
        self,
        request: BlendRequest,
        window: float,
        *,
        rid: str,
        number: int,
    ) -> BlendResult:
        """Race one provider call against ``window`` seconds.

        When the timer wins the call is cancelled; whatever it would have
        returned is never looked at.
        """
        start = time.time()
        try:
            result = await asyncio.wait_for(self.provider.blend(request), timeout=window)
        except asyncio.TimeoutError:
            result = BlendResult.timeout(f"no answer within {window:.1f}s")
        except Exception as exc:
            logger.exception("[blend.attempt] rid=%s n=%s provider raised", rid, number)
            result = BlendResult.error(f"{type(exc).__name__}: {exc}")

        log = logger.info if result.status is BlendStatus.SUCCESS else logger.warning
        log(
            "[blend.attempt] rid=%s n=%s provider=%s mode=%s status=%s ms=%d detail=%s",
            rid,
            number,
            getattr(self.provider, "name", "?"),
            request.mode.value,
            result.status.value,
            int((time.time() - start) * 1000),
            result.detail or "-",
        )
        return result

    def _finalise(self, generated: RawImage) -> Optional[NormalizedImage]:
        try:
            image = decode_image(generated)
        except DecodeError as exc:
            logger.warning("[blend.finalise] generated payload unreadable: %s", exc)
            return None
        return square_from_image(image, self.canvas.output_size)


@lru_cache(maxsize=1)
def get_orchestrator() -> BlendOrchestrator:
    settings = get_settings()
    return BlendOrchestrator(
        provider=get_provider(),
        mascot_cache=get_mascot_cache(),
        canvas=settings.canvas,
        placement=settings.placement,
        blend=settings.blend,
    )
