"""Blend provider selection driven by ``BLEND_PROVIDER``."""
from __future__ import annotations

import logging
from functools import lru_cache

from mascot_service.config import BlendConfig, get_settings

from .base import BlendProvider
from .null_provider import NullBlendProvider

logger = logging.getLogger("mascot-service")

KNOWN_PROVIDERS = {"auto", "http", "openai", "genai", "none"}


def decide_kind(cfg: BlendConfig) -> str:
    kind = cfg.provider
    if kind not in KNOWN_PROVIDERS:
        raise ValueError(f"Unknown BLEND_PROVIDER={kind}")
    if kind != "auto":
        return kind
    # auto: pick the first backend that has credentials
    if cfg.openai_api_key:
        return "openai"
    if cfg.google_api_key:
        return "genai"
    if cfg.api_url:
        return "http"
    return "none"


def build_provider(cfg: BlendConfig) -> BlendProvider:
    kind = decide_kind(cfg)
    # a single attempt never needs more than the larger window
    request_timeout = max(cfg.timeout_first, cfg.timeout_second, 1.0)

    if kind == "openai":
        from .openai_provider import OpenAIBlendProvider

        return OpenAIBlendProvider(
            cfg.openai_api_key or cfg.api_key or "",
            base_url=cfg.openai_base_url,
            model=cfg.model,
            proxy=cfg.proxy,
            timeout=request_timeout,
        )
    if kind == "genai":
        from .genai_provider import GenAIBlendProvider

        return GenAIBlendProvider(cfg.google_api_key or cfg.api_key or "", model=cfg.model)
    if kind == "http":
        from .http_provider import HttpBlendProvider

        return HttpBlendProvider(
            cfg.api_url or "",
            api_key=cfg.api_key,
            proxy=cfg.proxy,
            timeout=request_timeout,
        )
    return NullBlendProvider()


@lru_cache(maxsize=1)
def get_provider() -> BlendProvider:
    """Return the cached blend provider instance."""

    provider = build_provider(get_settings().blend)
    logger.info("[blend.provider] using %s", provider.name)
    return provider
