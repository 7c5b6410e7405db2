from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _as_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except (TypeError, ValueError):
        return default


def _as_float(value: str | None, default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        return float(value.strip())
    except (TypeError, ValueError):
        return default


def _env(*names: str) -> str | None:
    for name in names:
        value = os.getenv(name)
        if value is None:
            continue
        text = value.strip()
        if text:
            return text
    return None


@dataclass
class CanvasConfig:
    output_size: int = 1024
    ai_input_size: int = 512

    @classmethod
    def from_env(cls) -> "CanvasConfig":
        output_size = max(_as_int(os.getenv("OUTPUT_SIZE"), 1024), 64)
        ai_size = max(_as_int(os.getenv("AI_INPUT_SIZE"), 512), 64)
        return cls(output_size=output_size, ai_input_size=min(ai_size, output_size))


@dataclass
class PlacementConfig:
    scale_min: float = 0.18
    scale_max: float = 0.32
    rotation_deg: float = 6.0
    margin_frac: float = 0.04
    shadow_offset_px: int = 6
    shadow_blur_radius: float = 8.0
    shadow_opacity: float = 0.45
    mask_pad_px: int = 24

    def __post_init__(self) -> None:
        if not 0 < self.scale_min < self.scale_max < 1:
            raise ValueError(
                f"placement scale band must satisfy 0 < min < max < 1, got "
                f"{self.scale_min}..{self.scale_max}"
            )
        if self.rotation_deg < 0:
            raise ValueError("PLACEMENT_ROTATION_DEG must be >= 0")
        if not 0 <= self.margin_frac < 0.5:
            raise ValueError("PLACEMENT_MARGIN_FRAC must be within [0, 0.5)")
        if not 0 <= self.shadow_opacity <= 1:
            raise ValueError("SHADOW_OPACITY must be within [0, 1]")
        if self.mask_pad_px < 0:
            raise ValueError("MASK_PAD_PX must be >= 0")

    @classmethod
    def from_env(cls) -> "PlacementConfig":
        return cls(
            scale_min=_as_float(os.getenv("PLACEMENT_SCALE_MIN"), 0.18),
            scale_max=_as_float(os.getenv("PLACEMENT_SCALE_MAX"), 0.32),
            rotation_deg=_as_float(os.getenv("PLACEMENT_ROTATION_DEG"), 6.0),
            margin_frac=_as_float(os.getenv("PLACEMENT_MARGIN_FRAC"), 0.04),
            shadow_offset_px=_as_int(os.getenv("SHADOW_OFFSET_PX"), 6),
            shadow_blur_radius=_as_float(os.getenv("SHADOW_BLUR_RADIUS"), 8.0),
            shadow_opacity=_as_float(os.getenv("SHADOW_OPACITY"), 0.45),
            mask_pad_px=_as_int(os.getenv("MASK_PAD_PX"), 24),
        )


@dataclass
class BlendConfig:
    provider: str = "auto"
    mode: str | None = None
    api_url: str | None = None
    api_key: str | None = None
    model: str | None = None
    proxy: str | None = None
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    google_api_key: str | None = None
    timeout_first: float = 12.0
    timeout_second: float = 10.0
    backoff: float = 1.0

    @property
    def budget_seconds(self) -> float:
        """Worst-case wall clock spent on the generative path."""

        return self.timeout_first + self.backoff + self.timeout_second

    @classmethod
    def from_env(cls) -> "BlendConfig":
        provider = (os.getenv("BLEND_PROVIDER", "auto") or "auto").strip().lower()
        mode = (os.getenv("BLEND_MODE") or "").strip().lower() or None
        if mode not in {None, "whole", "region"}:
            raise ValueError(f"BLEND_MODE must be 'whole' or 'region', got {mode!r}")

        return cls(
            provider=provider,
            mode=mode,
            api_url=_env("BLEND_API_URL"),
            api_key=_env("BLEND_API_KEY"),
            model=_env("BLEND_MODEL"),
            proxy=_env("BLEND_PROXY", "OPENAI_PROXY"),
            openai_api_key=_env("OPENAI_API_KEY"),
            openai_base_url=_env("OPENAI_BASE_URL"),
            google_api_key=_env("GOOGLE_API_KEY", "GEMINI_API_KEY"),
            timeout_first=max(_as_float(os.getenv("BLEND_TIMEOUT_FIRST"), 12.0), 0.0),
            timeout_second=max(_as_float(os.getenv("BLEND_TIMEOUT_SECOND"), 10.0), 0.0),
            backoff=max(_as_float(os.getenv("BLEND_BACKOFF"), 1.0), 0.0),
        )


@dataclass
class MascotConfig:
    source: str | None = None
    fetch_timeout: float = 15.0

    @property
    def is_remote(self) -> bool:
        return bool(self.source) and self.source.lower().startswith(("http://", "https://"))


@dataclass
class TelegramConfig:
    bot_token: str | None = None
    api_base: str = "https://api.telegram.org"
    webhook_secret: str | None = None
    timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token)


@dataclass
class GuardConfig:
    max_body_bytes: int

    @classmethod
    def from_env(cls) -> "GuardConfig":
        raw_max = os.getenv("MAX_BODY_BYTES", "20971520")
        try:
            max_bytes = max(int(raw_max), 0)
        except (TypeError, ValueError):
            max_bytes = 20 * 1024 * 1024
        return cls(max_body_bytes=max_bytes)


@dataclass
class Settings:
    environment: str
    log_level: str
    canvas: CanvasConfig
    placement: PlacementConfig
    blend: BlendConfig
    mascot: MascotConfig
    telegram: TelegramConfig
    guard: GuardConfig


def load_settings() -> Settings:
    def _get(name: str, default: str | None = None) -> str | None:
        v = os.getenv(name)
        return v if v is not None else default

    mascot = MascotConfig(
        source=_env("MASCOT_SOURCE", "MASCOT_URL", "MASCOT_PATH"),
        fetch_timeout=_as_float(_get("MASCOT_FETCH_TIMEOUT"), 15.0),
    )

    telegram = TelegramConfig(
        bot_token=_env("BOT_TOKEN", "TELEGRAM_BOT_TOKEN"),
        api_base=(_get("TELEGRAM_API_BASE", "https://api.telegram.org") or "").rstrip("/")
        or "https://api.telegram.org",
        webhook_secret=_env("TELEGRAM_WEBHOOK_SECRET"),
        timeout=_as_float(_get("TELEGRAM_TIMEOUT"), 30.0),
    )

    return Settings(
        environment=_get("ENVIRONMENT", "development") or "development",
        log_level=(_get("LOG_LEVEL", "INFO") or "INFO").upper(),
        canvas=CanvasConfig.from_env(),
        placement=PlacementConfig.from_env(),
        blend=BlendConfig.from_env(),
        mascot=mascot,
        telegram=telegram,
        guard=GuardConfig.from_env(),
    )


@lru_cache()
def get_settings() -> Settings:
    return load_settings()
