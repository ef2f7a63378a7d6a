# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Runtime settings.  Defaults < ``POSTMEDIA_*`` environment < CLI flags."""

from __future__ import annotations

import os
from collections.abc import Mapping
from contextlib import suppress
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from .quality import DEFAULT_QUALITY_TOKENS

DEFAULT_PORT = 3000

# URL fragments marking the separately-delivered audio track on the CDN
# (/t16/ and /m69/ audio vs /t2/ and /m367/ video).
DEFAULT_AUDIO_MARKERS: tuple[str, ...] = ("/t16/", "/m69/", "audio", "heaac")

_TRUE = ("1", "true", "yes", "on")


def _split(value: str) -> tuple[str, ...]:
    return tuple(p.strip() for p in value.split(",") if p.strip())


@dataclass(frozen=True)
class Settings:
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    base_url: str = ""
    cache_dir: Path = Path("temp")
    environment: str = "development"
    debug_fetch_enabled: bool = False
    fetch_timeout: float = 10.0
    navigation_timeout_ms: int = 30000
    settle_seconds: float = 5.0
    chromium_executable: str | None = None
    quality_tokens: tuple[str, ...] = DEFAULT_QUALITY_TOKENS
    audio_markers: tuple[str, ...] = DEFAULT_AUDIO_MARKERS
    cors_origins: tuple[str, ...] = ("*",)
    cache_max_age_hours: float | None = None
    log_level: str = "INFO"
    json_logs: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def public_base_url(self) -> str:
        """Externally reachable origin used to build merged-file links."""
        return (self.base_url or f"http://localhost:{self.port}").rstrip("/")

    @property
    def debug_fetch_allowed(self) -> bool:
        return self.debug_fetch_enabled and not self.is_production

    def with_overrides(self, **changes: Any) -> Settings:
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        kw: dict[str, Any] = {}

        if host := env.get("POSTMEDIA_HOST", "").strip():
            kw["host"] = host
        if port := env.get("POSTMEDIA_PORT", env.get("PORT", "")).strip():
            with suppress(ValueError):
                kw["port"] = int(port)
        if base_url := env.get("POSTMEDIA_BASE_URL", env.get("BASE_URL", "")).strip():
            kw["base_url"] = base_url
        if cache_dir := env.get("POSTMEDIA_CACHE_DIR", "").strip():
            kw["cache_dir"] = Path(cache_dir)
        if environment := env.get("POSTMEDIA_ENV", "").strip().lower():
            kw["environment"] = environment
        kw["debug_fetch_enabled"] = env.get("POSTMEDIA_DEBUG_FETCH", "").strip().lower() in _TRUE
        if fetch_timeout := env.get("POSTMEDIA_FETCH_TIMEOUT", "").strip():
            with suppress(ValueError):
                kw["fetch_timeout"] = float(fetch_timeout)
        if nav_timeout := env.get("POSTMEDIA_NAVIGATION_TIMEOUT_MS", "").strip():
            with suppress(ValueError):
                kw["navigation_timeout_ms"] = int(nav_timeout)
        if settle := env.get("POSTMEDIA_SETTLE_SECONDS", "").strip():
            with suppress(ValueError):
                kw["settle_seconds"] = float(settle)
        if chromium := env.get("POSTMEDIA_CHROMIUM_PATH", "").strip():
            kw["chromium_executable"] = chromium
        if tokens := _split(env.get("POSTMEDIA_QUALITY_TOKENS", "")):
            kw["quality_tokens"] = tokens
        if markers := _split(env.get("POSTMEDIA_AUDIO_MARKERS", "")):
            kw["audio_markers"] = markers
        if origins := _split(env.get("POSTMEDIA_CORS_ORIGIN", "")):
            kw["cors_origins"] = origins
        if max_age := env.get("POSTMEDIA_CACHE_MAX_AGE_HOURS", "").strip():
            with suppress(ValueError):
                kw["cache_max_age_hours"] = float(max_age)
        if level := env.get("POSTMEDIA_LOG_LEVEL", "").strip():
            kw["log_level"] = level.upper()
        kw["json_logs"] = env.get("POSTMEDIA_JSON_LOGS", "").strip().lower() in _TRUE

        return cls(**kw)
