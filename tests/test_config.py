# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for Settings defaults, env parsing and overrides."""

from __future__ import annotations

from pathlib import Path

from postmedia.config import DEFAULT_AUDIO_MARKERS, Settings
from postmedia.quality import DEFAULT_QUALITY_TOKENS


class TestDefaults:
    def test_values(self):
        s = Settings()
        assert s.port == 3000
        assert s.cache_dir == Path("temp")
        assert s.fetch_timeout == 10.0
        assert s.navigation_timeout_ms == 30000
        assert s.settle_seconds == 5.0
        assert s.quality_tokens == DEFAULT_QUALITY_TOKENS
        assert s.audio_markers == DEFAULT_AUDIO_MARKERS
        assert not s.is_production

    def test_public_base_url(self):
        assert Settings(port=8080).public_base_url == "http://localhost:8080"
        assert Settings(base_url="https://media.example/").public_base_url == "https://media.example"

    def test_debug_fetch_never_in_production(self):
        assert Settings(debug_fetch_enabled=True).debug_fetch_allowed
        assert not Settings(debug_fetch_enabled=True, environment="production").debug_fetch_allowed


class TestFromEnv:
    def test_empty_env(self):
        assert Settings.from_env({}) == Settings()

    def test_parses_all(self):
        env = {
            "POSTMEDIA_HOST": "0.0.0.0",
            "POSTMEDIA_PORT": "8000",
            "POSTMEDIA_BASE_URL": "https://m.example",
            "POSTMEDIA_CACHE_DIR": "/var/cache/pm",
            "POSTMEDIA_ENV": "Production",
            "POSTMEDIA_DEBUG_FETCH": "true",
            "POSTMEDIA_FETCH_TIMEOUT": "2.5",
            "POSTMEDIA_NAVIGATION_TIMEOUT_MS": "15000",
            "POSTMEDIA_SETTLE_SECONDS": "1",
            "POSTMEDIA_CHROMIUM_PATH": "/usr/bin/chromium",
            "POSTMEDIA_QUALITY_TOKENS": "q90, q70",
            "POSTMEDIA_AUDIO_MARKERS": "/t16/,audio",
            "POSTMEDIA_CORS_ORIGIN": "https://a.example,https://b.example",
            "POSTMEDIA_CACHE_MAX_AGE_HOURS": "24",
            "POSTMEDIA_LOG_LEVEL": "debug",
            "POSTMEDIA_JSON_LOGS": "1",
        }
        s = Settings.from_env(env)
        assert (s.host, s.port, s.base_url) == ("0.0.0.0", 8000, "https://m.example")
        assert s.cache_dir == Path("/var/cache/pm")
        assert s.is_production
        assert s.debug_fetch_enabled and not s.debug_fetch_allowed
        assert s.fetch_timeout == 2.5
        assert s.navigation_timeout_ms == 15000
        assert s.settle_seconds == 1.0
        assert s.chromium_executable == "/usr/bin/chromium"
        assert s.quality_tokens == ("q90", "q70")
        assert s.audio_markers == ("/t16/", "audio")
        assert s.cors_origins == ("https://a.example", "https://b.example")
        assert s.cache_max_age_hours == 24.0
        assert s.log_level == "DEBUG"
        assert s.json_logs

    def test_plain_port_and_base_url(self):
        s = Settings.from_env({"PORT": "5000", "BASE_URL": "https://x.example"})
        assert s.port == 5000
        assert s.base_url == "https://x.example"

    def test_invalid_numbers_ignored(self):
        s = Settings.from_env({"POSTMEDIA_PORT": "http", "POSTMEDIA_FETCH_TIMEOUT": "soon"})
        assert s.port == 3000
        assert s.fetch_timeout == 10.0


class TestOverrides:
    def test_none_ignored(self):
        s = Settings(port=1234).with_overrides(port=None, host="::1")
        assert s.port == 1234
        assert s.host == "::1"
