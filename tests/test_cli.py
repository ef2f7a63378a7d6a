# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""CLI argument handling and error output."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest
import structlog

from postmedia import MediaRecord, ResolutionResult
from postmedia.cli import _settings_from_args, build_parser, main
from postmedia.errors import InvalidPostUrlError


@pytest.fixture(autouse=True)
def _reset_logging():
    root = logging.getLogger()
    old_handlers = root.handlers[:]
    old_level = root.level
    yield
    root.handlers = old_handlers
    root.setLevel(old_level)
    structlog.reset_defaults()


class TestParser:
    def test_serve_flags_override_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("POSTMEDIA_PORT", "9000")
        monkeypatch.setenv("POSTMEDIA_HOST", "10.0.0.1")
        args = build_parser().parse_args(["--cache-dir", str(tmp_path), "serve", "--port", "8080"])
        settings = _settings_from_args(args)
        assert settings.port == 8080
        assert settings.host == "10.0.0.1"
        assert settings.cache_dir == Path(tmp_path)

    def test_verbose_sets_debug(self, monkeypatch):
        monkeypatch.delenv("POSTMEDIA_LOG_LEVEL", raising=False)
        args = build_parser().parse_args(["-v", "resolve", "https://www.instagram.com/p/x/"])
        assert _settings_from_args(args).log_level == "DEBUG"

    def test_debug_fetch_flag(self):
        args = build_parser().parse_args(["serve", "--debug-fetch"])
        assert _settings_from_args(args).debug_fetch_enabled

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestResolveCommand:
    def test_prints_record(self, capsys, tmp_path):
        result = ResolutionResult(record=MediaRecord(media_url="https://cdn/a.jpg"), strategy_id="meta_tags")

        async def fake_resolve(url, settings, *, use_browser):
            assert use_browser is False
            body = result.record.to_dict()
            body["strategy"] = result.strategy_id
            return body

        with patch("postmedia.cli._resolve", fake_resolve):
            main(["--cache-dir", str(tmp_path), "resolve", "--no-browser", "https://www.instagram.com/p/x/"])

        out = json.loads(capsys.readouterr().out)
        assert out["mediaUrl"] == "https://cdn/a.jpg"
        assert out["strategy"] == "meta_tags"

    def test_error_exit_code(self, capsys, tmp_path):
        async def fake_resolve(url, settings, *, use_browser):
            raise InvalidPostUrlError("Please provide a valid Instagram post, reel or tv URL")

        with patch("postmedia.cli._resolve", fake_resolve):
            with pytest.raises(SystemExit) as exc_info:
                main(["--cache-dir", str(tmp_path), "resolve", "https://example.com/"])

        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert "Error: Please provide a valid" in err
        assert "Hint:" in err


class TestPurgeCommand:
    def test_purge(self, capsys, tmp_path):
        main(["--cache-dir", str(tmp_path), "purge", "--max-age-hours", "1"])
        assert "Removed 0 file(s)" in capsys.readouterr().out
