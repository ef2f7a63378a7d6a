# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import postmedia  # noqa: F401
except ImportError:
    raise ImportError("postmedia is not installed. Run: pip install -e '.[dev]'") from None

import pytest
import structlog

from postmedia import MediaRecord, MediaType


@pytest.fixture
def fake_video_record():
    return MediaRecord(
        media_url="https://scontent.cdninstagram.com/o1/v/t2/f2/m367/clip.mp4?efg=q90",
        media_type=MediaType.VIDEO,
        thumbnail_url="https://scontent.cdninstagram.com/v/thumb.jpg",
        caption="from the browser",
        author="reeler",
    )


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Request-scoped log fields must not leak between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
