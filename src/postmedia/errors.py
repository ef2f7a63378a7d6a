# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""PostMedia exception hierarchy.

All PostMedia-specific errors inherit from PostMediaError, allowing callers
to catch the base class for any resolution failure or specific subclasses
for targeted handling.
"""

from __future__ import annotations

from typing import Any


class PostMediaError(Exception):
    """Base exception for all PostMedia errors."""


class InvalidPostUrlError(PostMediaError):
    """Input URL is missing or does not look like a post/reel/tv URL."""


class ContentNotFoundError(PostMediaError):
    """No strategy nor the browser fallback produced a media locator."""

    def __init__(self, message: str, *, diagnostics: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.diagnostics = diagnostics or {}


class UpstreamTimeoutError(PostMediaError, TimeoutError):
    """Source page fetch or browser navigation exceeded its time bound."""

    def __init__(self, message: str, *, stage: str = "") -> None:
        super().__init__(message)
        self.stage = stage


class FetchError(PostMediaError):
    """Source page could not be retrieved (transport or HTTP error)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BrowserError(PostMediaError):
    """Browser session launch or navigation failure."""


class MuxError(PostMediaError):
    """Stream download or ffmpeg remux failed."""

    def __init__(self, message: str, *, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode
