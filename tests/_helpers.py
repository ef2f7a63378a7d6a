# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared HTML builders and test doubles for postmedia tests."""

from __future__ import annotations

from postmedia import MediaRecord

POST_URL = "https://www.instagram.com/p/CxYz123AbC/"
REEL_URL = "https://www.instagram.com/reel/CrEeL987Zz/"


def page(*head: str, body: str = "") -> str:
    """Minimal HTML document wrapping the given head fragments."""
    return "<!DOCTYPE html><html><head>" + "".join(head) + "</head><body>" + body + "</body></html>"


def script(content: str, script_type: str = "") -> str:
    attr = f' type="{script_type}"' if script_type else ""
    return f"<script{attr}>{content}</script>"


class FakeFetcher:
    """Returns canned HTML and records every requested URL."""

    def __init__(self, html: str = "", exc: BaseException | None = None) -> None:
        self.html = html
        self.exc = exc
        self.calls: list[str] = []

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        if self.exc is not None:
            raise self.exc
        return self.html

    async def aclose(self) -> None:
        pass


class FakeFallback:
    """Browser fallback double: returns a fixed record or raises."""

    def __init__(self, record: MediaRecord | None = None, exc: BaseException | None = None) -> None:
        self.record = record
        self.exc = exc
        self.calls: list[str] = []

    async def extract(self, url: str) -> MediaRecord | None:
        self.calls.append(url)
        if self.exc is not None:
            raise self.exc
        return self.record
