# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Headless-browser fallback for reels whose video is not in static HTML.

One isolated Chromium session per invocation.  Network responses are
observed passively while the page loads; ``.mp4`` responses are split into
video and audio streams by URL markers, and the first CDN image becomes the
thumbnail.  The session is always closed before any stream is downloaded.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Response, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from . import UNKNOWN_AUTHOR, MediaRecord, MediaType
from .config import DEFAULT_AUDIO_MARKERS
from .errors import BrowserError, MuxError, UpstreamTimeoutError
from .fetcher import DEFAULT_USER_AGENT
from .muxer import MediaMuxer
from .normalize import clean_text, strip_byte_range
from .quality import DEFAULT_QUALITY_TOKENS, select_best_video

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT = {"width": 1920, "height": 1080}
DEFAULT_LOCALE = "en-US"

CDN_IMAGE_HOSTS = ("cdninstagram.com", "fbcdn.net")

# Best-effort caption/author scan of the rendered page.
_METADATA_JS = """
() => {
    const captionEl = document.querySelector('h1')
        || document.querySelector('[class*="Caption"]')
        || document.querySelector('meta[property="og:title"]');
    const userEl = document.querySelector('a[href*="/"]')
        || document.querySelector('meta[property="og:title"]');
    let caption = '';
    let username = '';
    for (const script of document.querySelectorAll('script')) {
        const content = script.textContent || '';
        if (content.includes('edge_media_to_caption')) {
            const m = content.match(/"text":"((?:[^"\\\\]|\\\\.)*)"/);
            if (m) { caption = m[1]; break; }
        }
        if (!username && content.includes('"username"')) {
            const m = content.match(/"username":"([^"]+)"/);
            if (m) { username = m[1]; }
        }
    }
    return {
        caption: caption || (captionEl && (captionEl.textContent || captionEl.content)) || '',
        author: username || (userEl && (userEl.textContent || userEl.content)) || '',
    };
}
"""


class StreamKind(StrEnum):
    VIDEO = "video"
    AUDIO = "audio"


def classify_stream(url: str, content_type: str = "", audio_markers=DEFAULT_AUDIO_MARKERS) -> StreamKind | None:
    """Video/audio/neither for one observed response, by URL heuristics only.

    Only ``.mp4`` URLs count; the content type merely gates which responses
    are looked at.
    """
    if "video" not in content_type and ".mp4" not in url:
        return None
    if ".mp4" not in url:
        return None
    if any(marker in url for marker in audio_markers):
        return StreamKind.AUDIO
    return StreamKind.VIDEO


def is_cdn_image(url: str, content_type: str = "") -> bool:
    if "image" not in content_type and ".jpg" not in url:
        return False
    return any(host in url for host in CDN_IMAGE_HOSTS)


@dataclass
class StreamCapture:
    """Accumulates stream URLs in discovery order, byte-range params removed."""

    audio_markers: tuple[str, ...] = DEFAULT_AUDIO_MARKERS
    video_urls: list[str] = field(default_factory=list)
    audio_urls: list[str] = field(default_factory=list)
    thumbnail_url: str | None = None

    def observe(self, url: str, content_type: str = "") -> None:
        kind = classify_stream(url, content_type, self.audio_markers)
        if kind is StreamKind.AUDIO:
            self._add(self.audio_urls, url)
        elif kind is StreamKind.VIDEO:
            self._add(self.video_urls, url)
        elif self.thumbnail_url is None and is_cdn_image(url, content_type):
            self.thumbnail_url = url

    @staticmethod
    def _add(bucket: list[str], url: str) -> None:
        clean = strip_byte_range(url)
        if clean not in bucket:
            bucket.append(clean)

    def on_response(self, response: Response) -> None:
        try:
            content_type = response.headers.get("content-type", "")
        except Exception:
            content_type = ""
        self.observe(response.url, content_type)


@dataclass
class BrowserConfig:
    """Browser launch configuration."""

    headless: bool = True
    executable_path: str | None = None
    locale: str = DEFAULT_LOCALE
    viewport_width: int = DEFAULT_VIEWPORT["width"]
    viewport_height: int = DEFAULT_VIEWPORT["height"]
    user_agent: str = DEFAULT_USER_AGENT
    timeout_ms: int = 30000
    wait_until: str = "networkidle"
    settle_seconds: float = 5.0


def chromium_launch_args(config: BrowserConfig) -> list[str]:
    return [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-blink-features=AutomationControlled",
        f"--lang={config.locale}",
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-extensions",
        "--no-first-run",
        "--disable-background-networking",
        "--disable-sync",
        "--disable-breakpad",
        "--noerrdialogs",
    ]


class BrowserSession:
    """One Playwright browser, context and page.  Use as ``async with``."""

    def __init__(self, config: BrowserConfig | None = None):
        self.config = config or BrowserConfig()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser session not started. Use async with or call start().")
        return self._page

    async def start(self) -> None:
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                executable_path=self.config.executable_path,
                args=chromium_launch_args(self.config),
            )
        except Exception as exc:
            if "executable doesn't exist" in str(exc).lower():
                raise BrowserError("Chromium is not installed. Please run: playwright install chromium") from exc
            raise BrowserError(f"Browser launch failed: {exc}") from exc

        self._context = await self._browser.new_context(
            viewport={"width": self.config.viewport_width, "height": self.config.viewport_height},
            locale=self.config.locale,
            user_agent=self.config.user_agent,
            service_workers="block",
            accept_downloads=False,
            extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
        )
        self._page = await self._context.new_page()
        logger.info("Browser session started (headless=%s)", self.config.headless)

    async def navigate(self, url: str) -> None:
        """Load *url*, blocking until network idle or the timeout."""
        try:
            await self.page.goto(url, wait_until=self.config.wait_until, timeout=self.config.timeout_ms)
        except PlaywrightTimeoutError as e:
            raise UpstreamTimeoutError(
                f"Browser navigation timed out after {self.config.timeout_ms}ms", stage="browser"
            ) from e

    async def stop(self) -> None:
        """Close everything.  Safe to call on a half-started or crashed session."""
        if self._context:
            with suppress(Exception):
                await self._context.close()
            self._context = None
        self._page = None
        if self._browser:
            with suppress(Exception):
                await self._browser.close()
            self._browser = None
        if self._playwright:
            with suppress(Exception):
                await self._playwright.stop()
            self._playwright = None
        logger.info("Browser session stopped")

    async def __aenter__(self) -> BrowserSession:
        try:
            await self.start()
        except BaseException:
            await self.stop()
            raise
        return self

    async def __aexit__(self, *args) -> None:
        await self.stop()


class BrowserFallback:
    """Resolve a reel by loading it in a real browser and capturing its streams."""

    def __init__(
        self,
        config: BrowserConfig | None = None,
        *,
        muxer: MediaMuxer | None = None,
        quality_tokens: tuple[str, ...] = DEFAULT_QUALITY_TOKENS,
        audio_markers: tuple[str, ...] = DEFAULT_AUDIO_MARKERS,
        session_factory=BrowserSession,
    ) -> None:
        self.config = config or BrowserConfig()
        self.muxer = muxer
        self.quality_tokens = quality_tokens
        self.audio_markers = audio_markers
        self._session_factory = session_factory

    async def _page_metadata(self, page: Page) -> dict[str, Any]:
        try:
            data = await page.evaluate(_METADATA_JS)
        except Exception as e:
            logger.debug("In-page metadata scan failed: %s", e)
            return {}
        return data if isinstance(data, dict) else {}

    async def extract(self, url: str) -> MediaRecord | None:
        """Video record for *url*, or None when no video stream was observed.

        Raises:
            UpstreamTimeoutError: navigation exceeded ``timeout_ms``.
            BrowserError: Chromium could not be launched.
        """
        capture = StreamCapture(audio_markers=self.audio_markers)
        async with self._session_factory(self.config) as session:
            session.page.on("response", capture.on_response)
            logger.info("Navigating to %s", url)
            await session.navigate(url)
            await asyncio.sleep(self.config.settle_seconds)
            metadata = await self._page_metadata(session.page)

        logger.info(
            "Captured %d video URL(s) and %d audio URL(s)",
            len(capture.video_urls),
            len(capture.audio_urls),
        )
        video_url = select_best_video(capture.video_urls, self.quality_tokens)
        if video_url is None:
            return None

        record = MediaRecord(
            media_url=video_url,
            media_type=MediaType.VIDEO,
            thumbnail_url=capture.thumbnail_url or "",
            caption=clean_text(metadata.get("caption") or ""),
            author=clean_text(metadata.get("author") or "").strip() or UNKNOWN_AUTHOR,
        )
        if not capture.audio_urls:
            logger.info("No audio track found, returning video only")
            return record
        if self.muxer is None:
            return record

        try:
            merged = await self.muxer.merge(video_url, capture.audio_urls[0], url)
        except MuxError as e:
            logger.warning("Failed to merge audio/video, falling back to video only: %s", e)
            return record
        return record.with_updates(media_url=self.muxer.public_url(merged))
