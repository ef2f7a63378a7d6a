# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Resolution orchestrator: fetch -> strategy cascade -> browser override.

Strategies run in order and the first non-empty media URL wins.  A reel/tv
URL that only resolved to an image (or not at all) is retried through the
browser fallback, whose video result replaces the textual one.  Fallback
failures degrade to the textual result; with no textual result a browser
timeout surfaces as-is so callers can retry.  When nothing resolves, ``ContentNotFoundError`` carries a marker diagnostics
bundle describing the page without leaking its content.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Protocol

from . import ExtractionAttempt, MediaRecord, ResolutionResult
from .errors import ContentNotFoundError, InvalidPostUrlError, PostMediaError
from .normalize import decode_entities
from .pipeline_timer import PipelineTimer
from .strategies import ExtractionStrategy, PageSource, default_strategies

logger = logging.getLogger(__name__)

POST_URL_RE = re.compile(r"^https?://(www\.)?instagram\.com/(p|reel|tv)/[\w-]+/?")

TIME_BASED_MARKERS = ("/reel/", "/tv/")

# Marker substrings reported when every strategy fails.
DIAGNOSTIC_MARKERS = {
    "hasVideoUrl": "video_url",
    "hasDisplayUrl": "display_url",
    "hasJsonLd": "application/ld+json",
    "hasSharedData": "window._sharedData",
    "hasOgVideo": "og:video",
    "hasOgImage": "og:image",
}


class Fetcher(Protocol):
    async def fetch(self, url: str) -> str: ...


class Fallback(Protocol):
    async def extract(self, url: str) -> MediaRecord | None: ...


def validate_post_url(url: object) -> str:
    """Return the trimmed URL or raise ``InvalidPostUrlError``."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidPostUrlError("URL is required")
    url = url.strip()
    if not POST_URL_RE.match(url):
        raise InvalidPostUrlError("Please provide a valid Instagram post, reel or tv URL")
    return url


def is_time_based(url: str) -> bool:
    return any(marker in url for marker in TIME_BASED_MARKERS)


def diagnose(html: str) -> dict[str, object]:
    report: dict[str, object] = {"htmlLength": len(html)}
    for name, marker in DIAGNOSTIC_MARKERS.items():
        report[name] = marker in html
    return report


class ExtractionPipeline:
    """Runs the strategy cascade over fetched HTML and applies the reel override."""

    def __init__(
        self,
        strategies: Sequence[ExtractionStrategy] | None = None,
        *,
        browser_fallback: Fallback | None = None,
    ) -> None:
        self.strategies = list(strategies) if strategies is not None else default_strategies()
        self.browser_fallback = browser_fallback

    def run_strategies(self, source: PageSource) -> tuple[MediaRecord | None, str, list[ExtractionAttempt]]:
        attempts: list[ExtractionAttempt] = []
        for strategy in self.strategies:
            sid = strategy.strategy_id
            try:
                record = strategy.attempt(source)
            except Exception as e:
                logger.warning("Strategy %s raised, skipping: %s", sid, e, exc_info=True)
                attempts.append(ExtractionAttempt(strategy_id=sid, matched=False, error=str(e)))
                continue
            matched = record is not None and bool(record.media_url)
            attempts.append(ExtractionAttempt(strategy_id=sid, matched=matched, record=record))
            if matched:
                logger.info("Extracted via %s (type=%s)", sid, record.media_type)
                return record, sid, attempts
        return None, "", attempts

    async def _try_fallback(self, url: str, *, have_textual: bool) -> MediaRecord | None:
        """Browser result or None.  A timeout propagates when it is the only chance left."""
        try:
            return await self.browser_fallback.extract(url)
        except TimeoutError as e:
            if not have_textual:
                raise
            logger.warning("Browser fallback timed out, keeping textual result: %s", e)
        except PostMediaError as e:
            logger.warning("Browser fallback failed: %s", e)
        except Exception:
            logger.warning("Browser fallback failed unexpectedly", exc_info=True)
        return None

    async def resolve_html(self, url: str, html: str, *, timer: PipelineTimer | None = None) -> ResolutionResult:
        timer = timer or PipelineTimer()
        timer.stage("extract")
        record, strategy_id, attempts = self.run_strategies(PageSource(url, html))

        used_fallback = False
        needs_video = record is None or not record.is_video
        if self.browser_fallback is not None and is_time_based(url) and needs_video:
            logger.info("Video URL resolved to %s, trying browser fallback", record.media_type if record else "nothing")
            timer.stage("browser")
            fallback = await self._try_fallback(url, have_textual=record is not None)
            attempts.append(ExtractionAttempt(strategy_id="browser", matched=fallback is not None, record=fallback))
            if fallback is not None and fallback.is_video:
                record, strategy_id, used_fallback = fallback, "browser", True
                logger.info("Extracted video with browser fallback")

        if record is None or not record.media_url:
            diagnostics = diagnose(html)
            logger.warning("All extraction methods failed: %s", diagnostics)
            raise ContentNotFoundError(
                "Could not extract content. The post might be private or deleted.",
                diagnostics=diagnostics,
            )

        record = record.with_updates(
            media_url=decode_entities(record.media_url),
            thumbnail_url=decode_entities(record.thumbnail_url) or None,
        )
        return ResolutionResult(
            record=record,
            strategy_id=strategy_id,
            attempts=attempts,
            used_browser_fallback=used_fallback,
        )


class PostResolver:
    """Entry point used by the HTTP surface and CLI: URL in, ResolutionResult out."""

    def __init__(self, fetcher: Fetcher, pipeline: ExtractionPipeline) -> None:
        self.fetcher = fetcher
        self.pipeline = pipeline

    async def resolve(self, url: str) -> ResolutionResult:
        url = validate_post_url(url)
        timer = PipelineTimer()
        timer.stage("fetch")
        try:
            html = await self.fetcher.fetch(url)
            result = await self.pipeline.resolve_html(url, html, timer=timer)
        except TimeoutError:
            logger.warning("Resolution timed out: %s", timer.timeout_report())
            raise
        finally:
            timer.finalize()
        logger.info(
            "Resolved via %s in %.1fms %s",
            result.strategy_id,
            timer.total_ms(),
            timer.elapsed_per_stage(),
        )
        return result
