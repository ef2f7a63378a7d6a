# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Strategy 1: regex scan of the raw page source for explicit media fields.

Most reliable against current markup: the post payload is inlined as JSON
text somewhere in the page, and the field names are stable even when the
surrounding structure is not.
"""

from __future__ import annotations

import json
import logging
import re

from .. import MediaRecord
from ..normalize import unescape_json_text
from ..quality import pick_rendition, resources_from_json
from .base import PageSource, build_record, parse_unix_timestamp

logger = logging.getLogger(__name__)

# Body of a JSON string literal, escapes included.
_JSTR = r'((?:[^"\\]|\\.)*)'

_VIDEO_PATTERNS = (
    re.compile(r'"video_url"\s*:\s*"' + _JSTR + '"'),
    re.compile(r'"playback_url"\s*:\s*"' + _JSTR + '"'),
    re.compile(r'"video_versions"\s*:\s*\[\s*\{[^{}]*?"url"\s*:\s*"' + _JSTR + '"'),
)
_DISPLAY_RE = re.compile(r'"display_url"\s*:\s*"' + _JSTR + '"')
_THUMBNAIL_RE = re.compile(r'"thumbnail_src"\s*:\s*"' + _JSTR + '"')
_BEST_IMAGE_RE = re.compile(r'"best_image_url"\s*:\s*"' + _JSTR + '"')
_RESOURCES_RE = re.compile(r'"display_resources"\s*:\s*\[(.*?)\]', re.DOTALL)
_RESOURCE_ENTRY_RE = re.compile(r"\{[^{}]*\}")

_CAPTION_RE = re.compile(
    r'"edge_media_to_caption"\s*:\s*\{\s*"edges"\s*:\s*\[\s*\{\s*"node"\s*:\s*\{\s*"text"\s*:\s*"' + _JSTR + '"'
)
_OWNER_RE = re.compile(r'"owner"\s*:\s*\{\s*"id"\s*:\s*"[^"]*"\s*,\s*"username"\s*:\s*"' + _JSTR + '"')
_TAKEN_AT_RE = re.compile(r'"taken_at_timestamp"\s*:\s*(\d+)')


def _search(pattern: re.Pattern[str], text: str) -> str:
    m = pattern.search(text)
    return unescape_json_text(m.group(1)) if m else ""


def _best_resource_url(html: str) -> str:
    """Largest rendition from the first non-empty ``display_resources`` array."""
    for m in _RESOURCES_RE.finditer(html):
        items = []
        for raw in _RESOURCE_ENTRY_RE.findall(m.group(1)):
            try:
                items.append(json.loads(raw))
            except ValueError:
                logger.debug("Skipping malformed display_resources entry")
        best = pick_rendition(resources_from_json(items))
        if best is not None:
            logger.debug("High-quality image from display_resources (%d px)", best.area)
            return best.src
    return ""


class InlineFieldStrategy:
    strategy_id = "inline_fields"

    def attempt(self, source: PageSource) -> MediaRecord | None:
        html = source.html
        video_url = ""
        for pattern in _VIDEO_PATTERNS:
            video_url = _search(pattern, html)
            if video_url:
                break
        display_url = _search(_DISPLAY_RE, html)
        if not video_url and not display_url:
            return None

        if video_url:
            media_url = video_url
        else:
            media_url = _best_resource_url(html) or _search(_BEST_IMAGE_RE, html) or display_url

        # Companion fields are independent: a miss never blocks the media URL.
        taken_at = _TAKEN_AT_RE.search(html)
        return build_record(
            media_url=media_url,
            is_video=bool(video_url),
            thumbnail_url=display_url or _search(_THUMBNAIL_RE, html),
            caption=_search(_CAPTION_RE, html),
            author=_search(_OWNER_RE, html),
            timestamp=parse_unix_timestamp(taken_at.group(1)) if taken_at else None,
        )
