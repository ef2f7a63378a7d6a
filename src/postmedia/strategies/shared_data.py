# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Strategy 4: legacy ``window._sharedData = {...};`` global state blob."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping

from .. import MediaRecord
from ..quality import pick_rendition, resources_from_json
from .base import PageSource, build_record, dig, first_str, parse_unix_timestamp

logger = logging.getLogger(__name__)

_ASSIGNMENT_RE = re.compile(r"window\._sharedData\s*=\s*(?=\{)")
_DECODER = json.JSONDecoder()


def _subject_media(shared: Mapping, shortcode: str) -> Mapping | None:
    """``shortcode_media`` of the PostPage entry matching *shortcode*."""
    pages = dig(shared, "entry_data", "PostPage")
    if not isinstance(pages, list):
        return None
    for page in pages:
        media = dig(page, "graphql", "shortcode_media")
        if not isinstance(media, Mapping):
            continue
        code = media.get("shortcode")
        if code is None or code == shortcode:
            return media
    return None


class SharedDataStrategy:
    strategy_id = "shared_data"

    def attempt(self, source: PageSource) -> MediaRecord | None:
        shortcode = source.shortcode
        if not shortcode:
            return None
        m = _ASSIGNMENT_RE.search(source.html)
        if m is None:
            return None
        try:
            shared, _ = _DECODER.raw_decode(source.html, m.end())
        except ValueError as e:
            logger.debug("Failed to parse sharedData: %s", e)
            return None
        if not isinstance(shared, Mapping):
            return None

        media = _subject_media(shared, shortcode)
        if media is None:
            return None

        is_video = bool(media.get("is_video")) or media.get("__typename") == "GraphVideo"
        display_url = first_str(media.get("display_url"))
        media_url = first_str(media.get("video_url")) if is_video else display_url
        thumbnail_url = display_url
        if not is_video:
            best = pick_rendition(resources_from_json(media.get("display_resources")))
            if best is not None:
                media_url = thumbnail_url = best.src
        if not media_url:
            return None

        return build_record(
            media_url=media_url,
            is_video=is_video,
            thumbnail_url=thumbnail_url,
            caption=first_str(dig(media, "edge_media_to_caption", "edges", 0, "node", "text")),
            author=first_str(dig(media, "owner", "username")),
            timestamp=parse_unix_timestamp(media.get("taken_at_timestamp")),
        )
