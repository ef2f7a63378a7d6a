# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Strategy 2: JSON objects embedded in ``<script>`` blocks.

Scripts mentioning a media field are scanned for balanced ``{...}`` regions;
each region that parses as JSON is searched depth-first for a media node.
A region that fails to parse is skipped and its nested regions are tried
instead, so one malformed fragment never hides a well-formed one.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from typing import Any

from .. import MediaRecord
from ..quality import pick_rendition, resources_from_json
from .base import NodeExtractor, PageSource, build_record, dig, first_str, parse_unix_timestamp

logger = logging.getLogger(__name__)

MAX_SEARCH_DEPTH = 10

_SCRIPT_MARKERS = ("video_url", "display_url")


def _match_brace(text: str, start: int) -> int | None:
    """Index of the ``}`` closing the ``{`` at *start*, string-literal aware."""
    depth = 0
    in_str = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def iter_json_objects(text: str) -> Iterator[Any]:
    """Yield every balanced ``{...}`` region of *text* that parses as JSON."""
    pos = 0
    while (start := text.find("{", pos)) != -1:
        end = _match_brace(text, start)
        if end is None:
            pos = start + 1
            continue
        try:
            obj = json.loads(text[start : end + 1])
        except ValueError:
            logger.debug("Skipping malformed JSON candidate at offset %d", start)
            pos = start + 1
            continue
        yield obj
        pos = end + 1


def find_first(root: Any, extractor: NodeExtractor, max_depth: int = MAX_SEARCH_DEPTH) -> MediaRecord | None:
    """Pre-order, depth-bounded search for the first node *extractor* accepts.

    Explicit stack instead of recursion.  Children are visited in document
    order; the search stops at the first match.
    """
    stack: list[tuple[Any, int]] = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        if not isinstance(node, (Mapping, list)):
            continue
        record = extractor.try_extract(node)
        if record is not None:
            return record
        if depth >= max_depth:
            continue
        children = node.values() if isinstance(node, Mapping) else node
        stack.extend((child, depth + 1) for child in reversed(list(children)))
    return None


class MediaNodeExtractor:
    """Accepts objects carrying ``video_url``, ``display_url`` or ``display_resources``."""

    def try_extract(self, node: Any) -> MediaRecord | None:
        if not isinstance(node, Mapping):
            return None
        video_url = first_str(node.get("video_url"))
        display_url = first_str(node.get("display_url"))
        resources = node.get("display_resources")
        if not (video_url or display_url or resources):
            return None

        media_url = first_str(video_url, display_url)
        thumbnail_url = first_str(display_url, node.get("thumbnail_src"), video_url)
        if not video_url:
            best = pick_rendition(resources_from_json(resources))
            if best is not None:
                media_url = best.src
                thumbnail_url = best.src
        if not media_url:
            return None

        caption = first_str(
            dig(node, "edge_media_to_caption", "edges", 0, "node", "text"),
            dig(node, "caption", "text"),
            node.get("accessibility_caption"),
        )
        return build_record(
            media_url=media_url,
            is_video=bool(video_url),
            thumbnail_url=thumbnail_url,
            caption=caption,
            author=first_str(dig(node, "owner", "username"), dig(node, "user", "username")),
            timestamp=parse_unix_timestamp(node.get("taken_at_timestamp")),
        )


class ScriptJsonStrategy:
    strategy_id = "script_json"

    def __init__(self, extractor: NodeExtractor | None = None, max_depth: int = MAX_SEARCH_DEPTH) -> None:
        self.extractor = extractor or MediaNodeExtractor()
        self.max_depth = max_depth

    def attempt(self, source: PageSource) -> MediaRecord | None:
        for script in source.scripts():
            if not any(marker in script for marker in _SCRIPT_MARKERS):
                continue
            for obj in iter_json_objects(script):
                record = find_first(obj, self.extractor, self.max_depth)
                if record is not None:
                    return record
        return None
