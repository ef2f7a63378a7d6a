# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Strategy 3: the page's ``application/ld+json`` block."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from .. import MediaRecord
from .base import PageSource, build_record, dig, first_str, parse_iso_timestamp

logger = logging.getLogger(__name__)


def _first_mapping(data: Any) -> Mapping | None:
    if isinstance(data, Mapping):
        graph = data.get("@graph")
        if isinstance(graph, list):
            return _first_mapping(graph)
        return data
    if isinstance(data, list):
        for item in data:
            if isinstance(item, Mapping):
                return item
    return None


def _image_url(img: Any) -> str:
    if isinstance(img, Mapping):
        return first_str(img.get("url"), img.get("contentUrl"))
    if isinstance(img, list):
        return _image_url(img[0]) if img else ""
    return first_str(img)


def _person_name(val: Any) -> str:
    if isinstance(val, list):
        return _person_name(val[0]) if val else ""
    if isinstance(val, Mapping):
        return first_str(val.get("name"), val.get("alternateName"))
    return first_str(val)


class JsonLdStrategy:
    strategy_id = "json_ld"

    def attempt(self, source: PageSource) -> MediaRecord | None:
        block = next(source.scripts("application/ld+json"), None)
        if block is None:
            return None
        try:
            data = _first_mapping(json.loads(block))
        except ValueError as e:
            logger.debug("Failed to parse JSON-LD: %s", e)
            return None
        if data is None:
            return None

        video = data.get("video")
        if isinstance(video, list):
            video = video[0] if video else None
        video_url = first_str(dig(video, "contentUrl"))
        media_url = video_url or _image_url(data.get("image"))
        if not media_url:
            return None

        return build_record(
            media_url=media_url,
            is_video=bool(video_url),
            thumbnail_url=first_str(dig(video, "thumbnailUrl")) if video_url else "",
            caption=first_str(data.get("articleBody"), data.get("caption"), data.get("description")),
            author=_person_name(data.get("author")),
            timestamp=parse_iso_timestamp(first_str(data.get("uploadDate"), data.get("datePublished"))),
        )
