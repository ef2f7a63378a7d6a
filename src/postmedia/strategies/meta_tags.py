# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Strategy 5: OpenGraph / Twitter meta tags, the last resort.

The image here is usually a cropped preview; author comes from the
conventional ``"<Name> (@handle) on Instagram: ..."`` title shape.
"""

from __future__ import annotations

import re

from .. import MediaRecord
from .base import PageSource, build_record, first_str

_VIDEO_KEYS = ("og:video", "og:video:secure_url", "twitter:player:stream")
_TITLE_SUFFIX_RE = re.compile(r"\s+on\s+Instagram\b.*$", re.IGNORECASE | re.DOTALL)


def author_from_title(title: str) -> str:
    """``"Jane Doe (@jane) on Instagram: hi"`` -> ``"Jane Doe"``."""
    name = _TITLE_SUFFIX_RE.sub("", title or "")
    return name.split("(@", 1)[0].strip()


class MetaTagStrategy:
    strategy_id = "meta_tags"

    def attempt(self, source: PageSource) -> MediaRecord | None:
        doc = source.doc
        if doc is None:
            return None

        meta: dict[str, str] = {}
        for el in doc.iter("meta"):
            key = (el.get("property") or el.get("name") or "").strip().lower()
            content = el.get("content")
            if key and content and key not in meta:
                meta[key] = content.strip()

        video_url = first_str(*(meta.get(k) for k in _VIDEO_KEYS))
        image_url = meta.get("og:image", "")
        media_url = video_url or image_url
        if not media_url:
            return None

        title_el = doc.find(".//title")
        title = first_str(
            meta.get("og:title"),
            meta.get("twitter:title"),
            title_el.text_content() if title_el is not None else "",
        )
        return build_record(
            media_url=media_url,
            is_video=bool(video_url),
            thumbnail_url=image_url,
            caption=first_str(meta.get("og:description"), meta.get("description")),
            author=author_from_title(title),
        )
