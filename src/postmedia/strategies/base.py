# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared contract and helpers for extraction strategies.

Every strategy exposes ``strategy_id`` and ``attempt(source) -> MediaRecord | None``.
Strategies are pure with respect to the ``PageSource`` they are given and
swallow their own parse failures: a stale strategy returns None, it never
aborts the cascade.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from datetime import UTC, datetime
from functools import cached_property
from typing import Any, Protocol

import lxml.html
from lxml import etree

from .. import UNKNOWN_AUTHOR, MediaRecord, MediaType
from ..normalize import clean_url, decode_entities

logger = logging.getLogger(__name__)

_SHORTCODE_RE = re.compile(r"/(?:p|reel|tv)/([\w-]+)")


def shortcode_from_url(url: str) -> str | None:
    """Identifying path segment of a post URL (``/p/<code>``, ``/reel/<code>``)."""
    m = _SHORTCODE_RE.search(url or "")
    return m.group(1) if m else None


class PageSource:
    """Fetched page handed to every strategy.  The lxml tree is parsed lazily, once."""

    def __init__(self, url: str, html: str) -> None:
        self.url = url
        self.html = html or ""

    @cached_property
    def shortcode(self) -> str | None:
        return shortcode_from_url(self.url)

    @cached_property
    def doc(self) -> lxml.html.HtmlElement | None:
        if not self.html.strip():
            return None
        try:
            parser = lxml.html.HTMLParser(recover=True, encoding="utf-8")
            return lxml.html.document_fromstring(self.html.encode("utf-8"), parser=parser)
        except (etree.ParserError, ValueError) as e:
            logger.debug("lxml parsing failed: %s", e)
            return None

    def scripts(self, script_type: str | None = None) -> Iterator[str]:
        """Yield script bodies in document order, optionally filtered by ``type``."""
        if self.doc is None:
            return
        for el in self.doc.iter("script"):
            if script_type is not None and (el.get("type") or "").strip().lower() != script_type:
                continue
            text = el.text or ""
            if text.strip():
                yield text


class ExtractionStrategy(Protocol):
    strategy_id: str

    def attempt(self, source: PageSource) -> MediaRecord | None: ...


class NodeExtractor(Protocol):
    """Recognizes a media node inside an arbitrary parsed JSON value."""

    def try_extract(self, node: Any) -> MediaRecord | None: ...


# --- Field helpers ---


def dig(data: Any, *path: str | int) -> Any:
    """Safe nested lookup: ``dig(d, "owner", "username")``.  Any miss -> None."""
    cur = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(cur, list) or not -len(cur) <= key < len(cur):
                return None
            cur = cur[key]
        else:
            if not isinstance(cur, Mapping):
                return None
            cur = cur.get(key)
        if cur is None:
            return None
    return cur


def first_str(*values: Any) -> str:
    """First non-empty string among *values*, else ``""``."""
    for v in values:
        if isinstance(v, str) and v.strip():
            return v
    return ""


def parse_unix_timestamp(value: Any) -> datetime | None:
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        return None
    if seconds <= 0:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None


def parse_iso_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        dt = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=UTC)


def build_record(
    *,
    media_url: str,
    is_video: bool,
    thumbnail_url: str = "",
    caption: str = "",
    author: str = "",
    timestamp: datetime | None = None,
) -> MediaRecord | None:
    """Normalize raw field values into a MediaRecord.

    URLs go through ``clean_url``: JSON escapes and entities decoded, image
    URLs additionally size-stripped.
    Returns None when no media URL survives normalization.
    """
    url = clean_url(media_url, image=not is_video)
    if not url:
        return None
    thumb = decode_entities(thumbnail_url) or url
    return MediaRecord(
        media_url=url,
        media_type=MediaType.VIDEO if is_video else MediaType.IMAGE,
        thumbnail_url=thumb,
        caption=decode_entities(caption),
        author=decode_entities(author).strip() or UNKNOWN_AUTHOR,
        timestamp=timestamp,
    )
