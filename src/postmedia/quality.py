# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Variant selection: largest image rendition, best-quality captured video."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from . import DisplayResource

logger = logging.getLogger(__name__)

# Best-to-worst.  CDN encodes the quality tier into the stream URL.
DEFAULT_QUALITY_TOKENS: tuple[str, ...] = ("q90", "q80", "q70", "q60", "q50", "q40")


def _to_dim(v: Any) -> int | None:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def resources_from_json(items: Any) -> list[DisplayResource]:
    """Build a candidate set from a parsed ``display_resources`` array.

    Accepts ``config_width``/``config_height`` or ``width``/``height``.
    Entries without a string ``src`` are dropped.
    """
    if not isinstance(items, list):
        return []
    out: list[DisplayResource] = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        src = item.get("src") or item.get("url")
        if not isinstance(src, str) or not src:
            continue
        width = _to_dim(item.get("config_width", item.get("width")))
        height = _to_dim(item.get("config_height", item.get("height")))
        out.append(DisplayResource(src=src, width=width, height=height))
    return out


def select_best_image(candidates: Iterable[DisplayResource]) -> DisplayResource | None:
    """Return the maximum-area candidate; ties go to the earliest one."""
    best: DisplayResource | None = None
    for candidate in candidates:
        if best is None or candidate.area > best.area:
            best = candidate
    return best


def pick_rendition(candidates: Sequence[DisplayResource]) -> DisplayResource | None:
    """Resource-array pick used by the strategies in front of ``select_best_image``.

    Resource arrays are listed smallest-first, so when no entry carries
    sizes the tail is taken.  Otherwise the max-area, first-on-tie rule of
    ``select_best_image`` applies unchanged.
    """
    if not candidates:
        return None
    if all(c.area == 0 for c in candidates):
        return candidates[-1]
    return select_best_image(candidates)


def select_best_video(
    urls: Sequence[str],
    quality_tokens: Sequence[str] = DEFAULT_QUALITY_TOKENS,
) -> str | None:
    """Pick the URL carrying the highest-priority quality token.

    Tokens are tried best-to-worst; within a token the first captured URL
    wins.  No token match -> first captured URL.  Empty input -> None.
    """
    if not urls:
        return None
    for token in quality_tokens:
        for url in urls:
            if token in url:
                logger.debug("Selected %s quality video", token)
                return url
    return urls[0]
