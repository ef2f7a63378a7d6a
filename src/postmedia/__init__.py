# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""PostMedia: resolve a social-media post URL into a directly playable asset.

The resolution pipeline runs an ordered cascade of extraction strategies over
the fetched page, falls back to a headless browser for reels whose video is
not present in static HTML, and remuxes separately-delivered video and audio
streams into a single cached file.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

UNKNOWN_AUTHOR = "Unknown"


class MediaType(StrEnum):
    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class MediaRecord:
    """A resolved media asset for one post.

    ``media_url`` is non-empty iff extraction succeeded.
    """

    media_url: str
    media_type: MediaType = MediaType.IMAGE
    thumbnail_url: str | None = None
    caption: str = ""
    author: str = UNKNOWN_AUTHOR
    timestamp: datetime | None = None

    @property
    def is_video(self) -> bool:
        return self.media_type is MediaType.VIDEO

    def with_updates(self, **changes: Any) -> MediaRecord:
        return replace(self, **changes)

    def to_dict(self, *, now: datetime | None = None) -> dict[str, Any]:
        """JSON body for the HTTP response (camelCase keys).

        ``timestamp`` falls back to *now* (response time) when the post
        timestamp was not extracted.
        """
        ts = self.timestamp or now or datetime.now(UTC)
        return {
            "mediaUrl": self.media_url,
            "thumbnailUrl": self.thumbnail_url or "",
            "caption": self.caption,
            "author": self.author,
            "mediaType": self.media_type.value,
            "timestamp": ts.isoformat().replace("+00:00", "Z"),
        }


@dataclass(frozen=True, slots=True)
class DisplayResource:
    """One rendition of an image; missing dimensions count as zero area."""

    src: str
    width: int | None = None
    height: int | None = None

    @property
    def area(self) -> int:
        return (self.width or 0) * (self.height or 0)


@dataclass(slots=True)
class ExtractionAttempt:
    """Outcome of running one strategy; kept as a diagnostics trail."""

    strategy_id: str
    matched: bool
    record: MediaRecord | None = None
    error: str = ""


@dataclass
class ResolutionResult:
    """Final pipeline outcome: the record plus how it was reached."""

    record: MediaRecord
    strategy_id: str
    attempts: list[ExtractionAttempt] = field(default_factory=list)
    used_browser_fallback: bool = False
