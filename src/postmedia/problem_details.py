# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""RFC 9457 Problem Details for the HTTP surface.

Maps PostMedia exceptions to structured error bodies.  Near-leaf module
(stdlib + errors.py + starlette lazy) so any layer can import it.

Bodies also carry ``error``/``message`` keys (title/detail) for clients
that predate the problem+json format.

Type URI namespace: ``https://postmedia.dev/errors/{slug}``
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

_ERROR_BASE = "https://postmedia.dev/errors"

MAX_DETAIL_LENGTH = 200


class ProblemType(StrEnum):
    VALIDATION_ERROR = "validation-error"
    CONTENT_NOT_FOUND = "content-not-found"
    UPSTREAM_TIMEOUT = "upstream-timeout"
    UPSTREAM_FAILED = "upstream-failed"
    INTERNAL_ERROR = "internal-error"

    @property
    def uri(self) -> str:
        return f"{_ERROR_BASE}/{self.value}"


# (status, title, default detail)
_TYPE_METADATA: dict[ProblemType, tuple[int, str, str]] = {
    ProblemType.VALIDATION_ERROR: (400, "Invalid URL", "Please provide a valid post URL."),
    ProblemType.CONTENT_NOT_FOUND: (
        404,
        "Content not found",
        "Could not extract content. The post might be private or deleted.",
    ),
    ProblemType.UPSTREAM_TIMEOUT: (504, "Timeout", "Request to the source timed out. Please try again."),
    ProblemType.UPSTREAM_FAILED: (500, "Server error", "Failed to fetch content. Please try again later."),
    ProblemType.INTERNAL_ERROR: (500, "Server error", "Failed to fetch content. Please try again later."),
}

_CLI_HINTS: dict[ProblemType, str] = {
    ProblemType.VALIDATION_ERROR: "Expected https://www.instagram.com/p|reel|tv/<shortcode>/",
    ProblemType.UPSTREAM_TIMEOUT: "Raise --fetch-timeout or --navigation-timeout-ms and retry",
    ProblemType.INTERNAL_ERROR: "Re-run with -v for a traceback",
}

_SECRET_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"Bearer\s+\S+"), "Bearer <redacted>"),
    (re.compile(r"://[^@\s/]+@"), "://<redacted>@"),
    (re.compile(r"([?&](?:oh|_nc_sid|_nc_ohc|efg|signature|sig|token)=)[^&\s]+"), r"\1<redacted>"),
]

_PATH_PATTERN = re.compile(
    r"(/(?:Users|home|tmp|var|etc|opt|root|srv|usr|private|mnt)/[\w./-]+"
    r"|[A-Z]:\\[\w.\\-]+)"
)


def sanitize_detail(text: str) -> str:
    """Scrub credentials, CDN signatures and filesystem paths, then truncate."""
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    text = _PATH_PATTERN.sub("<path>", text)
    if len(text) > MAX_DETAIL_LENGTH:
        text = text[:MAX_DETAIL_LENGTH] + "..."
    return text


_STANDARD_FIELDS = frozenset({"type", "title", "status", "detail", "instance", "error", "message"})


@dataclass(frozen=True, slots=True)
class ProblemDetail:
    type: str = "about:blank"
    title: str = ""
    status: int = 500
    detail: str = ""
    instance: str = ""
    extensions: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": self.type, "status": self.status}
        if self.title:
            d["title"] = self.title
            d["error"] = self.title
        if self.detail:
            d["detail"] = self.detail
            d["message"] = self.detail
        if self.instance:
            d["instance"] = self.instance
        for k, v in self.extensions.items():
            if k not in _STANDARD_FIELDS:
                d[k] = v
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def to_cli_text(self) -> str:
        """Human-friendly CLI error message.

        Format::

            Error: <detail>
            Hint: <hint>
        """
        lines = [f"Error: {self.detail}"]
        for problem_type, hint in _CLI_HINTS.items():
            if self.type == problem_type.uri:
                lines.append(f"Hint: {hint}")
        return "\n".join(lines)

    def to_response(self):
        """Starlette ``JSONResponse`` with ``application/problem+json``."""
        from starlette.responses import JSONResponse

        headers = {"Cache-Control": "no-store"}
        if self.status == 504:
            headers["Retry-After"] = "5"
        return JSONResponse(
            content=self.to_dict(),
            status_code=self.status,
            media_type="application/problem+json",
            headers=headers,
        )


def _build(problem_type: ProblemType, *, detail: str = "", instance: str = "", **ext: Any) -> ProblemDetail:
    status, title, default_detail = _TYPE_METADATA[problem_type]
    return ProblemDetail(
        type=problem_type.uri,
        title=title,
        status=status,
        detail=sanitize_detail(detail) if detail else default_detail,
        instance=instance,
        extensions={k: v for k, v in ext.items() if v is not None},
    )


def from_validation(detail: str, *, instance: str = "") -> ProblemDetail:
    return _build(ProblemType.VALIDATION_ERROR, detail=detail, instance=instance)


def from_exception(exc: BaseException, *, instance: str = "", expose_debug: bool = False) -> ProblemDetail:
    """Build a ProblemDetail from an exception.

    Known PostMedia errors keep their (sanitized) message.  Anything else
    gets the generic 500 body; the exception text is attached as ``debug``
    only when *expose_debug* is set (non-production).
    """
    from .errors import (
        ContentNotFoundError,
        FetchError,
        InvalidPostUrlError,
        PostMediaError,
    )

    if isinstance(exc, InvalidPostUrlError):
        return _build(ProblemType.VALIDATION_ERROR, detail=str(exc), instance=instance)
    if isinstance(exc, ContentNotFoundError):
        return _build(
            ProblemType.CONTENT_NOT_FOUND,
            detail=str(exc),
            instance=instance,
            debug=exc.diagnostics if expose_debug and exc.diagnostics else None,
        )
    if isinstance(exc, TimeoutError):
        return _build(ProblemType.UPSTREAM_TIMEOUT, instance=instance)
    if isinstance(exc, FetchError):
        return _build(
            ProblemType.UPSTREAM_FAILED,
            instance=instance,
            debug=sanitize_detail(str(exc)) if expose_debug else None,
        )
    if isinstance(exc, PostMediaError):
        return _build(
            ProblemType.INTERNAL_ERROR,
            instance=instance,
            debug=sanitize_detail(str(exc)) if expose_debug else None,
        )
    return _build(
        ProblemType.INTERNAL_ERROR,
        instance=instance,
        debug=sanitize_detail(f"{type(exc).__name__}: {exc}") if expose_debug else None,
    )
