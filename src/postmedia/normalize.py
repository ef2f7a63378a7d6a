# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Entity decoding and CDN URL normalization shared by every strategy.

Pure Python module, no I/O.

- ``decode_entities``: fixed-point decoding of named/numeric HTML entities.
  Handles double/triple encoding (``&amp;amp;`` -> ``&``,
  ``&amp;#x1f9d9;`` -> emoji).  Only ``;``-terminated references are decoded
  so query strings such as ``&copy=1`` survive untouched.
- ``strip_size_constraints``: drop CDN cache/signature/size-hint parameters
  and ``/s640x640``-style path segments from *image* URLs.
- ``unescape_json_text``: undo JSON string escaping on text captured by regex
  from raw page source (``\\u0026``, ``\\/``, ``\\n``, surrogate pairs).
- ``strip_byte_range``: drop ``bytestart``/``byteend`` from captured stream URLs.
"""

from __future__ import annotations

import json
import re
from html.entities import html5

MAX_DECODE_PASSES = 10

_ENTITY_RE = re.compile(r"&(#[0-9]{1,8}|#[xX][0-9a-fA-F]{1,7}|[A-Za-z][A-Za-z0-9]{1,31});")

# Query keys the CDN uses for caching, signatures and size hints.
SIZE_CONSTRAINT_PARAMS = frozenset(
    {
        "stp",
        "_nc_cat",
        "ccb",
        "_nc_sid",
        "efg",
        "_nc_ohc",
        "_nc_oc",
        "_nc_zt",
        "_nc_ht",
        "_nc_gid",
    }
)

# Path segment encoding an explicit WxH box: /s640x640, /p1080x1080, /s640x640_sh0.08
_SIZE_SEGMENT_RE = re.compile(r"/[sp]\d+x\d+(?:[a-z]?_[\w.-]*)?(?=/|$)")

_QUERY_SPLIT_RE = re.compile(r"[?&]+")

_BYTE_RANGE_PARAMS = ("bytestart", "byteend")

_UNICODE_ESCAPE_RE = re.compile(r"\\u([0-9a-fA-F]{4})")

_SIMPLE_ESCAPES = {
    "\\n": "\n",
    "\\r": "\r",
    "\\t": "\t",
    '\\"': '"',
    "\\/": "/",
}


def _decode_reference(m: re.Match[str]) -> str:
    ref = m.group(1)
    if ref[0] != "#":
        return html5.get(ref + ";", m.group(0))
    try:
        cp = int(ref[2:], 16) if ref[1] in "xX" else int(ref[1:], 10)
    except ValueError:
        return m.group(0)
    if cp == 0 or cp > 0x10FFFF or 0xD800 <= cp <= 0xDFFF:
        return m.group(0)
    return chr(cp)


def decode_entities(text: str | None) -> str:
    """Decode HTML entities repeatedly until nothing changes.

    Stops after ``MAX_DECODE_PASSES`` and returns the best-effort result
    instead of raising.  ``None`` and ``""`` both yield ``""``.
    """
    if not text:
        return ""
    decoded = text
    for _ in range(MAX_DECODE_PASSES):
        nxt = _ENTITY_RE.sub(_decode_reference, decoded)
        if nxt == decoded:
            break
        decoded = nxt
    return decoded


def strip_size_constraints(url: str | None) -> str:
    """Remove CDN size/cache parameters and WxH path segments from an image URL.

    Idempotent.  Never call this on video URLs: they already reference a
    concrete rendition and the signature parameters are required.
    """
    if not url:
        return ""
    base, hash_sep, fragment = url.partition("#")
    path, _, query = base.partition("?")

    # Never touch the scheme/host part.
    origin = ""
    scheme_end = path.find("://")
    if scheme_end != -1:
        host_end = path.find("/", scheme_end + 3)
        if host_end == -1:
            origin, path = path, ""
        else:
            origin, path = path[:host_end], path[host_end:]
    path = origin + _SIZE_SEGMENT_RE.sub("", path)

    kept = []
    for pair in _QUERY_SPLIT_RE.split(query):
        if not pair:
            continue
        key = pair.split("=", 1)[0]
        if key in SIZE_CONSTRAINT_PARAMS:
            continue
        kept.append(pair)

    result = path
    if kept:
        result += "?" + "&".join(kept)
    if hash_sep:
        result += "#" + fragment
    return result


def unescape_json_text(raw: str | None) -> str:
    """Undo JSON string escaping on a value captured from raw page source.

    Falls back to a lenient replacement pass when *raw* is not a valid JSON
    string body (e.g. truncated escape at the end).
    """
    if not raw:
        return ""
    if "\\" not in raw:
        return raw
    try:
        value = json.loads(f'"{raw}"')
        if isinstance(value, str):
            return value
    except json.JSONDecodeError:
        pass
    text = _UNICODE_ESCAPE_RE.sub(lambda m: chr(int(m.group(1), 16)), raw)
    for esc, char in _SIMPLE_ESCAPES.items():
        text = text.replace(esc, char)
    return text.replace("\\\\", "\\")


def clean_url(raw: str | None, *, image: bool) -> str:
    """Full URL normalization: JSON unescape, entity decode, and (images only) size strip."""
    url = decode_entities(unescape_json_text(raw))
    if image:
        url = strip_size_constraints(url)
    return url


def clean_text(raw: str | None) -> str:
    """Caption/author normalization for values captured from raw source."""
    return decode_entities(unescape_json_text(raw))


def strip_byte_range(url: str | None) -> str:
    """Drop ``bytestart``/``byteend`` so the whole stream is fetched, not a chunk."""
    if not url:
        return ""
    base, sep, query = url.partition("?")
    if not sep:
        return url
    params = [p for p in query.split("&") if p and not p.startswith(_BYTE_RANGE_PARAMS)]
    if not params:
        return base
    return f"{base}?{'&'.join(params)}"
