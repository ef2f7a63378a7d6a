# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Extraction strategy cascade.

Order matters: most reliable against current markup first, meta tags last.
"""

from __future__ import annotations

from .base import ExtractionStrategy, NodeExtractor, PageSource, shortcode_from_url
from .inline_fields import InlineFieldStrategy
from .jsonld import JsonLdStrategy
from .meta_tags import MetaTagStrategy
from .script_json import MediaNodeExtractor, ScriptJsonStrategy
from .shared_data import SharedDataStrategy


def default_strategies() -> list[ExtractionStrategy]:
    return [
        InlineFieldStrategy(),
        ScriptJsonStrategy(),
        JsonLdStrategy(),
        SharedDataStrategy(),
        MetaTagStrategy(),
    ]


__all__ = [
    "ExtractionStrategy",
    "InlineFieldStrategy",
    "JsonLdStrategy",
    "MediaNodeExtractor",
    "MetaTagStrategy",
    "NodeExtractor",
    "PageSource",
    "ScriptJsonStrategy",
    "SharedDataStrategy",
    "default_strategies",
    "shortcode_from_url",
]
