# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for postmedia.normalize: entity decoding and CDN URL cleanup."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from postmedia.normalize import (
    MAX_DECODE_PASSES,
    clean_text,
    clean_url,
    decode_entities,
    strip_byte_range,
    strip_size_constraints,
    unescape_json_text,
)

URL_ALPHABET = st.sampled_from(list("abcxyz0123456789/?&=#_.-:sp") + ["stp", "_nc_ht", "efg", "s640x640", "&amp;"])
URLISH = st.lists(URL_ALPHABET, max_size=40).map("".join)


class TestDecodeEntities:
    def test_named(self):
        assert decode_entities("a &amp; b &lt;c&gt; &quot;d&quot;") == 'a & b <c> "d"'

    def test_numeric_decimal_and_hex(self):
        assert decode_entities("&#39;&#x27;&#X41;") == "''A"

    def test_double_encoded(self):
        assert decode_entities("&amp;amp;") == "&"

    def test_triple_encoded(self):
        assert decode_entities("&amp;amp;amp;lt;") == "<"

    def test_encoded_emoji(self):
        assert decode_entities("&amp;#x1f9d9;") == "\U0001f9d9"

    def test_unterminated_reference_kept(self):
        assert decode_entities("x.jpg?a=1&copy=2") == "x.jpg?a=1&copy=2"

    def test_unknown_named_kept(self):
        assert decode_entities("&notanentity;") == "&notanentity;"

    def test_invalid_codepoints_kept(self):
        assert decode_entities("&#0;&#xD800;&#x110000;") == "&#0;&#xD800;&#x110000;"

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty(self, value):
        assert decode_entities(value) == ""

    def test_pass_limit_returns_best_effort(self):
        deep = "&" + "amp;" * (MAX_DECODE_PASSES + 3) + "lt;"
        out = decode_entities(deep)
        assert out.startswith("&")
        assert out != deep

    def test_url_query_ampersands(self):
        raw = "https://cdn.example/x.jpg?stp=dst&amp;_nc_ht=abc&amp;oh=00_sig"
        assert decode_entities(raw) == "https://cdn.example/x.jpg?stp=dst&_nc_ht=abc&oh=00_sig"

    @given(st.text(max_size=300))
    @settings(max_examples=300)
    def test_idempotent(self, text):
        once = decode_entities(text)
        assert decode_entities(once) == once


class TestStripSizeConstraints:
    def test_drops_listed_params(self):
        url = "https://cdn.example/v/a.jpg?stp=dst-jpg_e35&_nc_ht=h&_nc_cat=1&ccb=7-5&oh=00_sig&oe=ABC"
        assert strip_size_constraints(url) == "https://cdn.example/v/a.jpg?oh=00_sig&oe=ABC"

    def test_drops_every_param_then_question_mark(self):
        assert strip_size_constraints("https://cdn.example/a.jpg?efg=x&_nc_sid=y") == "https://cdn.example/a.jpg"

    def test_drops_size_segments(self):
        url = "https://cdn.example/v/s640x640/p1080x1080/a.jpg"
        assert strip_size_constraints(url) == "https://cdn.example/v/a.jpg"

    def test_size_segment_with_suffix(self):
        url = "https://cdn.example/v/s640x640_sh0.08/a.jpg"
        assert strip_size_constraints(url) == "https://cdn.example/v/a.jpg"

    def test_keeps_host_and_fragment(self):
        url = "https://s640x640.example/a.jpg?stp=1#frag"
        assert strip_size_constraints(url) == "https://s640x640.example/a.jpg#frag"

    def test_collapses_separator_runs(self):
        assert strip_size_constraints("https://c/a.jpg?&&oh=1&&stp=2&") == "https://c/a.jpg?oh=1"

    def test_plain_url_untouched(self):
        url = "https://cdn.example/v/a.jpg?oh=1&oe=2"
        assert strip_size_constraints(url) == url

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty(self, value):
        assert strip_size_constraints(value) == ""

    @given(URLISH)
    @settings(max_examples=300)
    def test_idempotent(self, url):
        once = strip_size_constraints(url)
        assert strip_size_constraints(once) == once

    @given(st.text(max_size=200))
    def test_idempotent_arbitrary_text(self, url):
        once = strip_size_constraints(url)
        assert strip_size_constraints(once) == once


class TestUnescapeJsonText:
    def test_slashes_and_unicode(self):
        assert unescape_json_text(r"https:\/\/cdn\/a.jpg?x=1&y=2") == "https://cdn/a.jpg?x=1&y=2"

    def test_surrogate_pair(self):
        assert unescape_json_text(r"hi \ud83d\ude00") == "hi \U0001f600"

    def test_no_escapes_passthrough(self):
        assert unescape_json_text("plain") == "plain"

    def test_lenient_on_invalid_escape(self):
        assert unescape_json_text(r"a\/b\q") == r"a/b\q"


class TestCleanHelpers:
    def test_clean_url_image(self):
        raw = r"https:\/\/cdn.example\/v\/s640x640\/a.jpg?stp=dst&amp;oh=1"
        assert clean_url(raw, image=True) == "https://cdn.example/v/a.jpg?oh=1"

    def test_clean_url_video_keeps_params(self):
        raw = r"https:\/\/cdn.example\/v.mp4?efg=abc&_nc_ht=x"
        assert clean_url(raw, image=False) == "https://cdn.example/v.mp4?efg=abc&_nc_ht=x"

    def test_clean_text(self):
        assert clean_text(r"Tom &amp; Jerry\n") == "Tom & Jerry\n"


class TestStripByteRange:
    def test_removes_range(self):
        url = "https://cdn/v.mp4?efg=1&bytestart=0&byteend=999"
        assert strip_byte_range(url) == "https://cdn/v.mp4?efg=1"

    def test_only_range(self):
        assert strip_byte_range("https://cdn/v.mp4?bytestart=0&byteend=1") == "https://cdn/v.mp4"

    def test_no_query(self):
        assert strip_byte_range("https://cdn/v.mp4") == "https://cdn/v.mp4"
