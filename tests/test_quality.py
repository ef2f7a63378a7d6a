# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for rendition and stream-quality selection."""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from postmedia import DisplayResource
from postmedia.quality import pick_rendition, resources_from_json, select_best_image, select_best_video

DIMS = st.one_of(st.none(), st.integers(min_value=0, max_value=5000))
RESOURCES = st.lists(
    st.builds(DisplayResource, src=st.text(min_size=1, max_size=10), width=DIMS, height=DIMS),
    min_size=1,
    max_size=12,
)


class TestSelectBestImage:
    def test_max_area(self):
        cands = [
            DisplayResource("a", 640, 640),
            DisplayResource("b", 1080, 1350),
            DisplayResource("c", 750, 937),
        ]
        assert select_best_image(cands).src == "b"

    def test_tie_goes_to_first(self):
        cands = [DisplayResource("a", 100, 200), DisplayResource("b", 200, 100)]
        assert select_best_image(cands).src == "a"

    def test_missing_dimensions_count_as_zero(self):
        cands = [DisplayResource("a"), DisplayResource("b", 10, 10), DisplayResource("c", None, 999)]
        assert select_best_image(cands).src == "b"

    def test_empty(self):
        assert select_best_image([]) is None

    @given(RESOURCES)
    def test_winner_is_first_with_max_area(self, cands):
        best = select_best_image(cands)
        top = max(c.area for c in cands)
        assert best.area == top
        assert cands.index(best) == next(i for i, c in enumerate(cands) if c.area == top)


class TestPickRendition:
    def test_no_dimensions_takes_last(self):
        cands = [DisplayResource("small"), DisplayResource("large")]
        assert pick_rendition(cands).src == "large"

    def test_selector_alone_keeps_first_on_zero_area(self):
        cands = [DisplayResource("small"), DisplayResource("large")]
        assert select_best_image(cands).src == "small"
        assert pick_rendition(cands).src == "large"

    def test_partial_dimensions_defer_to_selector(self):
        cands = [DisplayResource("a", 10, 10), DisplayResource("b"), DisplayResource("c", 10, 10)]
        assert pick_rendition(cands).src == "a"

    def test_dimensions_use_max_area(self):
        cands = [DisplayResource("a", 1080, 1080), DisplayResource("b", 320, 320)]
        assert pick_rendition(cands).src == "a"

    def test_empty(self):
        assert pick_rendition([]) is None


class TestResourcesFromJson:
    def test_config_dimensions(self):
        items = [{"src": "a", "config_width": 640, "config_height": "800"}]
        assert resources_from_json(items) == [DisplayResource("a", 640, 800)]

    def test_plain_dimensions_and_url_key(self):
        items = [{"url": "a", "width": 10, "height": 20}]
        assert resources_from_json(items) == [DisplayResource("a", 10, 20)]

    def test_skips_bad_entries(self):
        items = [None, {"src": ""}, {"config_width": 1}, "x", {"src": "ok", "config_width": "wide"}]
        assert resources_from_json(items) == [DisplayResource("ok", None, None)]

    def test_not_a_list(self):
        assert resources_from_json({"src": "a"}) == []


class TestSelectBestVideo:
    def test_priority_over_discovery_order(self):
        urls = [
            "https://cdn/v/a.mp4?efg=vencode_q50",
            "https://cdn/v/b.mp4?efg=vencode_q90",
            "https://cdn/v/c.mp4?efg=vencode_q70",
        ]
        assert select_best_video(urls) == urls[1]

    def test_first_within_same_token(self):
        urls = ["https://cdn/v/a_q80.mp4", "https://cdn/v/b_q80.mp4"]
        assert select_best_video(urls) == urls[0]

    def test_no_token_falls_back_to_first(self):
        urls = ["https://cdn/v/a.mp4", "https://cdn/v/b.mp4"]
        assert select_best_video(urls) == urls[0]

    def test_custom_tokens(self):
        urls = ["https://cdn/v/720p.mp4", "https://cdn/v/1080p.mp4"]
        assert select_best_video(urls, ("1080p", "720p")) == urls[1]

    def test_empty(self):
        assert select_best_video([]) is None
