"""Tests for byte offset <-> page resolution."""

from __future__ import annotations

from bisect import bisect_left

from pagemark.reader.paginator import LayoutParams, paginate
from pagemark.reader.position import (
    byte_at_percent,
    byte_to_page,
    format_percent,
    location_of,
    page_to_byte,
    percent_of,
    progress_percent,
)


class TestPageLookup:
    def test_byte_to_page(self):
        starts = [0, 100, 250, 400]
        assert byte_to_page(starts, 0) == 1
        assert byte_to_page(starts, 99) == 1
        assert byte_to_page(starts, 100) == 2
        assert byte_to_page(starts, 399) == 3
        assert byte_to_page(starts, 10_000) == 4

    def test_negative_offset(self):
        assert byte_to_page([0, 100], -5) == 1

    def test_empty_starts(self):
        assert byte_to_page([], 42) == 1
        assert page_to_byte([], 3) == 0

    def test_page_to_byte_clamps(self):
        starts = [0, 100, 250]
        assert page_to_byte(starts, 2) == 100
        assert page_to_byte(starts, 0) == 0
        assert page_to_byte(starts, 99) == 250

    def test_utf8_happy_path(self):
        result = paginate("中文" + "a" * 1000, LayoutParams())
        assert byte_to_page(result.page_start_byte_offsets, 6) == 1

    def test_no_page_start_between(self):
        text = "é中😀abc\n" * 400
        starts = paginate(text, LayoutParams(viewport_width=260, viewport_height=168)).page_start_byte_offsets
        total = len(text.encode("utf-8"))
        for b in range(0, total, 7):
            start = page_to_byte(starts, byte_to_page(starts, b))
            assert start <= b
            # the next page start, if any, lies beyond b
            nxt = bisect_left(starts, start) + 1
            assert nxt >= len(starts) or starts[nxt] > b


class TestPercent:
    def test_percent_of(self):
        assert percent_of(1_490_000, 4_000_000) == 37.25
        assert percent_of(0, 0) == 0.0
        assert percent_of(1, 3) == 33.33

    def test_rounds_half_up(self):
        assert percent_of(1, 8) == 12.5
        assert percent_of(1, 32) == 3.13  # 3.125 -> 3.13

    def test_format_percent(self):
        assert format_percent(1_490_000, 4_000_000) == "37.25%"
        assert format_percent(0, 10) == "0.00%"

    def test_progress_percent_reaches_100(self):
        assert progress_percent(999, 1000) == 100.0
        assert progress_percent(0, 1) == 0.0

    def test_byte_at_percent(self):
        assert byte_at_percent(50, 1000) == 500
        assert byte_at_percent(100, 1000) == 999
        assert byte_at_percent(-3, 1000) == 0
        assert byte_at_percent(20, 0) == 0

    def test_location(self):
        assert location_of(0) == 0
        assert location_of(127) == 0
        assert location_of(128) == 1
        assert location_of(1_490_000) == 11_640
