"""Byte offset <-> page translation over a pagination's page starts."""

from __future__ import annotations

import math
from bisect import bisect_right
from typing import Sequence

LOCATION_BYTES = 128


def byte_to_page(page_starts: Sequence[int], offset: int) -> int:
    """One-based page holding ``offset``: the last page starting at or before it."""
    if not page_starts:
        return 1
    index = bisect_right(page_starts, max(0, offset)) - 1
    return max(0, index) + 1


def page_to_byte(page_starts: Sequence[int], page: int) -> int:
    if not page_starts:
        return 0
    page = max(1, min(page, len(page_starts)))
    return page_starts[page - 1]


def percent_of(offset: int, total: int) -> float:
    """``offset / total`` as a percentage rounded half-up to two decimals."""
    if total <= 0:
        return 0.0
    return math.floor(offset / total * 10000 + 0.5) / 100


def format_percent(offset: int, total: int) -> str:
    return f"{percent_of(offset, total):.2f}%"


def progress_percent(offset: int, total: int) -> float:
    """Shelf progress: reaching the last byte reads as 100%."""
    return percent_of(offset, max(1, total - 1))


def byte_at_percent(percent: float, total: int) -> int:
    if total <= 0:
        return 0
    percent = max(0.0, min(100.0, percent))
    return min(total - 1, int(total * percent / 100))


def location_of(offset: int) -> int:
    """Coarse Kindle-style locator, one unit per 128 bytes."""
    return offset // LOCATION_BYTES
