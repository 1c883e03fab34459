"""Deterministic fixed-character pagination.

Pages are a pure function of the decoded text and the layout parameters: the
text is cut into chunks of exactly ``chars_per_page`` code points and the
UTF-8 byte offset of each chunk start is recorded. No glyph measurement is
involved, so the same inputs give the same page boundaries on every machine.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import astuple, dataclass, field, replace
from typing import Optional

from .anchor import utf8_len

log = logging.getLogger(__name__)

FONT_SIZE_RANGE = (12, 24)
LINE_HEIGHT_RANGE = (16, 60)
PADDING_RANGE = (20, 200)

MIN_LINES_PER_PAGE = 3
MIN_CHARS_PER_LINE = 10
MIN_CHARS_PER_PAGE = 100
CHAR_WIDTH_RATIO = 0.6


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class LayoutParams:
    font_size: int = 16
    line_height: int = 16
    viewport_width: int = 800
    viewport_height: int = 600
    padding_top: int = 60
    padding_bottom: int = 60
    padding_left: int = 80
    padding_right: int = 80

    @property
    def approx_char_width(self) -> int:
        return max(1, _round_half_up(self.font_size * CHAR_WIDTH_RATIO))

    @property
    def available_height(self) -> int:
        return self.viewport_height - self.padding_top - self.padding_bottom

    @property
    def available_width(self) -> int:
        return self.viewport_width - self.padding_left - self.padding_right

    @property
    def lines_per_page(self) -> int:
        return max(MIN_LINES_PER_PAGE, self.available_height // max(1, self.line_height))

    @property
    def chars_per_line(self) -> int:
        return max(MIN_CHARS_PER_LINE, self.available_width // self.approx_char_width)

    @property
    def chars_per_page(self) -> int:
        return max(MIN_CHARS_PER_PAGE, self.lines_per_page * self.chars_per_line)

    @property
    def render_height(self) -> int:
        """Visible text height snapped to a whole number of lines."""
        lh = max(1, self.line_height)
        return max(lh, (max(0, self.available_height) // lh) * lh)

    def with_viewport(self, width: int, height: int) -> "LayoutParams":
        return replace(self, viewport_width=width, viewport_height=height)


@dataclass
class Pagination:
    pages: list[str]
    page_start_byte_offsets: list[int]
    total_byte_length: int
    params: LayoutParams = field(default_factory=LayoutParams)

    @property
    def page_count(self) -> int:
        return len(self.pages)


def paginate(text: str, params: LayoutParams) -> Pagination:
    """Split ``text`` into pages of ``params.chars_per_page`` code points."""
    size = params.chars_per_page
    pages: list[str] = []
    offsets: list[int] = []
    byte_pos = 0
    for start in range(0, len(text), size):
        chunk = text[start : start + size]
        pages.append(chunk)
        offsets.append(byte_pos)
        byte_pos += sum(utf8_len(ch) for ch in chunk)

    if not pages:
        pages = [""]
        offsets = [0]

    return Pagination(
        pages=pages,
        page_start_byte_offsets=offsets,
        total_byte_length=byte_pos,
        params=params,
    )


def layout_signature(text: str, params: LayoutParams) -> tuple:
    return (len(text), *astuple(params))


class Paginator:
    """Memoizing front end to :func:`paginate`.

    A signature of text length and every layout field suppresses no-op runs.
    Each request bumps a generation counter; an async run that finishes after
    a newer request was made discards its result and returns None.
    """

    def __init__(self) -> None:
        self._signature: Optional[tuple] = None
        self._text_id: Optional[int] = None
        self._result: Optional[Pagination] = None
        self._generation = 0

    @property
    def current(self) -> Optional[Pagination]:
        return self._result

    def invalidate(self) -> None:
        self._signature = None
        self._text_id = None
        self._result = None
        self._generation += 1

    def _cached(self, text: str, params: LayoutParams) -> Optional[Pagination]:
        if (
            self._result is not None
            and self._text_id == id(text)
            and self._signature == layout_signature(text, params)
        ):
            return self._result
        return None

    def _store(self, text: str, params: LayoutParams, result: Pagination) -> None:
        self._signature = layout_signature(text, params)
        self._text_id = id(text)
        self._result = result

    def paginate(self, text: str, params: LayoutParams) -> Pagination:
        cached = self._cached(text, params)
        if cached is not None:
            return cached
        self._generation += 1
        result = paginate(text, params)
        self._store(text, params, result)
        return result

    async def paginate_async(
        self, text: str, params: LayoutParams
    ) -> Optional[Pagination]:
        cached = self._cached(text, params)
        if cached is not None:
            return cached
        self._generation += 1
        generation = self._generation
        result = await asyncio.to_thread(paginate, text, params)
        if generation != self._generation:
            log.debug("Discarding stale pagination (generation %d)", generation)
            return None
        self._store(text, params, result)
        return result
