"""Character index <-> UTF-8 byte offset mapping for decoded text."""

from __future__ import annotations

import hashlib
from bisect import bisect_right
from itertools import accumulate


def utf8_len(ch: str) -> int:
    cp = ord(ch)
    if cp < 0x80:
        return 1
    if cp < 0x800:
        return 2
    if cp < 0x10000:
        return 3
    return 4


def content_hash(text: str) -> str:
    """Hex SHA-256 over the canonical UTF-8 encoding of ``text``."""
    return hashlib.sha256(text.encode("utf-8", errors="surrogatepass")).hexdigest()


class ByteAnchorMap:
    """Bijection between code-point indices and UTF-8 byte offsets.

    ``_starts[i]`` is the byte offset at which code point ``i`` begins; the
    extra trailing entry equals the total byte length. Lookups are binary
    searches over that monotone array.
    """

    def __init__(self, text: str) -> None:
        self._text = text
        self._starts: list[int] = [0]
        self._starts.extend(accumulate(utf8_len(ch) for ch in text))
        self._hash: str | None = None

    @property
    def text(self) -> str:
        return self._text

    @property
    def char_count(self) -> int:
        return len(self._text)

    @property
    def total_byte_length(self) -> int:
        return self._starts[-1]

    @property
    def content_hash(self) -> str:
        if self._hash is None:
            self._hash = content_hash(self._text)
        return self._hash

    def byte_offset_of_char_index(self, index: int) -> int:
        if index < 0 or index > len(self._text):
            raise IndexError(f"char index {index} out of range")
        return self._starts[index]

    def char_index_of_byte_offset(self, offset: int) -> int:
        """Code-point index whose start is the greatest boundary <= ``offset``."""
        if offset <= 0:
            return 0
        if offset >= self.total_byte_length:
            return len(self._text)
        return bisect_right(self._starts, offset) - 1

    def snap(self, offset: int) -> int:
        """Clamp ``offset`` into ``[0, total)`` and floor it to a boundary."""
        total = self.total_byte_length
        if total == 0:
            return 0
        offset = max(0, min(offset, total - 1))
        return self._starts[self.char_index_of_byte_offset(offset)]

    def is_boundary(self, offset: int) -> bool:
        return self.byte_offset_of_char_index(self.char_index_of_byte_offset(offset)) == offset
