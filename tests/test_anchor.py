"""Tests for the character/byte anchor map."""

from __future__ import annotations

import hashlib

import pytest

from pagemark.reader.anchor import ByteAnchorMap, utf8_len

MIXED = "aé中😀"  # 1 + 2 + 3 + 4 bytes


class TestUtf8Len:
    @pytest.mark.parametrize("ch", ["a", "é", "中", "😀", "\n"])
    def test_matches_codec(self, ch: str):
        assert utf8_len(ch) == len(ch.encode("utf-8"))


class TestByteAnchorMap:
    def test_total_byte_length(self):
        assert ByteAnchorMap(MIXED).total_byte_length == 10
        assert ByteAnchorMap("").total_byte_length == 0

    def test_byte_offset_of_char_index(self):
        anchors = ByteAnchorMap(MIXED)
        assert [anchors.byte_offset_of_char_index(i) for i in range(5)] == [0, 1, 3, 6, 10]

    def test_byte_offset_out_of_range(self):
        anchors = ByteAnchorMap(MIXED)
        with pytest.raises(IndexError):
            anchors.byte_offset_of_char_index(-1)
        with pytest.raises(IndexError):
            anchors.byte_offset_of_char_index(5)

    def test_char_index_floors_inside_sequence(self):
        anchors = ByteAnchorMap(MIXED)
        assert anchors.char_index_of_byte_offset(2) == 1
        assert anchors.char_index_of_byte_offset(4) == 2
        assert anchors.char_index_of_byte_offset(5) == 2
        assert anchors.char_index_of_byte_offset(9) == 3

    def test_char_index_clamps(self):
        anchors = ByteAnchorMap(MIXED)
        assert anchors.char_index_of_byte_offset(-5) == 0
        assert anchors.char_index_of_byte_offset(100) == 4

    def test_floor_invariant(self):
        anchors = ByteAnchorMap("第一章\n Chapter 1 — café 😀 end")
        boundaries = {anchors.byte_offset_of_char_index(i) for i in range(anchors.char_count + 1)}
        for b in range(anchors.total_byte_length):
            floored = anchors.byte_offset_of_char_index(anchors.char_index_of_byte_offset(b))
            assert floored <= b
            assert (floored == b) == (b in boundaries)

    def test_index_roundtrip(self):
        anchors = ByteAnchorMap(MIXED * 3)
        for i in range(anchors.char_count):
            assert anchors.char_index_of_byte_offset(anchors.byte_offset_of_char_index(i)) == i

    def test_snap(self):
        anchors = ByteAnchorMap(MIXED)
        assert anchors.snap(2) == 1
        assert anchors.snap(3) == 3
        assert anchors.snap(-1) == 0
        assert anchors.snap(100) == 6

    def test_snap_empty(self):
        assert ByteAnchorMap("").snap(500) == 0

    def test_is_boundary(self):
        anchors = ByteAnchorMap(MIXED)
        assert anchors.is_boundary(3) is True
        assert anchors.is_boundary(4) is False

    def test_content_hash(self):
        anchors = ByteAnchorMap(MIXED)
        assert anchors.content_hash == hashlib.sha256(MIXED.encode("utf-8")).hexdigest()
        assert anchors.content_hash != ByteAnchorMap(MIXED + " ").content_hash
