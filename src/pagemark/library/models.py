"""Data models for the library index and per-book progress records."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pagemark.errors import CorruptLibraryIndex, ProgressRecordCorrupt
from pagemark.reader.position import (
    byte_at_percent,
    format_percent,
    location_of,
    progress_percent,
)

BOOK_ID_LENGTH = 20
_NON_ID_CHARS = re.compile(r"[^A-Za-z0-9一-鿿]")

# Per-session state that older versions kept inside book.json
OBSOLETE_BOOK_FIELDS = ("readingProgress", "bookmarks")


def now_iso() -> str:
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def make_book_id(file_name: str) -> str:
    """Strip everything but ASCII alphanumerics and CJK ideographs, keep 20."""
    return _NON_ID_CHARS.sub("", file_name)[:BOOK_ID_LENGTH]


@dataclass
class Book:
    id: str
    title: str
    file_name: str
    file_path: str  # relative to the sync root
    size: int = 0
    author: Optional[str] = None
    added_at: str = field(default_factory=now_iso)
    extra: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def make_id(file_name: str) -> str:
        return make_book_id(file_name)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "title": self.title,
                "author": self.author,
                "fileName": self.file_name,
                "filePath": self.file_path,
                "size": self.size,
                "addedAt": self.added_at,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Book":
        if not isinstance(data, dict):
            raise CorruptLibraryIndex("Book entry is not an object")
        try:
            file_name = str(data.get("fileName") or Path(str(data["filePath"])).name)
            book_id = str(data.get("id") or make_book_id(file_name))
            known = {"id", "title", "author", "fileName", "filePath", "size", "addedAt"}
            return cls(
                id=book_id,
                title=str(data.get("title") or Path(file_name).stem),
                file_name=file_name,
                file_path=str(data.get("filePath") or file_name),
                size=int(data.get("size") or 0),
                author=data.get("author"),
                added_at=str(data.get("addedAt") or now_iso()),
                extra={k: v for k, v in data.items() if k not in known},
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptLibraryIndex(f"Invalid book entry: {e}") from e


@dataclass
class BookIndex:
    books: list[Book] = field(default_factory=list)
    last_updated: str = field(default_factory=now_iso)

    def find(self, book_id: str) -> Optional[Book]:
        return next((b for b in self.books if b.id == book_id), None)

    def find_by_file_name(self, file_name: str) -> Optional[Book]:
        return next((b for b in self.books if b.file_name == file_name), None)

    def touch(self) -> None:
        self.last_updated = now_iso()

    def to_dict(self) -> dict[str, Any]:
        return {
            "books": [b.to_dict() for b in self.books],
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "BookIndex":
        if not isinstance(data, dict) or not isinstance(data.get("books"), list):
            raise CorruptLibraryIndex("book.json must hold an object with a books list")
        books: list[Book] = []
        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        for entry in data["books"]:
            book = Book.from_dict(entry)
            if book.id in seen_ids or book.file_name in seen_names:
                continue
            seen_ids.add(book.id)
            seen_names.add(book.file_name)
            books.append(book)
        return cls(books=books, last_updated=str(data.get("lastUpdated") or now_iso()))


@dataclass
class Bookmark:
    id: str
    byte_offset: int
    description: str
    created_at: str = field(default_factory=now_iso)

    @classmethod
    def create(cls, byte_offset: int, total_byte_length: int) -> "Bookmark":
        return cls(
            id=str(int(time.time() * 1000)),
            byte_offset=byte_offset,
            description=format_percent(byte_offset, total_byte_length),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "byteOffset": self.byte_offset,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], total_byte_length: int = 0) -> "Bookmark":
        if "byteOffset" in data:
            offset = int(data["byteOffset"] or 0)
        else:
            # older records only kept the percentage
            offset = byte_at_percent(float(data.get("progress") or 0), total_byte_length)
        return cls(
            id=str(data["id"]),
            byte_offset=offset,
            description=str(data.get("description") or ""),
            created_at=str(data.get("createdAt") or ""),
        )


def merge_bookmarks(bookmarks: list[Bookmark]) -> list[Bookmark]:
    """Deduplicate by id, keeping the entry with the newer ``created_at``."""
    by_id: dict[str, Bookmark] = {}
    for bm in bookmarks:
        current = by_id.get(bm.id)
        if current is None or bm.created_at > current.created_at:
            by_id[bm.id] = bm
    return list(by_id.values())


_PROGRESS_FIELDS = {
    "bookId",
    "anchorByteOffset",
    "totalByteLength",
    "contentHash",
    "bookmarks",
    "readingTime",
    "lastReadAt",
    "lastUpdated",
    "location",
    "progress",
}


@dataclass
class ProgressRecord:
    book_id: str
    anchor_byte_offset: int = 0
    total_byte_length: int = 0
    content_hash: str = ""
    bookmarks: list[Bookmark] = field(default_factory=list)
    reading_time: int = 0  # minutes
    last_read_at: str = field(default_factory=now_iso)
    last_updated: str = field(default_factory=now_iso)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def location(self) -> int:
        return location_of(self.anchor_byte_offset)

    @property
    def progress(self) -> float:
        return progress_percent(self.anchor_byte_offset, self.total_byte_length)

    def add_bookmark(self, bookmark: Bookmark) -> Bookmark:
        ids = {b.id for b in self.bookmarks}
        while bookmark.id in ids:
            bookmark.id = str(int(bookmark.id) + 1) if bookmark.id.isdigit() else bookmark.id + "_"
        self.bookmarks.append(bookmark)
        return bookmark

    def remove_bookmark(self, bookmark_id: str) -> bool:
        before = len(self.bookmarks)
        self.bookmarks = [b for b in self.bookmarks if b.id != bookmark_id]
        return len(self.bookmarks) != before

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "bookId": self.book_id,
                "anchorByteOffset": self.anchor_byte_offset,
                "totalByteLength": self.total_byte_length,
                "contentHash": self.content_hash,
                "bookmarks": [b.to_dict() for b in self.bookmarks],
                "readingTime": self.reading_time,
                "lastReadAt": self.last_read_at,
                "lastUpdated": self.last_updated,
                "location": self.location,
                "progress": self.progress,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "ProgressRecord":
        if not isinstance(data, dict) or not data.get("bookId"):
            raise ProgressRecordCorrupt("Progress record must be an object with a bookId")
        try:
            total = max(0, int(data.get("totalByteLength") or 0))
            bookmarks = merge_bookmarks(
                [Bookmark.from_dict(b, total) for b in data.get("bookmarks") or []]
            )
            return cls(
                book_id=str(data["bookId"]),
                anchor_byte_offset=max(0, int(data.get("anchorByteOffset") or 0)),
                total_byte_length=total,
                content_hash=str(data.get("contentHash") or ""),
                bookmarks=bookmarks,
                reading_time=max(0, int(data.get("readingTime") or 0)),
                last_read_at=str(data.get("lastReadAt") or ""),
                last_updated=str(data.get("lastUpdated") or ""),
                extra={k: v for k, v in data.items() if k not in _PROGRESS_FIELDS},
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ProgressRecordCorrupt(f"Invalid progress record: {e}") from e
