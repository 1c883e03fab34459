"""The library index: ``<syncRoot>/book.json`` listing every imported book."""

from __future__ import annotations

import json
import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pagemark.errors import (
    CorruptLibraryIndex,
    DuplicateImport,
    InvalidExtension,
    MissingBookFile,
    PagemarkError,
)

from . import layout
from .models import OBSOLETE_BOOK_FIELDS, Book, BookIndex, make_book_id
from .storage import read_json, write_json_atomic

log = logging.getLogger(__name__)

IMPORTABLE_EXTENSIONS = (".txt",)
MAINTENANCE_INTERVAL = 3600.0  # seconds


@dataclass
class ShelfItem:
    book: Book
    path: Path  # absolute, resolved against the sync root


@dataclass
class ImportResult:
    success: bool
    message: str = ""
    book: Optional[Book] = None
    existing_book: Optional[Book] = None
    error: Optional[PagemarkError] = None


class Library:
    def __init__(self, sync_root: Path, maintenance_interval: float = MAINTENANCE_INTERVAL) -> None:
        self._sync_root = Path(sync_root)
        self._maintenance_interval = maintenance_interval

    @property
    def sync_root(self) -> Path:
        return self._sync_root

    @property
    def index_path(self) -> Path:
        return layout.book_index_path(self._sync_root)

    # ── Index file ─────────────────────────────────

    def load_index(self) -> BookIndex:
        """Read book.json, materializing or recreating it when missing or corrupt."""
        path = self.index_path
        if not path.exists():
            log.info("%s missing, creating an empty library index", path)
            index = BookIndex()
            self.save_index(index)
            return index
        try:
            return BookIndex.from_dict(read_json(path))
        except (OSError, json.JSONDecodeError, CorruptLibraryIndex) as e:
            log.error("Library index %s is corrupt (%s), recreating it empty", path, e)
            index = BookIndex()
            self.save_index(index)
            return index

    def save_index(self, index: BookIndex) -> None:
        write_json_atomic(self.index_path, index.to_dict())

    # ── Maintenance ────────────────────────────────

    def needs_maintenance(self) -> bool:
        path = self.index_path
        if not path.exists():
            return True
        return time.time() - path.stat().st_mtime > self._maintenance_interval

    def maintain(self) -> bool:
        """Strip per-session fields and relativize absolute paths. True if rewritten."""
        index = self.load_index()
        changed = False
        root = self._sync_root.resolve()
        for book in index.books:
            for name in OBSOLETE_BOOK_FIELDS:
                if name in book.extra:
                    del book.extra[name]
                    changed = True
            file_path = Path(book.file_path)
            if file_path.is_absolute():
                try:
                    relative = file_path.resolve().relative_to(root)
                except ValueError:
                    log.debug("Keeping path outside the sync root: %s", file_path)
                    continue
                log.info("Migrating book path %s -> %s", file_path, relative)
                book.file_path = relative.as_posix()
                changed = True
        if changed:
            index.touch()
            self.save_index(index)
        return changed

    # ── Shelf ──────────────────────────────────────

    def resolve(self, book: Book) -> Path:
        path = self._sync_root / (book.file_path or book.file_name)
        if not path.exists():
            raise MissingBookFile(path)
        return path

    def list_books(self) -> list[ShelfItem]:
        """Books whose files exist under the sync root; others stay in the index."""
        if not self._sync_root.is_dir():
            return []
        if self.needs_maintenance():
            self.maintain()
        items: list[ShelfItem] = []
        for book in self.load_index().books:
            try:
                items.append(ShelfItem(book=book, path=self.resolve(book)))
            except MissingBookFile as e:
                log.debug("Hiding %s: %s", book.id, e)
        return items

    def get(self, book_id: str) -> Optional[Book]:
        return self.load_index().find(book_id)

    # ── Import / remove ────────────────────────────

    def import_file(self, source: Path) -> ImportResult:
        source = Path(source).expanduser()
        suffix = source.suffix.lower()
        if suffix not in IMPORTABLE_EXTENSIONS:
            err = InvalidExtension(suffix, IMPORTABLE_EXTENSIONS)
            return ImportResult(success=False, message=err.message, error=err)
        if not source.is_file():
            err = MissingBookFile(source)
            return ImportResult(success=False, message=err.message, error=err)

        file_name = source.name
        book_id = make_book_id(file_name)
        index = self.load_index()
        existing = index.find_by_file_name(file_name) or index.find(book_id)
        if existing is not None:
            err = DuplicateImport(file_name, existing)
            log.info("Import refused, %s already in library as %s", file_name, existing.id)
            return ImportResult(
                success=False, message=err.message, existing_book=existing, error=err
            )

        target = self._sync_root / file_name
        copying = source.resolve() != target.resolve()
        preexisting = target.exists()
        try:
            self._sync_root.mkdir(parents=True, exist_ok=True)
            if copying:
                shutil.copy2(source, target)
            book = Book(
                id=book_id,
                title=source.stem,
                file_name=file_name,
                file_path=file_name,
                size=target.stat().st_size,
            )
            index.books.append(book)
            index.touch()
            self.save_index(index)
        except OSError as e:
            log.error("Import of %s failed: %s", file_name, e)
            if copying and not preexisting:
                self._discard_partial(target)
            err = PagemarkError(f'Could not import "{file_name}": {e.strerror or e}')
            return ImportResult(success=False, message=err.message, error=err)
        log.info("Imported %s as %s", file_name, book_id)
        return ImportResult(success=True, message=f'Imported "{file_name}"', book=book)

    @staticmethod
    def _discard_partial(target: Path) -> None:
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            log.warning("Could not remove partial copy %s: %s", target, e)

    def remove(self, book_id: str) -> Optional[Book]:
        """Drop the entry and its raw file. Returns the removed book, if any."""
        index = self.load_index()
        book = index.find(book_id)
        if book is None:
            return None
        path = self._sync_root / (book.file_path or book.file_name)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            log.warning("Failed to delete book file %s: %s", path, e)
        index.books = [b for b in index.books if b.id != book_id]
        index.touch()
        self.save_index(index)
        log.info("Removed %s from library", book_id)
        return book
