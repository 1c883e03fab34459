"""File names and paths inside a sync root and on the WebDAV mirror."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

BOOK_INDEX_NAME = "book.json"
SETTINGS_NAME = "settings.json"
CACHE_DIR_NAME = "cache"
PROGRESS_PREFIX = "progress_"

# Files that take part in a full push or pull
SYNC_EXTENSIONS = (".txt", ".epub", ".pdf", ".mobi", ".json")


def book_index_path(sync_root: Path) -> Path:
    return sync_root / BOOK_INDEX_NAME


def settings_path(sync_root: Path) -> Path:
    return sync_root / SETTINGS_NAME


def cache_dir(sync_root: Path) -> Path:
    return sync_root / CACHE_DIR_NAME


def cache_path(sync_root: Path, book_id: str) -> Path:
    return cache_dir(sync_root) / f"{book_id}.json"


def remote_progress_name(book_id: str) -> str:
    return f"{PROGRESS_PREFIX}{book_id}.json"


def book_id_from_remote_progress(name: str) -> Optional[str]:
    if name.startswith(PROGRESS_PREFIX) and name.endswith(".json"):
        return name[len(PROGRESS_PREFIX) : -len(".json")] or None
    return None


def is_sync_file(name: str) -> bool:
    return name.lower().endswith(SYNC_EXTENSIONS)
