"""Typed errors raised across the reading engine, stores and sync layer."""

from __future__ import annotations

from typing import Any, Optional


class PagemarkError(Exception):
    """Base class for all pagemark errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__name__


class UnreadableEncoding(PagemarkError):
    pass


class MissingBookFile(PagemarkError):
    def __init__(self, path: Any) -> None:
        super().__init__(f"Book file not found: {path}")
        self.path = path


class CorruptLibraryIndex(PagemarkError):
    pass


class ProgressRecordCorrupt(PagemarkError):
    pass


class DuplicateImport(PagemarkError):
    def __init__(self, file_name: str, existing_book: Optional[Any] = None) -> None:
        super().__init__(f'Book "{file_name}" has already been imported')
        self.file_name = file_name
        self.existing_book = existing_book


class InvalidExtension(PagemarkError):
    def __init__(self, suffix: str, allowed: tuple[str, ...]) -> None:
        super().__init__(
            f"Unsupported format: {suffix or '(none)'}. Supported: {', '.join(allowed)}"
        )
        self.suffix = suffix


# ── WebDAV ─────────────────────────────────────────


class WebDAVError(PagemarkError):
    pass


class WebDAVAuth(WebDAVError):
    pass


class WebDAVNotFound(WebDAVError):
    pass


class WebDAVNetwork(WebDAVError):
    pass
