"""Per-book progress cache under ``<syncRoot>/cache`` mirrored to WebDAV."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from pagemark.errors import ProgressRecordCorrupt, WebDAVError
from pagemark.scheduling import KeyedDebouncer
from pagemark.sync.engine import SyncEngine, SyncResult

from . import layout
from .models import ProgressRecord, now_iso
from .storage import read_json, write_bytes_atomic, write_json_atomic

log = logging.getLogger(__name__)


class ProgressStore:
    """Load, save and delete :class:`ProgressRecord` files.

    Loading is remote-first: when WebDAV is configured the remote
    ``progress_<id>.json`` is fetched with a short timeout and, if valid,
    replaces the local cache atomically. Saving writes the local cache at once
    and debounces the upload, so a burst of page flips produces one upload.
    Saves for the same book run strictly in call order.
    """

    def __init__(
        self,
        sync_root: Path,
        sync: Optional[SyncEngine] = None,
        upload_delay: float = 1.2,
        remote_timeout: float = 5.0,
    ) -> None:
        self._sync_root = Path(sync_root)
        self._sync = sync
        self._remote_timeout = remote_timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._uploads = KeyedDebouncer(upload_delay, self._upload_callback)

    def path(self, book_id: str) -> Path:
        return layout.cache_path(self._sync_root, book_id)

    def _lock(self, book_id: str) -> asyncio.Lock:
        lock = self._locks.get(book_id)
        if lock is None:
            lock = self._locks[book_id] = asyncio.Lock()
        return lock

    def _upload_callback(self, book_id):
        async def upload() -> None:
            if self._sync is not None:
                await self._sync.upload_progress(book_id)

        return upload

    def upload_pending(self, book_id: str) -> bool:
        return self._uploads.pending(book_id)

    # ── Load ───────────────────────────────────────

    def load_local(self, book_id: str) -> Optional[ProgressRecord]:
        path = self.path(book_id)
        if not path.exists():
            return None
        try:
            return ProgressRecord.from_dict(read_json(path))
        except (OSError, json.JSONDecodeError, ProgressRecordCorrupt) as e:
            log.warning("Ignoring corrupt progress cache %s: %s", path, e)
            return None

    async def load(self, book_id: str, remote_first: bool = True) -> Optional[ProgressRecord]:
        if remote_first and self._sync is not None and self._sync.enabled:
            raw = await self._sync.fetch_progress(book_id, timeout=self._remote_timeout)
            if raw is not None:
                try:
                    record = ProgressRecord.from_dict(json.loads(raw.decode("utf-8")))
                except (UnicodeDecodeError, json.JSONDecodeError, ProgressRecordCorrupt) as e:
                    log.warning("Remote progress for %s unusable: %s", book_id, e)
                else:
                    async with self._lock(book_id):
                        await asyncio.to_thread(write_bytes_atomic, self.path(book_id), raw)
                    log.debug("Loaded progress for %s from WebDAV", book_id)
                    return record
        return await asyncio.to_thread(self.load_local, book_id)

    # ── Save / delete ──────────────────────────────

    async def save(self, book_id: str, record: ProgressRecord) -> bool:
        """Write the local cache now and schedule the debounced upload.

        Returns False when the local write failed; the error is logged and the
        next save retries.
        """
        async with self._lock(book_id):
            record.book_id = book_id
            record.last_updated = now_iso()
            try:
                await asyncio.to_thread(write_json_atomic, self.path(book_id), record.to_dict())
            except OSError as e:
                log.error("Failed to save progress for %s: %s", book_id, e)
                return False
        if self._sync is not None and self._sync.enabled:
            self._uploads.trigger(book_id)
        return True

    async def delete(self, book_id: str) -> None:
        self._uploads.cancel(book_id)
        async with self._lock(book_id):
            path = self.path(book_id)
            try:
                await asyncio.to_thread(path.unlink, missing_ok=True)
            except OSError as e:
                log.warning("Failed to delete progress cache %s: %s", path, e)
        if self._sync is not None and self._sync.enabled:
            try:
                await self._sync.delete_progress(book_id)
            except WebDAVError as e:
                log.warning("Failed to delete remote progress for %s: %s", book_id, e)
        self._locks.pop(book_id, None)

    async def sync(self, book_id: str) -> SyncResult:
        """Per-book sync: upload the cache, then adopt the remote record.

        Runs under the book's lock so a save issued meanwhile lands after
        the adopted record instead of racing it. A remote record that fails
        validation leaves the local cache untouched.
        """
        if self._sync is None:
            return SyncResult(success=False, message="WebDAV sync is not configured")
        async with self._lock(book_id):
            self._uploads.cancel(book_id)
            result = await self._sync.sync_book(book_id)
            if result.data is None:
                return result
            try:
                record = ProgressRecord.from_dict(result.data)
            except ProgressRecordCorrupt as e:
                log.error("Remote progress for %s rejected: %s", book_id, e.message)
                return SyncResult(
                    success=False,
                    uploaded=result.uploaded,
                    message=f"Remote progress is corrupt: {e.message}",
                )
            record.book_id = book_id
            try:
                await asyncio.to_thread(write_json_atomic, self.path(book_id), record.to_dict())
            except OSError as e:
                log.error("Failed to store synced progress for %s: %s", book_id, e)
                return SyncResult(success=False, uploaded=result.uploaded, message=str(e))
            result.data = record.to_dict()
            return result

    async def flush(self) -> None:
        """Run pending uploads now (used when closing a book or the app)."""
        await self._uploads.flush()

    def cancel_uploads(self) -> None:
        self._uploads.cancel_all()
