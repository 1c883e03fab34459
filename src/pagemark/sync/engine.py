"""Mirror the sync root against a WebDAV root.

Full push and full pull are deliberately destructive in one direction: push
deletes matching remote files before uploading, pull deletes matching local
files before downloading. Per-book sync only uploads and re-downloads one
progress file and never deletes. Consistency is last-write-wins per file.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import httpx

from pagemark.errors import WebDAVError, WebDAVNotFound
from pagemark.library import layout
from pagemark.library.storage import write_bytes_atomic

from .webdav import RemoteEntry, WebDAVClient, WebDAVConfig

log = logging.getLogger(__name__)


@dataclass
class SyncResult:
    success: bool
    message: str = ""
    uploaded: int = 0
    downloaded: int = 0
    deleted: int = 0
    failed: int = 0
    items: int = 0
    book_index_overwritten: bool = False
    data: Optional[dict[str, Any]] = None
    errors: list[str] = field(default_factory=list)


class SyncEngine:
    def __init__(
        self,
        sync_root: Path,
        config: WebDAVConfig,
        timeout: float = 30.0,
        remote_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._sync_root = Path(sync_root)
        self._config = config
        self._remote_timeout = remote_timeout
        self._client = (
            WebDAVClient(config, timeout=timeout, transport=transport)
            if config.is_complete
            else None
        )

    @property
    def enabled(self) -> bool:
        return self._client is not None

    @property
    def sync_root(self) -> Path:
        return self._sync_root

    @property
    def client(self) -> Optional[WebDAVClient]:
        return self._client

    def _require_client(self) -> WebDAVClient:
        if self._client is None:
            raise WebDAVError("WebDAV is not configured: url, username and password are required")
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.close()

    # ── Connection ─────────────────────────────────

    async def test_connection(self) -> int:
        """List the remote root and return how many entries it holds."""
        entries = await self._require_client().list_dir("/")
        log.info("WebDAV connection ok, %d items at %s", len(entries), self._config.url)
        return len(entries)

    # ── Full push / pull ───────────────────────────

    def _local_sync_files(self) -> list[tuple[Path, str]]:
        """(local path, remote name) for every file a full push uploads."""
        files: list[tuple[Path, str]] = []
        if self._sync_root.is_dir():
            for p in sorted(self._sync_root.iterdir()):
                if p.is_file() and layout.is_sync_file(p.name):
                    files.append((p, p.name))
        cache = layout.cache_dir(self._sync_root)
        if cache.is_dir():
            for p in sorted(cache.glob("*.json")):
                files.append((p, layout.remote_progress_name(p.stem)))
        return files

    async def push_all(self) -> SyncResult:
        client = self._require_client()
        remote = [e for e in await client.list_dir("/") if not e.is_dir]
        result = SyncResult(success=True)

        for entry in remote:
            if not layout.is_sync_file(entry.name):
                continue
            try:
                await client.delete(entry.path)
                result.deleted += 1
                log.debug("Deleted remote %s", entry.name)
            except WebDAVError as e:
                self._record_failure(result, f"delete {entry.name}", e)

        for local_path, remote_name in self._local_sync_files():
            try:
                data = await asyncio.to_thread(local_path.read_bytes)
                await client.write(f"/{remote_name}", data)
                result.uploaded += 1
                log.debug("Uploaded %s", remote_name)
            except (OSError, WebDAVError) as e:
                self._record_failure(result, f"upload {remote_name}", e)

        result.message = (
            f"Push complete: {result.uploaded} uploaded, {result.deleted} deleted remotely"
        )
        log.info(result.message)
        return result

    async def pull_all(self) -> SyncResult:
        client = self._require_client()
        remote = [
            e
            for e in await client.list_dir("/")
            if not e.is_dir and layout.is_sync_file(e.name)
        ]
        result = SyncResult(success=True)

        await asyncio.to_thread(self._sync_root.mkdir, parents=True, exist_ok=True)
        local = [p for p, _ in self._local_sync_files()]
        for path in local:
            try:
                await asyncio.to_thread(path.unlink)
                result.deleted += 1
            except OSError as e:
                self._record_failure(result, f"delete local {path.name}", e)

        for entry in remote:
            target = self._local_target(entry)
            try:
                data = await client.read(entry.path)
                await asyncio.to_thread(write_bytes_atomic, target, data)
                result.downloaded += 1
                if entry.name == layout.BOOK_INDEX_NAME:
                    result.book_index_overwritten = True
                log.debug("Downloaded %s -> %s", entry.name, target)
            except (OSError, WebDAVError) as e:
                self._record_failure(result, f"download {entry.name}", e)

        result.message = (
            f"Pull complete: {result.downloaded} downloaded, {result.deleted} deleted locally"
        )
        if result.book_index_overwritten:
            result.message += " (book.json updated)"
        log.info(result.message)
        return result

    def _local_target(self, entry: RemoteEntry) -> Path:
        book_id = layout.book_id_from_remote_progress(entry.name)
        if book_id is not None:
            return layout.cache_path(self._sync_root, book_id)
        return self._sync_root / entry.name

    @staticmethod
    def _record_failure(result: SyncResult, what: str, error: Exception) -> None:
        result.failed += 1
        result.errors.append(f"{what}: {error}")
        log.error("Sync step failed (%s): %s", what, error)

    # ── Single files ───────────────────────────────

    async def upload_progress(self, book_id: str) -> bool:
        """Upload ``cache/<id>.json`` as ``progress_<id>.json``; False if skipped."""
        if self._client is None:
            log.debug("WebDAV disabled, skipping progress upload for %s", book_id)
            return False
        local = layout.cache_path(self._sync_root, book_id)
        if not local.exists():
            return False
        data = await asyncio.to_thread(local.read_bytes)
        await self._client.write(f"/{layout.remote_progress_name(book_id)}", data)
        log.debug("Uploaded progress for %s", book_id)
        return True

    async def fetch_progress(
        self, book_id: str, timeout: Optional[float] = None
    ) -> Optional[bytes]:
        """Remote progress bytes, or None when disabled, missing or unreachable."""
        if self._client is None:
            return None
        try:
            return await self._client.read(
                f"/{layout.remote_progress_name(book_id)}",
                timeout=timeout if timeout is not None else self._remote_timeout,
            )
        except WebDAVNotFound:
            log.debug("No remote progress file for %s", book_id)
        except WebDAVError as e:
            log.warning("Could not fetch remote progress for %s: %s", book_id, e)
        return None

    async def delete_progress(self, book_id: str) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.delete(f"/{layout.remote_progress_name(book_id)}")
            return True
        except WebDAVNotFound:
            return False

    async def upload_file(self, name: str) -> bool:
        """Upload one top-level sync-root file (e.g. settings.json) by name."""
        if self._client is None:
            return False
        local = self._sync_root / name
        if not local.exists():
            return False
        data = await asyncio.to_thread(local.read_bytes)
        await self._client.write(f"/{name}", data)
        return True

    async def sync_book(self, book_id: str) -> SyncResult:
        """Upload this book's progress, then fetch whatever the remote now holds.

        The fetched record comes back in ``data``; writing it to the local
        cache is left to the progress store, which serializes it with saves.
        """
        if self._client is None:
            return SyncResult(success=False, message="WebDAV sync is not configured")
        uploaded = await self.upload_progress(book_id)
        raw = await self.fetch_progress(book_id)
        if raw is None:
            return SyncResult(
                success=True,
                uploaded=int(uploaded),
                message="Progress uploaded, no remote copy found",
            )
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            log.error("Remote progress for %s is not valid JSON: %s", book_id, e)
            return SyncResult(success=False, uploaded=int(uploaded), message="Remote progress is corrupt")
        return SyncResult(
            success=True,
            uploaded=int(uploaded),
            downloaded=1,
            data=data,
            message="Progress synced",
        )
