"""An open book: decoded text, current pagination and the byte-anchored cursor."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Optional

from pagemark.errors import MissingBookFile, PagemarkError, UnreadableEncoding
from pagemark.library.models import Bookmark, ProgressRecord, now_iso
from pagemark.library.progress import ProgressStore
from pagemark.sync.engine import SyncResult
from pagemark.scheduling import Debouncer

from .anchor import ByteAnchorMap
from .encoding import decode_bytes
from .paginator import LayoutParams, Pagination, Paginator
from .position import byte_at_percent, byte_to_page, page_to_byte, percent_of

log = logging.getLogger(__name__)

STUB_TEXT = "This book could not be opened.\n\n{reason}"


class ReadingSession:
    """Keeps the reader's position glued to a UTF-8 byte offset.

    The page number is always derived from the anchor through the current
    pagination and is never persisted. Navigation updates the page, moves the
    anchor to the new page start and queues a write through the progress
    store. Resizes are debounced; while one is pending ``restoring`` is set
    and the anchor does not move.
    """

    def __init__(
        self,
        book_id: str,
        text: str,
        params: LayoutParams,
        charset: str = "utf-8",
        store: Optional[ProgressStore] = None,
        record: Optional[ProgressRecord] = None,
        resize_delay: float = 0.25,
        clock: Callable[[], float] = time.monotonic,
        error: Optional[PagemarkError] = None,
    ) -> None:
        self.book_id = book_id
        self.charset = charset
        self.error = error
        self.anchors = ByteAnchorMap(text)
        self._store = store
        self._paginator = Paginator()
        self._params = params
        self._pagination: Optional[Pagination] = None
        self._page = 1
        self._clock = clock
        self._started = clock()

        self._record = record or ProgressRecord(book_id=book_id)
        self._base_minutes = self._record.reading_time
        self._anchor = self._restore_anchor(self._record)

        self.restoring = False
        self._pending_params: Optional[LayoutParams] = None
        self._resize = Debouncer(resize_delay, self._apply_pending_layout, name="resize")
        self._dirty = False
        self._writer: Optional[asyncio.Task] = None
        self.on_layout: Optional[Callable[[], None]] = None

        self.repaginate()

    # ── Construction ───────────────────────────────

    @classmethod
    async def open(
        cls,
        book_id: str,
        path: Path,
        params: LayoutParams,
        store: Optional[ProgressStore] = None,
        **kwargs,
    ) -> "ReadingSession":
        """Load, decode and paginate a book file.

        Reading-path failures do not raise: the session comes back with a stub
        body, ``error`` set, and no store so nothing is saved over real progress.
        """
        try:
            try:
                raw = await asyncio.to_thread(Path(path).read_bytes)
            except OSError as e:
                raise MissingBookFile(path) from e
            decoded = await asyncio.to_thread(decode_bytes, raw)
        except (MissingBookFile, UnreadableEncoding) as e:
            log.error("Cannot open %s: %s", book_id, e.message)
            return cls(
                book_id,
                STUB_TEXT.format(reason=e.message),
                params,
                error=e,
                **kwargs,
            )

        record = await store.load(book_id) if store is not None else None
        log.info("Opened %s (%s, %d chars)", book_id, decoded.charset, len(decoded.text))
        return cls(
            book_id,
            decoded.text,
            params,
            charset=decoded.charset,
            store=store,
            record=record,
            **kwargs,
        )

    def _restore_anchor(self, record: ProgressRecord) -> int:
        anchor = record.anchor_byte_offset
        total = self.anchors.total_byte_length
        if (
            record.content_hash
            and record.content_hash != self.anchors.content_hash
            and record.total_byte_length > 0
        ):
            # the file changed since the anchor was saved; keep the relative position
            log.warning("Content hash mismatch for %s, rescaling anchor", self.book_id)
            anchor = anchor * total // record.total_byte_length
        return self.anchors.snap(anchor)

    # ── State ──────────────────────────────────────

    @property
    def text(self) -> str:
        return self.anchors.text

    @property
    def params(self) -> LayoutParams:
        return self._params

    @property
    def pagination(self) -> Pagination:
        assert self._pagination is not None
        return self._pagination

    @property
    def page_start_byte_offsets(self) -> list[int]:
        return self.pagination.page_start_byte_offsets

    @property
    def page(self) -> int:
        return self._page

    @property
    def page_count(self) -> int:
        return self.pagination.page_count

    @property
    def page_text(self) -> str:
        return self.pagination.pages[self._page - 1]

    @property
    def anchor_byte_offset(self) -> int:
        return self._anchor

    @property
    def total_byte_length(self) -> int:
        return self.anchors.total_byte_length

    @property
    def content_hash(self) -> str:
        return self.anchors.content_hash

    @property
    def percent(self) -> float:
        return percent_of(self._anchor, self.total_byte_length)

    @property
    def bookmarks(self) -> list[Bookmark]:
        return list(self._record.bookmarks)

    @property
    def reading_minutes(self) -> int:
        return self._base_minutes + int((self._clock() - self._started) // 60)

    # ── Pagination ─────────────────────────────────

    def _adopt(self, pagination: Pagination) -> None:
        self._pagination = pagination
        self._page = byte_to_page(pagination.page_start_byte_offsets, self._anchor)

    def repaginate(self, params: Optional[LayoutParams] = None) -> Pagination:
        if params is not None:
            self._params = params
        pagination = self._paginator.paginate(self.text, self._params)
        self._adopt(pagination)
        return pagination

    async def repaginate_async(self, params: LayoutParams) -> Optional[Pagination]:
        pagination = await self._paginator.paginate_async(self.text, params)
        if pagination is None:
            return None
        self._params = params
        self._adopt(pagination)
        return pagination

    def on_resize(self, width: int, height: int) -> None:
        """Queue a viewport change; repagination waits for the burst to settle."""
        self._pending_params = (self._pending_params or self._params).with_viewport(width, height)
        self.restoring = True
        self._resize.trigger()

    def set_layout(self, params: LayoutParams) -> Optional[Pagination]:
        """Apply new typography now, or fold it into a pending resize."""
        pending = self._pending_params
        if pending is not None:
            self._pending_params = params.with_viewport(
                pending.viewport_width, pending.viewport_height
            )
            return None
        return self.repaginate(params)

    async def _apply_pending_layout(self) -> None:
        params = self._pending_params
        self._pending_params = None
        result = None
        try:
            if params is not None:
                result = await self.repaginate_async(params)
        finally:
            if self._pending_params is None:
                self.restoring = False
        if result is not None and self.on_layout is not None:
            self.on_layout()

    async def wait_for_layout(self) -> None:
        await self._resize.wait()

    # ── Navigation ─────────────────────────────────

    def _move_to_page(self, page: int) -> bool:
        page = max(1, min(page, self.page_count))
        if page == self._page and self._anchor == page_to_byte(self.page_start_byte_offsets, page):
            return False
        self._page = page
        self._anchor = page_to_byte(self.page_start_byte_offsets, page)
        self._enqueue_save()
        return True

    def next_page(self) -> bool:
        if self.restoring or self._page >= self.page_count:
            return False
        return self._move_to_page(self._page + 1)

    def prev_page(self) -> bool:
        if self.restoring or self._page <= 1:
            return False
        return self._move_to_page(self._page - 1)

    def goto_page(self, page: int) -> bool:
        return self._move_to_page(page)

    def goto_percent(self, percent: float) -> bool:
        target = self.anchors.snap(byte_at_percent(percent, self.total_byte_length))
        return self._move_to_page(byte_to_page(self.page_start_byte_offsets, target))

    def set_anchor(self, offset: int) -> int:
        """Place the cursor at ``offset`` (snapped to a code-point boundary)."""
        self._anchor = self.anchors.snap(offset)
        self._page = byte_to_page(self.page_start_byte_offsets, self._anchor)
        self._enqueue_save()
        return self._anchor

    def goto_bookmark(self, bookmark: Bookmark) -> int:
        return self.set_anchor(bookmark.byte_offset)

    # ── Bookmarks ──────────────────────────────────

    def add_bookmark(self) -> Bookmark:
        bookmark = self._record.add_bookmark(
            Bookmark.create(self._anchor, self.total_byte_length)
        )
        self._enqueue_save()
        return bookmark

    def remove_bookmark(self, bookmark_id: str) -> bool:
        removed = self._record.remove_bookmark(bookmark_id)
        if removed:
            self._enqueue_save()
        return removed

    # ── Persistence ────────────────────────────────

    def adopt_record(self, record: ProgressRecord) -> None:
        """Take over a record fetched elsewhere, e.g. after a per-book sync."""
        self._record = record
        self._base_minutes = record.reading_time
        self._started = self._clock()
        self._anchor = self._restore_anchor(record)
        self._page = byte_to_page(self.page_start_byte_offsets, self._anchor)

    async def sync(self) -> SyncResult:
        """Save, run a per-book sync through the store and adopt the result."""
        if self._store is None:
            return SyncResult(success=False, message="Progress is not being saved for this book")
        await self.wait_saved()
        await self.save()
        writer = self._writer
        result = await self._store.sync(self.book_id)
        if result.data is not None:
            self.adopt_record(ProgressRecord.from_dict(result.data))
            if self._writer is not writer:
                # a save queued during the sync wrote the old position after it
                await self.wait_saved()
                self._dirty = False
                await self.save()
        return result

    def snapshot(self) -> ProgressRecord:
        record = self._record
        record.anchor_byte_offset = self._anchor
        record.total_byte_length = self.total_byte_length
        record.content_hash = self.content_hash
        record.reading_time = self.reading_minutes
        record.last_read_at = now_iso()
        return record

    def _enqueue_save(self) -> None:
        if self._store is None:
            return
        self._dirty = True
        if self._writer is not None and not self._writer.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._writer = loop.create_task(self._drain())

    async def _drain(self) -> None:
        # one writer per session; saves requested while it runs coalesce
        while self._dirty:
            self._dirty = False
            await self.save()

    async def save(self) -> bool:
        if self._store is None:
            return False
        return await self._store.save(self.book_id, self.snapshot())

    async def wait_saved(self) -> None:
        if self._writer is not None:
            await self._writer

    async def close(self) -> None:
        self._resize.cancel()
        await self.wait_saved()
        if self._store is not None:
            await self.save()
            await self._store.flush()
