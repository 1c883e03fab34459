from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from rich.text import Text
from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.screen import Screen
from textual.widgets import DataTable, Footer, Header, Static

from pagemark.errors import WebDAVError
from pagemark.library.index import ImportResult, ShelfItem

from .dialogs import ConfirmDeleteScreen, FilePickerScreen, PromptScreen

if TYPE_CHECKING:
    from pagemark.app import PagemarkApp


def _human_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / 1024 / 1024:.1f} MB"


class LibraryScreen(Screen):
    BINDINGS = [
        Binding("A", "add_book", "Add", priority=True),
        Binding("D", "delete_book", "Delete", priority=True),
        Binding("u", "push", "Push"),
        Binding("d", "pull", "Pull"),
        Binding("c", "test_connection", "Check WebDAV"),
        Binding("r", "refresh", "Refresh"),
        Binding("q", "quit_app", "Quit"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._items: dict[str, ShelfItem] = {}

    @property
    def pm(self) -> PagemarkApp:
        return self.app  # type: ignore[return-value]

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static("", id="library-header")
        yield DataTable(id="shelf-table")
        yield Static("No books yet. Press A to add a .txt file.", id="shelf-empty")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#shelf-table", DataTable)
        table.cursor_type = "row"
        table.add_columns("Title", "Size", "Progress", "Last Read")
        if not self.pm.has_sync_root:
            self._ask_sync_root()
        else:
            self._refresh_books()
        table.focus()

    def on_screen_resume(self) -> None:
        self._refresh_books()
        self.query_one("#shelf-table", DataTable).focus()

    # ── Sync root ───────────────────────────────

    def _ask_sync_root(self) -> None:
        self.app.push_screen(
            PromptScreen(
                "Choose the library folder (sync root)",
                value="~/Books",
                placeholder="/path/to/library",
            ),
            callback=self._on_sync_root_chosen,
        )

    def _on_sync_root_chosen(self, path: str | None) -> None:
        if not path:
            self.notify("A library folder is required", severity="warning")
            self._ask_sync_root()
            return
        try:
            self.pm.choose_sync_root(path)
        except OSError as e:
            self.notify(f"Cannot use {path}: {e}", severity="error")
            self._ask_sync_root()
            return
        self._refresh_books()

    # ── Shelf ───────────────────────────────────

    def _refresh_books(self) -> None:
        table = self.query_one("#shelf-table", DataTable)
        table.clear()
        self._items.clear()
        library = self.pm.library
        if library is None:
            return

        items = library.list_books()
        for item in items:
            record = self.pm.progress.load_local(item.book.id) if self.pm.progress else None
            pct = f"{record.progress if record else 0.0:.2f}%"
            last_read = record.last_read_at[:10] if record and record.last_read_at else ""
            table.add_row(
                Text(item.book.title),
                _human_size(item.book.size),
                pct,
                last_read,
                key=item.book.id,
            )
            self._items[item.book.id] = item

        self.query_one("#shelf-empty").styles.display = "none" if items else "block"
        sync_state = "WebDAV on" if self.pm.sync and self.pm.sync.enabled else "WebDAV off"
        self.query_one("#library-header", Static).update(
            f" Pagemark Library  ({len(items)} books)  {library.sync_root}  ({sync_state})"
        )

    def _selected(self) -> ShelfItem | None:
        table = self.query_one("#shelf-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self._items.get(str(row_key.value))

    def action_refresh(self) -> None:
        self._refresh_books()

    # ── Add Book ────────────────────────────────

    def action_add_book(self) -> None:
        if not self.pm.has_sync_root:
            self._ask_sync_root()
            return
        self.app.push_screen(FilePickerScreen("~"), callback=self._on_file_picked)

    def _on_file_picked(self, result: str | None) -> None:
        if result:
            self._do_add_book(result)

    @work(thread=True)
    def _do_add_book(self, path_str: str) -> None:
        # copying a large file must not block the UI
        result = self.pm.library.import_file(Path(path_str))
        self.app.call_from_thread(self._finish_add_book, result)

    def _finish_add_book(self, result: ImportResult) -> None:
        if result.success:
            self._refresh_books()
            self.notify(result.message, timeout=self.pm.config.toast_timeout)
        else:
            self.notify(result.message, severity="error", timeout=self.pm.config.toast_timeout)

    # ── Delete Book ─────────────────────────────

    def action_delete_book(self) -> None:
        item = self._selected()
        if item is None:
            return
        self.app.push_screen(
            ConfirmDeleteScreen(item.book.title),
            callback=lambda confirmed: self._on_delete_confirmed(confirmed, item.book.id),
        )

    def _on_delete_confirmed(self, confirmed: bool | None, book_id: str) -> None:
        if confirmed:
            self._do_delete(book_id)

    @work(exclusive=True, group="library")
    async def _do_delete(self, book_id: str) -> None:
        library, progress = self.pm.library, self.pm.progress
        if library is None or progress is None:
            return
        book = library.remove(book_id)
        await progress.delete(book_id)
        self._refresh_books()
        if book is not None:
            self.notify(f"Removed: {book.title}", timeout=self.pm.config.toast_timeout)

    # ── WebDAV ──────────────────────────────────

    def _sync_ready(self) -> bool:
        if self.pm.sync is None or not self.pm.sync.enabled:
            self.notify(
                "WebDAV is not configured (url, username and password are required)",
                severity="warning",
            )
            return False
        return True

    def action_push(self) -> None:
        if self._sync_ready():
            self._do_push()

    def action_pull(self) -> None:
        if self._sync_ready():
            self._do_pull()

    def action_test_connection(self) -> None:
        if self._sync_ready():
            self._do_test_connection()

    @work(exclusive=True, group="sync")
    async def _do_push(self) -> None:
        self.notify("Pushing library to WebDAV...")
        try:
            result = await self.pm.sync.push_all()
        except WebDAVError as e:
            self.notify(f"Push failed: {e.message}", severity="error")
            return
        severity = "warning" if result.failed else "information"
        self.notify(f"{result.message}, {result.failed} failed", severity=severity)

    @work(exclusive=True, group="sync")
    async def _do_pull(self) -> None:
        self.notify("Pulling library from WebDAV...")
        try:
            result = await self.pm.sync.pull_all()
        except WebDAVError as e:
            self.notify(f"Pull failed: {e.message}", severity="error")
            return
        if self.pm.settings is not None:
            self.pm.settings.load()
        self._refresh_books()
        severity = "warning" if result.failed else "information"
        self.notify(f"{result.message}, {result.failed} failed", severity=severity)

    @work(exclusive=True, group="sync")
    async def _do_test_connection(self) -> None:
        try:
            count = await self.pm.sync.test_connection()
        except WebDAVError as e:
            self.notify(f"Connection failed: {e.message}", severity="error")
            return
        self.notify(f"Connected, {count} items on the server")

    # ── Open / Quit ─────────────────────────────

    @on(DataTable.RowSelected, "#shelf-table")
    def on_row_selected(self, event: DataTable.RowSelected) -> None:
        item = self._items.get(str(event.row_key.value))
        if item is None:
            return
        if not item.path.exists():
            self.notify(f"File not found: {item.path}", severity="error")
            self._refresh_books()
            return
        self.pm.open_book(item)

    async def action_quit_app(self) -> None:
        await self.pm.action_quit()
