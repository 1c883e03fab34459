"""Pagemark - terminal e-book reader with WebDAV progress sync."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from textual.app import App

from pagemark.config import AppConfig, load_config
from pagemark.errors import WebDAVError
from pagemark.library import layout
from pagemark.library.index import ImportResult, Library, ShelfItem
from pagemark.library.progress import ProgressStore
from pagemark.settings import LocalSettingsStore, SettingsStore
from pagemark.sync.engine import SyncEngine
from pagemark.ui.screens.library_screen import LibraryScreen
from pagemark.ui.screens.reader_screen import ReaderScreen
from pagemark.ui.themes import APP_CSS

log = logging.getLogger(__name__)


class PagemarkApp(App):
    """A terminal reader for plain-text books with byte-anchored progress."""

    TITLE = "Pagemark"
    CSS = APP_CSS

    def __init__(
        self, config: AppConfig | None = None, open_file: str | None = None
    ) -> None:
        super().__init__()
        self.config = config or load_config()
        self.local_store = LocalSettingsStore(self.config.local_settings_path)
        self.local = self.config.apply_overrides(self.local_store.load())
        self.library: Optional[Library] = None
        self.sync: Optional[SyncEngine] = None
        self.progress: Optional[ProgressStore] = None
        self.settings: Optional[SettingsStore] = None
        self.current_book_id: Optional[str] = None
        self._open_file = open_file
        if self.local.sync_root_path:
            self.attach_sync_root(Path(self.local.sync_root_path))

    @property
    def has_sync_root(self) -> bool:
        return self.library is not None

    def attach_sync_root(self, sync_root: Path) -> None:
        """Build the stores that live under ``sync_root``."""
        sync_root.mkdir(parents=True, exist_ok=True)
        self.sync = SyncEngine(
            sync_root,
            self.local.webdav,
            timeout=self.config.http_timeout,
            remote_timeout=self.config.remote_timeout,
        )
        self.library = Library(sync_root)
        self.progress = ProgressStore(
            sync_root,
            sync=self.sync,
            upload_delay=self.config.upload_debounce,
            remote_timeout=self.config.remote_timeout,
        )
        self.settings = SettingsStore(
            sync_root,
            write_delay=self.config.settings_debounce,
            nudge_delay=self.config.sync_nudge_delay,
            on_nudge=self.sync_after_settings_change,
        )
        log.info(
            "Sync root %s (WebDAV %s)",
            sync_root,
            "enabled" if self.sync.enabled else "disabled",
        )

    def choose_sync_root(self, path: str) -> None:
        settings = self.local_store.set_sync_root(Path(path))
        self.local.sync_root_path = settings.sync_root_path
        self.local.is_first_run = False
        self.attach_sync_root(Path(settings.sync_root_path))
        if self._open_file:
            self.import_file(self._open_file)
            self._open_file = None

    def on_mount(self) -> None:
        if self._open_file and self.has_sync_root:
            self.import_file(self._open_file)
            self._open_file = None
        self.push_screen(LibraryScreen())

    def import_file(self, file_path_str: str) -> ImportResult:
        assert self.library is not None
        result = self.library.import_file(Path(file_path_str))
        if result.success:
            self.notify(result.message, timeout=self.config.toast_timeout)
        else:
            self.notify(result.message, severity="error", timeout=self.config.toast_timeout)
        return result

    def open_book(self, item: ShelfItem) -> None:
        """Open a book in the reader. Called from LibraryScreen."""
        self.push_screen(ReaderScreen(item))

    async def sync_after_settings_change(self) -> None:
        """Push settings.json and the open book's progress after a settings edit."""
        if self.sync is None or not self.sync.enabled:
            return
        try:
            await self.sync.upload_file(layout.SETTINGS_NAME)
            if self.current_book_id:
                await self.sync.upload_progress(self.current_book_id)
        except WebDAVError as e:
            log.warning("Settings sync failed: %s", e.message)

    async def action_quit(self) -> None:
        if self.settings is not None:
            await self.settings.flush()
        if self.progress is not None:
            await self.progress.flush()
        if self.sync is not None:
            await self.sync.close()
        self.exit()


def _setup_logging(config: AppConfig) -> None:
    handler = logging.FileHandler(config.log_path, encoding="utf-8")
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root = logging.getLogger("pagemark")
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)


def main() -> None:
    config = load_config()
    _setup_logging(config)

    open_file: str | None = None
    if len(sys.argv) > 1:
        open_file = sys.argv[1]

    app = PagemarkApp(config=config, open_file=open_file)
    app.run()


if __name__ == "__main__":
    main()
