"""Reading settings (synced with the library) and local settings (never synced)."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from pagemark.library import layout
from pagemark.library.models import now_iso
from pagemark.library.storage import read_json, write_json_atomic
from pagemark.reader.paginator import (
    FONT_SIZE_RANGE,
    LINE_HEIGHT_RANGE,
    PADDING_RANGE,
    LayoutParams,
)
from pagemark.scheduling import Debouncer
from pagemark.sync.webdav import WebDAVConfig

log = logging.getLogger(__name__)

BRIGHTNESS_RANGE = (50, 150)
DEFAULT_FONT_FAMILY = "system-ui, -apple-system, sans-serif"
DEFAULT_BACKGROUND = "#f8f9fa"

BACKGROUND_PRESETS = (
    ("#ffffff", "White"),
    ("#f8f9fa", "Light grey"),
    ("#e8f5e8", "Light green"),
    ("#e3f2fd", "Light blue"),
)
FONT_FAMILIES = (
    (DEFAULT_FONT_FAMILY, "System"),
    ("Georgia, serif", "Serif"),
    ("Monaco, Consolas, monospace", "Monospace"),
)

_JSON_KEYS = {
    "font_size": "fontSize",
    "line_height": "lineHeight",
    "brightness": "brightness",
    "font_family": "fontFamily",
    "background_color": "backgroundColor",
    "padding_top": "paddingTop",
    "padding_bottom": "paddingBottom",
    "padding_left": "paddingLeft",
    "padding_right": "paddingRight",
    "last_updated": "lastUpdated",
}


def _clamp(value: int, bounds: tuple[int, int]) -> int:
    lo, hi = bounds
    return max(lo, min(hi, int(value)))


@dataclass
class ReadingSettings:
    font_size: int = 16
    line_height: int = 16
    brightness: int = 100
    font_family: str = DEFAULT_FONT_FAMILY
    background_color: str = DEFAULT_BACKGROUND
    padding_top: int = 60
    padding_bottom: int = 60
    padding_left: int = 80
    padding_right: int = 80
    last_updated: str = field(default_factory=now_iso)

    def clamped(self) -> "ReadingSettings":
        return replace(
            self,
            font_size=_clamp(self.font_size, FONT_SIZE_RANGE),
            line_height=_clamp(self.line_height, LINE_HEIGHT_RANGE),
            brightness=_clamp(self.brightness, BRIGHTNESS_RANGE),
            padding_top=_clamp(self.padding_top, PADDING_RANGE),
            padding_bottom=_clamp(self.padding_bottom, PADDING_RANGE),
            padding_left=_clamp(self.padding_left, PADDING_RANGE),
            padding_right=_clamp(self.padding_right, PADDING_RANGE),
        )

    def layout(self, viewport_width: int, viewport_height: int) -> LayoutParams:
        return LayoutParams(
            font_size=self.font_size,
            line_height=self.line_height,
            viewport_width=viewport_width,
            viewport_height=viewport_height,
            padding_top=self.padding_top,
            padding_bottom=self.padding_bottom,
            padding_left=self.padding_left,
            padding_right=self.padding_right,
        )

    def to_dict(self) -> dict[str, Any]:
        return {_JSON_KEYS[f.name]: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReadingSettings":
        defaults = cls()
        values: dict[str, Any] = {}
        for attr, key in _JSON_KEYS.items():
            value = data.get(key)
            # falsy values fall back to defaults, as 0 is never a valid setting
            values[attr] = value if value else getattr(defaults, attr)
        line_height = data.get("lineHeight")
        if isinstance(line_height, (int, float)) and 0 < line_height <= 3:
            # older files stored a multiplier of the font size
            values["line_height"] = int(values["font_size"] * line_height + 0.5)
        return cls(**values).clamped()


class SettingsStore:
    """``<syncRoot>/settings.json`` with a debounced write and sync nudge.

    :meth:`update` applies changes in memory at once. The file write follows
    after ``write_delay`` of quiet, and ``nudge_delay`` after that the
    ``on_nudge`` callback runs so the app can push settings and progress.
    """

    def __init__(
        self,
        sync_root: Path,
        write_delay: float = 0.5,
        nudge_delay: float = 1.2,
        on_nudge: Optional[Callable[[], Awaitable[Any]]] = None,
    ) -> None:
        self._sync_root = Path(sync_root)
        self._current: Optional[ReadingSettings] = None
        self._writer = Debouncer(write_delay, self._write_pending, name="settings write")
        self._nudge = Debouncer(nudge_delay, self._run_nudge, name="settings sync")
        self._on_nudge = on_nudge

    @property
    def path(self) -> Path:
        return layout.settings_path(self._sync_root)

    @property
    def current(self) -> ReadingSettings:
        if self._current is None:
            self._current = self.load()
        return self._current

    def load(self) -> ReadingSettings:
        path = self.path
        if not path.exists():
            settings = ReadingSettings()
            self.save(settings)
            return settings
        try:
            data = read_json(path)
            if not isinstance(data, dict):
                raise ValueError("settings.json must hold an object")
            settings = ReadingSettings.from_dict(data)
        except (OSError, ValueError) as e:
            log.error("Settings file %s unreadable (%s), using defaults", path, e)
            settings = ReadingSettings()
            self.save(settings)
        self._current = settings
        return settings

    def save(self, settings: ReadingSettings) -> None:
        write_json_atomic(self.path, settings.to_dict())
        self._current = settings

    def update(self, **changes: Any) -> ReadingSettings:
        settings = replace(self.current, **changes, last_updated=now_iso()).clamped()
        self._current = settings
        self._writer.trigger()
        return settings

    async def _write_pending(self) -> None:
        if self._current is None:
            return
        await asyncio.to_thread(self.save, self._current)
        log.debug("Settings written to %s", self.path)
        if self._on_nudge is not None:
            self._nudge.trigger()

    async def _run_nudge(self) -> None:
        if self._on_nudge is not None:
            await self._on_nudge()

    async def flush(self) -> None:
        await self._writer.flush()
        await self._nudge.flush()

    def cancel(self) -> None:
        self._writer.cancel()
        self._nudge.cancel()


@dataclass
class LocalSettings:
    sync_root_path: Optional[str] = None
    is_first_run: bool = True
    webdav: WebDAVConfig = field(default_factory=WebDAVConfig)
    last_updated: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "syncRootPath": self.sync_root_path,
            "isFirstRun": self.is_first_run,
            "webdavConfig": self.webdav.to_dict(),
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LocalSettings":
        # "webdavFolderPath" is the key older settings files used
        root = data.get("syncRootPath") or data.get("webdavFolderPath")
        return cls(
            sync_root_path=str(root) if root else None,
            is_first_run=bool(data.get("isFirstRun", not root)) and not root,
            webdav=WebDAVConfig.from_dict(data.get("webdavConfig")),
            last_updated=str(data.get("lastUpdated") or now_iso()),
        )


class LocalSettingsStore:
    """Per-user settings file that lives outside the sync root."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> LocalSettings:
        if not self._path.exists():
            settings = LocalSettings()
            self.save(settings)
            return settings
        try:
            data = read_json(self._path)
            if not isinstance(data, dict):
                raise ValueError("local settings must hold an object")
            return LocalSettings.from_dict(data)
        except (OSError, json.JSONDecodeError, ValueError) as e:
            log.error("Local settings %s unreadable (%s), starting fresh", self._path, e)
            settings = LocalSettings()
            self.save(settings)
            return settings

    def save(self, settings: LocalSettings) -> None:
        settings.last_updated = now_iso()
        write_json_atomic(self._path, settings.to_dict())

    def set_sync_root(self, sync_root: Path) -> LocalSettings:
        settings = self.load()
        settings.sync_root_path = str(Path(sync_root).expanduser().resolve())
        settings.is_first_run = False
        self.save(settings)
        log.info("Sync root set to %s", settings.sync_root_path)
        return settings

    def set_webdav(self, config: WebDAVConfig) -> LocalSettings:
        settings = self.load()
        settings.webdav = config
        self.save(settings)
        return settings
