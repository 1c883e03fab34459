"""Configuration management via .env file."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from pagemark.settings import LocalSettings
from pagemark.sync.webdav import WebDAVConfig


def _xdg_data_home() -> Path:
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))


def _xdg_config_home() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class AppConfig:
    # Paths
    data_dir: Path = field(default_factory=lambda: _xdg_data_home() / "pagemark")
    config_dir: Path = field(default_factory=lambda: _xdg_config_home() / "pagemark")
    local_settings_path: Path = field(init=False)
    log_path: Path = field(init=False)

    # Overrides for the persisted local settings
    sync_root: Optional[Path] = None
    webdav: WebDAVConfig = field(default_factory=WebDAVConfig)

    # Timing, in seconds
    upload_debounce: float = 1.2
    settings_debounce: float = 0.5
    sync_nudge_delay: float = 1.2
    resize_debounce: float = 0.25
    toast_timeout: float = 2.0
    remote_timeout: float = 5.0
    http_timeout: float = 30.0

    def __post_init__(self) -> None:
        self.local_settings_path = self.config_dir / "local-settings.json"
        self.log_path = self.data_dir / "pagemark.log"
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def apply_overrides(self, local: LocalSettings) -> LocalSettings:
        """Environment values win over what local-settings.json holds."""
        if self.sync_root is not None:
            local.sync_root_path = str(self.sync_root)
            local.is_first_run = False
        if self.webdav.url:
            local.webdav = WebDAVConfig(
                url=self.webdav.url,
                username=self.webdav.username or local.webdav.username,
                password=self.webdav.password or local.webdav.password,
            )
        return local


def load_config(env_path: Optional[Path] = None) -> AppConfig:
    """Load config from .env file. Searches CWD then config dir."""
    search_paths = [
        env_path,
        Path.cwd() / ".env",
        _xdg_config_home() / "pagemark" / ".env",
        Path.home() / ".env",
    ]
    for p in search_paths:
        if p and p.exists():
            load_dotenv(p)
            break

    defaults = AppConfig()
    sync_root = os.getenv("PAGEMARK_SYNC_ROOT")
    return AppConfig(
        sync_root=Path(sync_root).expanduser() if sync_root else None,
        webdav=WebDAVConfig(
            url=os.getenv("PAGEMARK_WEBDAV_URL", ""),
            username=os.getenv("PAGEMARK_WEBDAV_USERNAME", ""),
            password=os.getenv("PAGEMARK_WEBDAV_PASSWORD", ""),
        ),
        upload_debounce=_env_float(
            "PAGEMARK_UPLOAD_DEBOUNCE_MS", defaults.upload_debounce * 1000
        )
        / 1000,
        remote_timeout=_env_float("PAGEMARK_REMOTE_TIMEOUT", defaults.remote_timeout),
    )
