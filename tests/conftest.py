"""Shared fixtures for tests."""

from __future__ import annotations

import base64
from pathlib import Path
from urllib.parse import quote, unquote

import httpx
import pytest

from pagemark.config import AppConfig
from pagemark.sync.engine import SyncEngine
from pagemark.sync.webdav import WebDAVConfig

DAV_URL = "https://dav.example.com/dav"
DAV_BASE = "/dav"


class FakeWebDAV:
    """In-memory WebDAV collection served through ``httpx.MockTransport``."""

    def __init__(self, username: str = "reader", password: str = "secret") -> None:
        self.files: dict[str, bytes] = {}
        self.failing: set[str] = set()
        self.requests: list[tuple[str, str]] = []
        token = base64.b64encode(f"{username}:{password}".encode()).decode()
        self._auth = f"Basic {token}"

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def _name(self, request: httpx.Request) -> str:
        path = unquote(request.url.path)
        return path[len(DAV_BASE) :].strip("/")

    def _multistatus(self) -> bytes:
        parts = [
            '<?xml version="1.0" encoding="utf-8"?>',
            '<d:multistatus xmlns:d="DAV:">',
            f"<d:response><d:href>{DAV_BASE}/</d:href><d:propstat><d:prop>"
            "<d:resourcetype><d:collection/></d:resourcetype>"
            "</d:prop></d:propstat></d:response>",
        ]
        for name, data in sorted(self.files.items()):
            parts.append(
                f"<d:response><d:href>{DAV_BASE}/{quote(name)}</d:href><d:propstat><d:prop>"
                f"<d:resourcetype/><d:getcontentlength>{len(data)}</d:getcontentlength>"
                "</d:prop></d:propstat></d:response>"
            )
        parts.append("</d:multistatus>")
        return "".join(parts).encode("utf-8")

    def handle(self, request: httpx.Request) -> httpx.Response:
        name = self._name(request)
        self.requests.append((request.method, name))
        if request.headers.get("authorization") != self._auth:
            return httpx.Response(401)
        if name in self.failing:
            return httpx.Response(500)
        if request.method == "PROPFIND":
            return httpx.Response(207, content=self._multistatus())
        if request.method == "GET":
            if name not in self.files:
                return httpx.Response(404)
            return httpx.Response(200, content=self.files[name])
        if request.method == "PUT":
            self.files[name] = request.content
            return httpx.Response(201)
        if request.method == "DELETE":
            if self.files.pop(name, None) is None:
                return httpx.Response(404)
            return httpx.Response(204)
        return httpx.Response(405)


@pytest.fixture
def sync_root(tmp_path: Path) -> Path:
    root = tmp_path / "library"
    root.mkdir()
    return root


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        data_dir=tmp_path / "data",
        config_dir=tmp_path / "config",
    )


@pytest.fixture
def webdav_config() -> WebDAVConfig:
    return WebDAVConfig(url=DAV_URL, username="reader", password="secret")


@pytest.fixture
def fake_dav() -> FakeWebDAV:
    return FakeWebDAV()


@pytest.fixture
def engine(sync_root: Path, webdav_config: WebDAVConfig, fake_dav: FakeWebDAV) -> SyncEngine:
    return SyncEngine(sync_root, webdav_config, transport=fake_dav.transport())
