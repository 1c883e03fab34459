"""Tests for the WebDAV client."""

from __future__ import annotations

import httpx
import pytest

from pagemark.errors import WebDAVAuth, WebDAVError, WebDAVNetwork, WebDAVNotFound
from pagemark.sync.webdav import WebDAVClient, WebDAVConfig


class TestWebDAVConfig:
    def test_is_complete(self):
        assert WebDAVConfig("https://x", "u", "p").is_complete is True
        assert WebDAVConfig("https://x", "u", "").is_complete is False
        assert WebDAVConfig().is_complete is False

    def test_legacy_key(self):
        config = WebDAVConfig.from_dict({"webdavPath": "https://old", "username": "u", "password": "p"})
        assert config.url == "https://old"

    def test_from_none(self):
        assert WebDAVConfig.from_dict(None) == WebDAVConfig()


class TestWebDAVClient:
    @pytest.mark.asyncio
    async def test_write_read_delete(self, webdav_config, fake_dav):
        client = WebDAVClient(webdav_config, transport=fake_dav.transport())
        await client.write("/book.json", b'{"books": []}')
        assert await client.read("/book.json") == b'{"books": []}'
        await client.delete("/book.json")
        assert fake_dav.files == {}
        await client.close()

    @pytest.mark.asyncio
    async def test_list_dir(self, webdav_config, fake_dav):
        fake_dav.files["a.txt"] = b"12345"
        fake_dav.files["中文 书.txt"] = b"x"
        client = WebDAVClient(webdav_config, transport=fake_dav.transport())
        entries = await client.list_dir("/")
        by_name = {e.name: e for e in entries}
        assert set(by_name) == {"a.txt", "中文 书.txt"}
        assert by_name["a.txt"].size == 5
        assert by_name["a.txt"].path == "/a.txt"
        assert by_name["a.txt"].is_dir is False

    @pytest.mark.asyncio
    async def test_quoted_paths_roundtrip(self, webdav_config, fake_dav):
        client = WebDAVClient(webdav_config, transport=fake_dav.transport())
        await client.write("/三体 1.txt", b"abc")
        assert "三体 1.txt" in fake_dav.files
        (entry,) = await client.list_dir("/")
        assert await client.read(entry.path) == b"abc"

    @pytest.mark.asyncio
    async def test_not_found(self, webdav_config, fake_dav):
        client = WebDAVClient(webdav_config, transport=fake_dav.transport())
        with pytest.raises(WebDAVNotFound):
            await client.read("/missing.json")

    @pytest.mark.asyncio
    async def test_auth_failure(self, fake_dav):
        client = WebDAVClient(
            WebDAVConfig(url="https://dav.example.com/dav", username="reader", password="wrong"),
            transport=fake_dav.transport(),
        )
        with pytest.raises(WebDAVAuth):
            await client.list_dir("/")

    @pytest.mark.asyncio
    async def test_server_error(self, webdav_config, fake_dav):
        fake_dav.failing.add("a.txt")
        client = WebDAVClient(webdav_config, transport=fake_dav.transport())
        with pytest.raises(WebDAVNetwork):
            await client.write("/a.txt", b"x")

    @pytest.mark.asyncio
    async def test_connection_error(self, webdav_config):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = WebDAVClient(webdav_config, transport=httpx.MockTransport(refuse))
        with pytest.raises(WebDAVNetwork) as exc_info:
            await client.read("/a.txt")
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_errors_share_base(self, webdav_config, fake_dav):
        client = WebDAVClient(webdav_config, transport=fake_dav.transport())
        with pytest.raises(WebDAVError):
            await client.delete("/nothing.txt")
