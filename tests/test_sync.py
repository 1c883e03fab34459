"""Tests for full push/pull and per-book sync."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from pagemark.errors import WebDAVError
from pagemark.library.index import Library
from pagemark.settings import SettingsStore
from pagemark.sync.engine import SyncEngine
from pagemark.sync.webdav import WebDAVConfig


def _seed_local(sync_root: Path) -> None:
    source = sync_root.parent / "a.txt"
    source.write_text("local book", encoding="utf-8")
    Library(sync_root).import_file(source)
    SettingsStore(sync_root).load()


class TestEnablement:
    def test_disabled_without_password(self, sync_root: Path):
        engine = SyncEngine(sync_root, WebDAVConfig(url="https://x", username="u"))
        assert engine.enabled is False
        assert engine.client is None

    @pytest.mark.asyncio
    async def test_disabled_operations(self, sync_root: Path):
        engine = SyncEngine(sync_root, WebDAVConfig())
        assert await engine.upload_progress("b") is False
        assert await engine.fetch_progress("b") is None
        assert (await engine.sync_book("b")).success is False
        with pytest.raises(WebDAVError):
            await engine.push_all()

    @pytest.mark.asyncio
    async def test_connection(self, engine: SyncEngine, fake_dav):
        fake_dav.files.update({"x.txt": b"1", "book.json": b"{}"})
        assert await engine.test_connection() == 2


class TestPush:
    @pytest.mark.asyncio
    async def test_push_mirrors_local(self, sync_root: Path, engine: SyncEngine, fake_dav):
        _seed_local(sync_root)
        fake_dav.files["b.txt"] = b"remote only"
        fake_dav.files["progress_old.json"] = b"{}"

        result = await engine.push_all()

        assert result.success is True
        assert set(fake_dav.files) == {"a.txt", "book.json", "settings.json"}
        assert fake_dav.files["a.txt"] == b"local book"
        assert result.deleted == 2
        assert result.uploaded == 3
        assert result.failed == 0

    @pytest.mark.asyncio
    async def test_push_includes_progress_caches(self, sync_root: Path, engine: SyncEngine, fake_dav):
        _seed_local(sync_root)
        cache = sync_root / "cache"
        cache.mkdir()
        (cache / "atxt.json").write_text('{"bookId": "atxt"}', encoding="utf-8")

        await engine.push_all()

        assert "progress_atxt.json" in fake_dav.files
        assert "cache" not in fake_dav.files

    @pytest.mark.asyncio
    async def test_push_leaves_foreign_files(self, sync_root: Path, engine: SyncEngine, fake_dav):
        _seed_local(sync_root)
        fake_dav.files["photo.jpg"] = b"keep"
        await engine.push_all()
        assert fake_dav.files["photo.jpg"] == b"keep"

    @pytest.mark.asyncio
    async def test_push_counts_failures(self, sync_root: Path, engine: SyncEngine, fake_dav):
        _seed_local(sync_root)
        fake_dav.failing.add("settings.json")
        result = await engine.push_all()
        assert result.failed == 1
        assert result.uploaded == 2
        assert "a.txt" in fake_dav.files
        assert any("settings.json" in e for e in result.errors)


class TestPull:
    @pytest.mark.asyncio
    async def test_pull_replaces_local(self, sync_root: Path, engine: SyncEngine, fake_dav):
        _seed_local(sync_root)
        (sync_root / "stale.txt").write_text("stale", encoding="utf-8")
        index = {"books": [{"id": "btxt", "fileName": "b.txt", "filePath": "b.txt"}], "lastUpdated": "t"}
        fake_dav.files.update(
            {
                "b.txt": b"remote book",
                "book.json": json.dumps(index).encode(),
                "progress_btxt.json": b'{"bookId": "btxt", "anchorByteOffset": 4}',
            }
        )

        result = await engine.pull_all()

        assert result.book_index_overwritten is True
        assert result.downloaded == 3
        assert not (sync_root / "a.txt").exists()
        assert not (sync_root / "stale.txt").exists()
        assert not (sync_root / "settings.json").exists()
        assert (sync_root / "b.txt").read_bytes() == b"remote book"
        assert json.loads((sync_root / "cache" / "btxt.json").read_text())["anchorByteOffset"] == 4
        assert [item.book.id for item in Library(sync_root).list_books()] == ["btxt"]

    @pytest.mark.asyncio
    async def test_pull_without_index(self, sync_root: Path, engine: SyncEngine, fake_dav):
        fake_dav.files["c.txt"] = b"c"
        result = await engine.pull_all()
        assert result.book_index_overwritten is False
        assert (sync_root / "c.txt").exists()

    @pytest.mark.asyncio
    async def test_pull_listing_failure_keeps_local(self, sync_root: Path, engine: SyncEngine, fake_dav):
        _seed_local(sync_root)
        fake_dav.failing.add("")
        with pytest.raises(WebDAVError):
            await engine.pull_all()
        assert (sync_root / "a.txt").exists()

    @pytest.mark.asyncio
    async def test_pull_counts_failures(self, sync_root: Path, engine: SyncEngine, fake_dav):
        fake_dav.files.update({"ok.txt": b"1", "broken.txt": b"2"})
        fake_dav.failing.add("broken.txt")
        result = await engine.pull_all()
        assert result.downloaded == 1
        assert result.failed == 1
        assert (sync_root / "ok.txt").exists()


class TestPerBookSync:
    @pytest.mark.asyncio
    async def test_upload_progress(self, sync_root: Path, engine: SyncEngine, fake_dav):
        cache = sync_root / "cache"
        cache.mkdir()
        (cache / "bk.json").write_text('{"bookId": "bk"}', encoding="utf-8")
        assert await engine.upload_progress("bk") is True
        assert fake_dav.files["progress_bk.json"] == b'{"bookId": "bk"}'
        assert await engine.upload_progress("missing") is False

    @pytest.mark.asyncio
    async def test_sync_book_returns_remote(self, sync_root: Path, engine: SyncEngine, fake_dav):
        cache = sync_root / "cache"
        cache.mkdir()
        (cache / "bk.json").write_text('{"bookId": "bk", "anchorByteOffset": 10}', encoding="utf-8")
        result = await engine.sync_book("bk")
        assert result.success is True
        assert result.uploaded == 1
        assert result.downloaded == 1
        assert result.data["anchorByteOffset"] == 10

    @pytest.mark.asyncio
    async def test_sync_book_leaves_cache_to_store(self, sync_root: Path, engine: SyncEngine, fake_dav):
        fake_dav.files["progress_bk.json"] = b'{"bookId": "bk", "anchorByteOffset": 3}'
        result = await engine.sync_book("bk")
        assert result.data["anchorByteOffset"] == 3
        assert not (sync_root / "cache" / "bk.json").exists()

    @pytest.mark.asyncio
    async def test_sync_book_rejects_corrupt_remote(self, sync_root: Path, engine: SyncEngine, fake_dav):
        fake_dav.files["progress_bk.json"] = b"not json"
        result = await engine.sync_book("bk")
        assert result.success is False
        assert not (sync_root / "cache" / "bk.json").exists()

    @pytest.mark.asyncio
    async def test_upload_settings_file(self, sync_root: Path, engine: SyncEngine, fake_dav):
        SettingsStore(sync_root).load()
        assert await engine.upload_file("settings.json") is True
        assert json.loads(fake_dav.files["settings.json"])["fontSize"] == 16

    @pytest.mark.asyncio
    async def test_delete_progress(self, engine: SyncEngine, fake_dav):
        fake_dav.files["progress_bk.json"] = b"{}"
        assert await engine.delete_progress("bk") is True
        assert await engine.delete_progress("bk") is False
