"""Tests for debounced callbacks."""

from __future__ import annotations

import asyncio

import pytest

from pagemark.scheduling import Debouncer, KeyedDebouncer


class TestDebouncer:
    @pytest.mark.asyncio
    async def test_burst_runs_once(self):
        calls = []
        debouncer = Debouncer(0.02, lambda: calls.append(1))
        for _ in range(5):
            debouncer.trigger()
        await debouncer.wait()
        assert calls == [1]
        assert debouncer.pending is False

    @pytest.mark.asyncio
    async def test_async_callback(self):
        calls = []

        async def work():
            await asyncio.sleep(0)
            calls.append("done")

        debouncer = Debouncer(0.01, work)
        debouncer.trigger()
        await debouncer.wait()
        assert calls == ["done"]

    @pytest.mark.asyncio
    async def test_cancel(self):
        calls = []
        debouncer = Debouncer(0.01, lambda: calls.append(1))
        debouncer.trigger()
        debouncer.cancel()
        await asyncio.sleep(0.05)
        assert calls == []

    @pytest.mark.asyncio
    async def test_flush_runs_now(self):
        calls = []
        debouncer = Debouncer(10, lambda: calls.append(1))
        debouncer.trigger()
        await debouncer.flush()
        assert calls == [1]
        await debouncer.flush()
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, caplog):
        def boom():
            raise RuntimeError("nope")

        debouncer = Debouncer(0.01, boom, name="boom")
        debouncer.trigger()
        await debouncer.wait()
        assert "Debounced boom failed" in caplog.text


class TestKeyedDebouncer:
    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        calls = []
        keyed = KeyedDebouncer(0.02, lambda key: lambda: calls.append(key))
        keyed.trigger("a")
        keyed.trigger("b")
        keyed.trigger("a")
        assert keyed.pending("a") and keyed.pending("b")
        await keyed.wait()
        assert sorted(calls) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_cancel_one(self):
        calls = []
        keyed = KeyedDebouncer(0.01, lambda key: lambda: calls.append(key))
        keyed.trigger("a")
        keyed.trigger("b")
        keyed.cancel("a")
        await keyed.wait()
        assert calls == ["b"]

    @pytest.mark.asyncio
    async def test_flush_all(self):
        calls = []
        keyed = KeyedDebouncer(10, lambda key: lambda: calls.append(key))
        keyed.trigger("x")
        keyed.trigger("y")
        await keyed.flush()
        assert sorted(calls) == ["x", "y"]
        assert keyed.pending("x") is False
