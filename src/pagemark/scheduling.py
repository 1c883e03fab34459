"""Debounced callbacks on the running asyncio loop."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Hashable, Optional, Union

log = logging.getLogger(__name__)

Callback = Callable[[], Union[None, Awaitable[Any]]]


class Debouncer:
    """Run ``callback`` once ``delay`` seconds after the last :meth:`trigger`.

    A new trigger cancels the pending run, including one that has already
    started awaiting, and reschedules it. Exceptions from the callback are
    logged so the next tick can retry.
    """

    def __init__(self, delay: float, callback: Callback, name: str = "") -> None:
        self.delay = delay
        self._callback = callback
        self._name = name or getattr(callback, "__name__", "debounced")
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self) -> None:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def flush(self) -> None:
        """Run a pending callback immediately instead of waiting for the timer."""
        if not self.pending:
            return
        self.cancel()
        await self._invoke()

    async def wait(self) -> None:
        task = self._task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        await self._invoke()

    async def _invoke(self) -> None:
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("Debounced %s failed", self._name)


class KeyedDebouncer:
    """One :class:`Debouncer` per key, e.g. one upload timer per book."""

    def __init__(self, delay: float, callback: Callable[[Hashable], Callback]) -> None:
        self.delay = delay
        self._factory = callback
        self._debouncers: dict[Hashable, Debouncer] = {}

    def trigger(self, key: Hashable) -> None:
        debouncer = self._debouncers.get(key)
        if debouncer is None:
            debouncer = Debouncer(self.delay, self._factory(key), name=str(key))
            self._debouncers[key] = debouncer
        debouncer.delay = self.delay
        debouncer.trigger()

    def pending(self, key: Hashable) -> bool:
        debouncer = self._debouncers.get(key)
        return debouncer is not None and debouncer.pending

    def cancel(self, key: Hashable) -> None:
        debouncer = self._debouncers.pop(key, None)
        if debouncer is not None:
            debouncer.cancel()

    def cancel_all(self) -> None:
        for key in list(self._debouncers):
            self.cancel(key)

    async def flush(self, key: Optional[Hashable] = None) -> None:
        keys = [key] if key is not None else list(self._debouncers)
        for k in keys:
            debouncer = self._debouncers.get(k)
            if debouncer is not None:
                await debouncer.flush()

    async def wait(self) -> None:
        for debouncer in list(self._debouncers.values()):
            await debouncer.wait()
