from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from ..observability.logging import get_logger

log = get_logger("debounce")


class DebouncedTask:
    """
    A cancellable scheduled call of an async callback.

    `restart(*args)` (re)arms the timer so the callback runs with those args
    `delay_s` after the most recent restart. `cancel()` disarms it. A callback
    that has already started is never interrupted by either; its task runs to
    completion. Must be driven from the event loop thread.
    """

    def __init__(self, delay_s: float, callback: Callable[..., Awaitable[None]], *, name: str = "debounced"):
        self.delay_s = max(0.0, float(delay_s))
        self._callback = callback
        self._name = name
        self._handle: asyncio.TimerHandle | None = None
        self._args: tuple[Any, ...] = ()
        self._running: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def in_flight(self) -> int:
        return len(self._running)

    def restart(self, *args: Any) -> None:
        loop = asyncio.get_running_loop()
        self.cancel()
        self._args = args
        self._handle = loop.call_later(self.delay_s, self._fire)

    def cancel(self) -> bool:
        """Disarm the timer. Returns True when a pending call was dropped."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._run(self._args), name=self._name)
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _run(self, args: tuple[Any, ...]) -> None:
        try:
            await self._callback(*args)
        except Exception:
            log.exception("debounced_callback_failed", task=self._name)

    async def fire_now(self) -> bool:
        """Run a pending call immediately. Returns False when nothing was pending."""
        if not self.cancel():
            return False
        await self._run(self._args)
        return True

    async def wait_idle(self) -> None:
        """Wait for callbacks that have already started."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
