"""Repeating-timer abstraction for the capture clock and waveform loop."""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything able to invoke ``callback`` every ``interval`` seconds."""

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle: ...


class _RepeatingCall:
    """Fixed-rate ``call_at`` chain on an asyncio loop."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        interval: float,
        callback: Callable[[], None],
    ) -> None:
        self._loop = loop
        self._interval = interval
        self._callback = callback
        self._cancelled = False
        self._next_at = loop.time() + interval
        self._handle: asyncio.TimerHandle = loop.call_at(self._next_at, self._run)

    def _run(self) -> None:
        if self._cancelled:
            return
        self._next_at += self._interval
        self._handle = self._loop.call_at(self._next_at, self._run)
        self._callback()

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler:
    """Schedule repeating callbacks on the running event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_every(self, interval: float, callback: Callable[[], None]) -> _RepeatingCall:
        loop = self._loop or asyncio.get_running_loop()
        return _RepeatingCall(loop, interval, callback)


class ManualTimer:
    def __init__(self, scheduler: "ManualScheduler", interval: float, callback: Callable[[], None]) -> None:
        self._scheduler = scheduler
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
        self._scheduler._discard(self)


class ManualScheduler:
    """Deterministic scheduler; timers fire only when :meth:`advance` is called.

    Used by tests and by offline tooling that replays a recording without a
    running clock.
    """

    def __init__(self) -> None:
        self._timers: List[ManualTimer] = []

    def call_every(self, interval: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self, interval, callback)
        self._timers.append(timer)
        return timer

    def _discard(self, timer: ManualTimer) -> None:
        if timer in self._timers:
            self._timers.remove(timer)

    @property
    def active_timers(self) -> List[ManualTimer]:
        return list(self._timers)

    def advance(self, ticks: int = 1, *, interval: float | None = None) -> None:
        """Fire every live timer (optionally only those with ``interval``) ``ticks`` times."""

        for _ in range(ticks):
            for timer in list(self._timers):
                if timer.cancelled:
                    continue
                if interval is not None and timer.interval != interval:
                    continue
                timer.callback()


__all__ = [
    "AsyncioScheduler",
    "ManualScheduler",
    "ManualTimer",
    "Scheduler",
    "TimerHandle",
]
