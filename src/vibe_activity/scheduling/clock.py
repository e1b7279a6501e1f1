"""Millisecond clocks that the scheduler and aggregator read time from.

Two implementations share the :class:`Clock` contract:

* :class:`LoopClock` runs on a real :mod:`asyncio` event loop.
* :class:`VirtualClock` is simulated time.  Nothing fires until
  :meth:`VirtualClock.advance` is called, which makes every timer in the
  engine deterministic under test and during log replay.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Protocol


class TimerHandle(Protocol):
    """Anything with an idempotent ``cancel()``; ``asyncio.TimerHandle`` qualifies."""

    def cancel(self) -> None: ...


class Clock(ABC):
    """Time source plus one-shot callback scheduling, in milliseconds."""

    @abstractmethod
    def now(self) -> float:
        """Current monotonic time in milliseconds."""

    @abstractmethod
    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> TimerHandle:
        """Run *callback* once after *delay_ms*."""

    @abstractmethod
    def call_soon_threadsafe(self, callback: Callable[..., Any], *args: Any) -> None:
        """Hand *callback* to the clock's owning thread from any thread."""


# ── asyncio ───────────────────────────────────────────────────


class LoopClock(Clock):
    """Clock backed by an :class:`asyncio.AbstractEventLoop`."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def now(self) -> float:
        return self._loop.time() * 1000.0

    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> TimerHandle:
        return self._loop.call_later(max(delay_ms, 0.0) / 1000.0, callback)

    def call_soon_threadsafe(self, callback: Callable[..., Any], *args: Any) -> None:
        self._loop.call_soon_threadsafe(callback, *args)


# ── Simulated time ────────────────────────────────────────────


class _VirtualTimer:
    __slots__ = ("due", "callback", "cancelled")

    def __init__(self, due: float, callback: Callable[[], Any]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualClock(Clock):
    """Deterministic clock for tests and replays.

    Timers fire in order of due time, ties broken by scheduling order.  While
    a timer runs, :meth:`now` reports exactly its due time.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)
        self._heap: list[tuple[float, int, _VirtualTimer]] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> TimerHandle:
        timer = _VirtualTimer(self._now + max(delay_ms, 0.0), callback)
        with self._lock:
            heapq.heappush(self._heap, (timer.due, next(self._seq), timer))
        return timer

    def call_soon_threadsafe(self, callback: Callable[..., Any], *args: Any) -> None:
        self.call_later(0.0, lambda: callback(*args))

    @property
    def pending(self) -> int:
        """Number of timers that are scheduled and not cancelled."""
        with self._lock:
            return sum(1 for _, _, t in self._heap if not t.cancelled)

    def advance(self, ms: float) -> None:
        """Move time forward by *ms*, firing every timer that falls due."""
        if ms < 0:
            raise ValueError("cannot move a clock backwards")
        self.advance_to(self._now + ms)

    def advance_to(self, target: float) -> None:
        """Move time forward to the absolute instant *target*."""
        if target < self._now:
            raise ValueError("cannot move a clock backwards")
        while True:
            with self._lock:
                if not self._heap or self._heap[0][0] > target:
                    break
                due, _, timer = heapq.heappop(self._heap)
            if timer.cancelled:
                continue
            self._now = due
            timer.callback()
        self._now = target

    def run_pending(self) -> None:
        """Fire everything already due without moving time."""
        self.advance(0.0)
