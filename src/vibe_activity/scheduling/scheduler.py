"""Named, cancellable timers for the activity engine.

Every delay in the engine goes through one :class:`Scheduler`:

* ``poll`` (interval): snapshot, classify, report.
* ``reset`` (interval): zero the tab-switch and file-change accumulators.
* ``debounce`` (one-shot): end a typing burst after a quiet period.
* ``revert`` (one-shot): cool down from a test result to productive.

Scheduling a name that is already pending replaces it, so the most recent
request always wins.
"""

from __future__ import annotations

from typing import Any, Callable

import structlog

from vibe_activity.scheduling.clock import Clock, TimerHandle

logger = structlog.get_logger(__name__)

POLL = "poll"
RESET = "reset"
DEBOUNCE = "debounce"
REVERT = "revert"


class Scheduler:
    """Own every timer handle of one engine instance.

    Callbacks run on the clock's thread.  A callback that raises is logged
    and swallowed; interval timers keep their cadence regardless.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._timers: dict[str, TimerHandle] = {}
        self._closed = False

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active_timers(self) -> list[str]:
        return sorted(self._timers)

    def is_scheduled(self, name: str) -> bool:
        return name in self._timers

    # ── Scheduling ────────────────────────────────────────────

    def schedule(self, name: str, delay_ms: float, callback: Callable[[], Any]) -> None:
        """Run *callback* once after *delay_ms*, superseding any pending *name*."""
        self.cancel(name)
        if self._closed:
            logger.debug("scheduler.closed_ignore", timer=name)
            return

        def _fire() -> None:
            self._timers.pop(name, None)
            self._run(name, callback)

        self._timers[name] = self._clock.call_later(delay_ms, _fire)

    def schedule_interval(
        self, name: str, interval_ms: float, callback: Callable[[], Any]
    ) -> None:
        """Run *callback* every *interval_ms* until cancelled."""
        if interval_ms <= 0:
            raise ValueError(f"interval for {name!r} must be positive, got {interval_ms}")
        self.cancel(name)
        if self._closed:
            logger.debug("scheduler.closed_ignore", timer=name)
            return

        def _tick() -> None:
            # Re-arm first so the callback may cancel its own timer.
            self._timers[name] = self._clock.call_later(interval_ms, _tick)
            self._run(name, callback)

        self._timers[name] = self._clock.call_later(interval_ms, _tick)

    # ── Cancellation ──────────────────────────────────────────

    def cancel(self, name: str) -> bool:
        """Cancel the timer called *name*.  Return ``True`` if one was pending."""
        handle = self._timers.pop(name, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for name in list(self._timers):
            self.cancel(name)

    def close(self) -> None:
        """Cancel everything and refuse new timers.  Safe to call repeatedly."""
        self.cancel_all()
        self._closed = True

    # ── Internals ─────────────────────────────────────────────

    @staticmethod
    def _run(name: str, callback: Callable[[], Any]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("scheduler.callback_error", timer=name)
