"""Signal aggregator: folds raw editor signals into rolling counters."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any

import structlog

from vibe_activity.detection.snapshot import SPEED_WINDOW, build_snapshot
from vibe_activity.models import ActivityMetrics, coerce_count
from vibe_activity.scheduling.clock import Clock

logger = structlog.get_logger(__name__)


@dataclass
class RollingCounters:
    """Mutable counters owned by exactly one :class:`SignalAggregator`."""

    last_activity: float
    last_file_switch: float
    current_file: str | None = None
    typed_chars: int = 0
    tab_switches: int = 0
    file_changes: int = 0
    keystroke_times: deque[float] = field(default_factory=lambda: deque(maxlen=SPEED_WINDOW))


class SignalAggregator:
    """Accumulate keystrokes, file switches and focus changes.

    All entry points run on the engine's single event-loop thread; a call
    made between two poll ticks is visible to the next tick's snapshot.
    The counters themselves are only exposed through :meth:`snapshot`.
    """

    def __init__(self, clock: Clock, *, buffer_size: int = SPEED_WINDOW) -> None:
        self._clock = clock
        now = clock.now()
        self._counters = RollingCounters(
            last_activity=now,
            last_file_switch=now,
            keystroke_times=deque(maxlen=max(buffer_size, 2)),
        )

    # ── Recording ─────────────────────────────────────────────

    def record_keystroke(self, delta_length: Any, *, content_changed: bool = True) -> bool:
        """Record an edit of *delta_length* characters.

        Only a positive length counts as typing.  A zero-length edit (a
        deletion, or a malformed payload) still resets the idle clock when
        the host reported a real content change.  Returns ``True`` when the
        edit counted as typing.
        """
        length = coerce_count(delta_length)
        c = self._counters
        now = self._clock.now()

        if length == 0:
            if content_changed:
                c.last_activity = now
            return False

        c.last_activity = now
        c.typed_chars += length
        c.keystroke_times.append(now)
        return True

    def record_file_switch(self, file_name: str | None = None) -> bool:
        """Record a file/tab switch.  Returns ``True`` when it qualified.

        Without a *file_name* every call is a switch.  With one, the first
        file seen only becomes the current file and re-focusing the current
        file is not a switch.
        """
        c = self._counters
        now = self._clock.now()
        c.last_activity = now

        if file_name is not None:
            previous, c.current_file = c.current_file, file_name
            if previous is None or previous == file_name:
                return False

        c.tab_switches += 1
        c.file_changes += 1
        c.last_file_switch = now
        return True

    def record_focus_loss(self) -> None:
        """Leaving the window marks the last moment of activity."""
        self._counters.last_activity = self._clock.now()

    # ── Resets (driven by the scheduler) ──────────────────────

    def reset_typing(self) -> None:
        """End the current typing burst: characters and speed samples go."""
        c = self._counters
        if c.typed_chars or c.keystroke_times:
            logger.debug("aggregator.typing_reset", typed_chars=c.typed_chars)
        c.typed_chars = 0
        c.keystroke_times.clear()

    def reset_window_counters(self) -> None:
        c = self._counters
        c.tab_switches = 0
        c.file_changes = 0

    # ── Reading ───────────────────────────────────────────────

    @property
    def typed_chars(self) -> int:
        """Characters typed in the current burst."""
        return self._counters.typed_chars

    @property
    def current_file(self) -> str | None:
        return self._counters.current_file

    def snapshot(self, now: float | None = None) -> ActivityMetrics:
        return build_snapshot(self._counters, self._clock.now() if now is None else now)
