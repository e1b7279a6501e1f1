"""Metrics snapshot builder: rolling counters → :class:`ActivityMetrics`."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from vibe_activity.models import ActivityMetrics

if TYPE_CHECKING:
    from vibe_activity.detection.aggregator import RollingCounters

# Keystrokes considered for the instantaneous speed estimate
SPEED_WINDOW = 10

# Floor for the average inter-keystroke interval so that simultaneous
# timestamps yield a finite speed.
MIN_INTERVAL_MS = 1.0


def typing_speed(timestamps: Sequence[float], window: int = SPEED_WINDOW) -> float:
    """Keystrokes per minute over the last ``min(window, N)`` timestamps.

    Fewer than two timestamps means no measurable speed, so ``0.0``.
    """
    recent = list(timestamps)[-window:]
    if len(recent) < 2:
        return 0.0
    avg_interval = (recent[-1] - recent[0]) / (len(recent) - 1)
    return 60_000.0 / max(avg_interval, MIN_INTERVAL_MS)


def build_snapshot(counters: RollingCounters, now: float) -> ActivityMetrics:
    """Convert aggregator counters into a point-in-time metrics record.

    Pure: *counters* are read, never modified.
    """
    return ActivityMetrics(
        typing_speed=typing_speed(counters.keystroke_times),
        idle_time=max(0.0, now - counters.last_activity),
        tab_switches=counters.tab_switches,
        file_changes=counters.file_changes,
        time_in_file=max(0.0, now - counters.last_file_switch),
    )
