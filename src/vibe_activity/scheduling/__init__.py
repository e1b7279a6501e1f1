"""Clocks and the named-timer scheduler."""

from vibe_activity.scheduling.clock import Clock, LoopClock, TimerHandle, VirtualClock
from vibe_activity.scheduling.scheduler import DEBOUNCE, POLL, RESET, REVERT, Scheduler

__all__ = [
    "Clock",
    "DEBOUNCE",
    "LoopClock",
    "POLL",
    "RESET",
    "REVERT",
    "Scheduler",
    "TimerHandle",
    "VirtualClock",
]
