"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from vibe_activity.config import Settings
from vibe_activity.detection.engine import ActivityEngine
from vibe_activity.models import ActivityMetrics, ActivityState, StateTransition
from vibe_activity.scheduling.clock import VirtualClock


class Recorder:
    """Collects ``on_state_change`` calls and full transitions."""

    def __init__(self) -> None:
        self.calls: list[tuple[ActivityState, ActivityMetrics]] = []
        self.transitions: list[StateTransition] = []

    def __call__(self, state: ActivityState, metrics: ActivityMetrics) -> None:
        self.calls.append((state, metrics))

    def on_transition(self, transition: StateTransition) -> None:
        self.transitions.append(transition)

    @property
    def states(self) -> list[ActivityState]:
        return [state for state, _ in self.calls]


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def engine(clock: VirtualClock, recorder: Recorder, settings: Settings) -> ActivityEngine:
    eng = ActivityEngine(clock, on_state_change=recorder, settings=settings)
    eng.add_transition_listener(recorder.on_transition)
    eng.start()
    yield eng
    eng.dispose()


def make_metrics(**overrides: float) -> ActivityMetrics:
    values = {
        "typing_speed": 0.0,
        "idle_time": 0.0,
        "tab_switches": 0,
        "file_changes": 0,
        "time_in_file": 0.0,
    }
    values.update(overrides)
    return ActivityMetrics(**values)


def type_keys(engine: ActivityEngine, clock: VirtualClock, count: int, every_ms: float) -> None:
    """Type *count* single characters, one every *every_ms*, starting now."""
    for i in range(count):
        if i:
            clock.advance(every_ms)
        engine.record_keystroke(1)
