"""Shared Pydantic models used across the engine."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

# ── Enums ─────────────────────────────────────────────────────

class ActivityState(str, Enum):
    """What the developer appears to be doing right now."""
    IDLE = "idle"
    PRODUCTIVE = "productive"
    STUCK = "stuck"
    PROCRASTINATING = "procrastinating"
    TESTING = "testing"
    BUILDING = "building"
    TEST_PASSED = "test_passed"
    TEST_FAILED = "test_failed"


class TransitionSource(str, Enum):
    """Which layer produced a state transition."""
    CLASSIFIER = "classifier"
    OVERLAY = "overlay"
    MANUAL = "manual"


class OverlayPhase(str, Enum):
    """Phases of the build/test overlay state machine."""
    IDLE = "idle"
    BUILDING = "building"
    TESTING = "testing"
    RESOLVED = "resolved"


# ── Metrics ───────────────────────────────────────────────────

class ActivityMetrics(BaseModel):
    """Point-in-time metrics snapshot.  Immutable once produced.

    Durations are milliseconds, ``typing_speed`` is keystrokes per minute.
    Serialised with camelCase aliases (``typingSpeed``, ``idleTime`` …).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    typing_speed: float = Field(0.0, ge=0)
    idle_time: float = Field(0.0, ge=0)
    tab_switches: int = Field(0, ge=0)
    file_changes: int = Field(0, ge=0)
    time_in_file: float = Field(0.0, ge=0)


class ClassifierThresholds(BaseModel):
    """Threshold set used by the ordered classification rules."""

    model_config = ConfigDict(frozen=True)

    procrastination_tab_switches: int = 10
    procrastination_max_typing_speed: float = 100.0
    productive_min_typing_speed: float = 200.0
    productive_max_idle_ms: float = 10_000
    stuck_min_time_in_file_ms: float = 120_000
    stuck_min_idle_ms: float = 30_000
    idle_threshold_ms: float = 180_000
    fallback_productive_typing_speed: float = 50.0


DEFAULT_THRESHOLDS = ClassifierThresholds()


class OverlayState(BaseModel):
    """Read-only view of the build/test overlay."""

    model_config = ConfigDict(frozen=True)

    active: bool = False
    phase: OverlayPhase = OverlayPhase.IDLE
    kind: ActivityState | None = None
    revert_pending: bool = False


class StateTransition(BaseModel):
    """A reported change of the current activity state."""

    model_config = ConfigDict(frozen=True)

    state: ActivityState
    previous_state: ActivityState
    metrics: ActivityMetrics
    source: TransitionSource
    rule: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict used by webhooks and WebSocket clients."""
        return {
            "state": self.state.value,
            "previousState": self.previous_state.value,
            "metrics": self.metrics.model_dump(mode="json", by_alias=True),
            "source": self.source.value,
            "rule": self.rule,
            "timestamp": self.timestamp.isoformat(),
        }


# ── Host events ───────────────────────────────────────────────

def coerce_count(value: Any) -> int:
    """Malformed counts (missing, negative, non-numeric) become ``0``."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(number, 0)


class TextChangeEvent(BaseModel):
    """A document edit reported by the host editor."""
    type: Literal["text_change"] = "text_change"
    changed_length: int = 0
    content_changed: bool = True

    @field_validator("changed_length", mode="before")
    @classmethod
    def normalise_length(cls, value: Any) -> int:
        return coerce_count(value)


class ActiveEditorChangeEvent(BaseModel):
    """The active editor/tab changed.  ``file_name`` is ``None`` when no editor is focused."""
    type: Literal["active_editor_change"] = "active_editor_change"
    file_name: str | None = None


class WindowFocusEvent(BaseModel):
    type: Literal["window_focus_change"] = "window_focus_change"
    focused: bool


class TaskStartEvent(BaseModel):
    type: Literal["task_start"] = "task_start"
    task_name: str = ""


class TaskEndEvent(BaseModel):
    type: Literal["task_end"] = "task_end"
    task_name: str = ""


class TestRunStartEvent(BaseModel):
    """A test run was started (results not yet known)."""
    __test__ = False

    type: Literal["test_run_start"] = "test_run_start"


class TestRunResultEvent(BaseModel):
    """Results of a finished test run."""
    __test__ = False

    type: Literal["test_run_result"] = "test_run_result"
    passed_count: int = 0
    failed_count: int = 0

    @field_validator("passed_count", "failed_count", mode="before")
    @classmethod
    def normalise_counts(cls, value: Any) -> int:
        return coerce_count(value)

    @property
    def passed(self) -> bool:
        return self.failed_count == 0 and self.passed_count > 0

    @property
    def total(self) -> int:
        return self.passed_count + self.failed_count


HostEvent = Annotated[
    Union[
        TextChangeEvent,
        ActiveEditorChangeEvent,
        WindowFocusEvent,
        TaskStartEvent,
        TaskEndEvent,
        TestRunStartEvent,
        TestRunResultEvent,
    ],
    Field(discriminator="type"),
]

host_event_adapter: TypeAdapter[HostEvent] = TypeAdapter(HostEvent)


def parse_host_event(data: Any) -> HostEvent:
    """Validate a raw mapping (or JSON string) into one of the host event models."""
    if isinstance(data, (str, bytes)):
        return host_event_adapter.validate_json(data)
    return host_event_adapter.validate_python(data)
