"""Activity engine: composition root of the inference core.

Raw host events flow into the :class:`SignalAggregator`; every poll tick the
engine takes a snapshot, classifies it and, when the state really changed,
emits a :class:`StateTransition`.  The :class:`BuildTestOverlay` can force a
state at any time and suspends the classifier while it is active.

Integration::

    engine = ActivityEngine(LoopClock(), on_state_change=show_state)
    engine.start()
    engine.handle_event(TextChangeEvent(changed_length=1))
    ...
    engine.dispose()
"""

from __future__ import annotations

from typing import Any

import structlog

from vibe_activity.config import Settings, get_settings
from vibe_activity.detection.aggregator import SignalAggregator
from vibe_activity.detection.classifier import StateClassifier
from vibe_activity.detection.emitter import StateListener, TransitionEmitter, TransitionListener
from vibe_activity.detection.overlay import BuildTestOverlay, TestResultCallback
from vibe_activity.models import (
    ActiveEditorChangeEvent,
    ActivityMetrics,
    ActivityState,
    ClassifierThresholds,
    HostEvent,
    OverlayState,
    StateTransition,
    TaskEndEvent,
    TaskStartEvent,
    TestRunResultEvent,
    TestRunStartEvent,
    TextChangeEvent,
    TransitionSource,
    WindowFocusEvent,
)
from vibe_activity.scheduling.clock import Clock
from vibe_activity.scheduling.scheduler import DEBOUNCE, POLL, RESET, Scheduler

logger = structlog.get_logger(__name__)


class ActivityEngine:
    """Own one aggregator, classifier, overlay, scheduler and emitter.

    All methods are meant to be called from the clock's thread.  Use
    :meth:`post_event_threadsafe` from any other thread.  Nothing raises
    across this class's public methods once constructed; faults are logged.
    """

    def __init__(
        self,
        clock: Clock,
        *,
        on_state_change: StateListener | None = None,
        on_test_result: TestResultCallback | None = None,
        settings: Settings | None = None,
        thresholds: ClassifierThresholds | None = None,
        initial_state: ActivityState | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._clock = clock
        self._scheduler = Scheduler(clock)
        self._aggregator = SignalAggregator(
            clock, buffer_size=self._settings.keystroke_buffer_size
        )
        self._classifier = StateClassifier(thresholds or self._settings.thresholds())
        self._emitter = TransitionEmitter()
        self._overlay = BuildTestOverlay(
            self._scheduler,
            self._force_from_overlay,
            revert_ms=self._settings.test_result_revert_ms,
            on_test_result=on_test_result,
        )
        self._state = initial_state or self._settings.initial_state
        self._started = False
        self._disposed = False

        if on_state_change is not None:
            self._emitter.add_listener(on_state_change)

    # ── Lifecycle ─────────────────────────────────────────────

    def start(self) -> None:
        """Arm the poll and counter-reset timers.  Idempotent."""
        if self._started or self._disposed:
            return
        self._started = True
        self._scheduler.schedule_interval(POLL, self._settings.poll_interval_ms, self.poll)
        self._scheduler.schedule_interval(
            RESET,
            self._settings.counter_reset_interval_ms,
            self._aggregator.reset_window_counters,
        )
        logger.info(
            "engine.started",
            state=self._state.value,
            poll_ms=self._settings.poll_interval_ms,
            reset_ms=self._settings.counter_reset_interval_ms,
        )

    def dispose(self) -> None:
        """Cancel poll, reset, debounce and revert timers.

        Safe to call more than once and before anything fired.  Events
        arriving afterwards are ignored.
        """
        if self._disposed:
            return
        self._disposed = True
        self._scheduler.close()
        self._overlay.clear()
        logger.info("engine.disposed", state=self._state.value)

    @property
    def running(self) -> bool:
        return self._started and not self._disposed

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ── Listeners ─────────────────────────────────────────────

    def add_listener(self, fn: StateListener) -> None:
        self._emitter.add_listener(fn)

    def add_transition_listener(self, fn: TransitionListener) -> None:
        self._emitter.add_transition_listener(fn)

    def remove_listener(self, fn: StateListener | TransitionListener) -> bool:
        return self._emitter.remove_listener(fn)

    # ── Host events ───────────────────────────────────────────

    def handle_event(self, event: HostEvent) -> None:
        """Route one host event to the aggregator or the overlay."""
        if self._disposed:
            logger.debug("engine.event_after_dispose", type=event.type)
            return
        try:
            self._dispatch(event)
        except Exception:
            logger.exception("engine.event_error", type=getattr(event, "type", None))

    def post_event_threadsafe(self, event: HostEvent) -> None:
        """Queue *event* onto the clock's thread from any thread."""
        self._clock.call_soon_threadsafe(self.handle_event, event)

    def _dispatch(self, event: HostEvent) -> None:
        if isinstance(event, TextChangeEvent):
            self.record_keystroke(event.changed_length, content_changed=event.content_changed)
        elif isinstance(event, ActiveEditorChangeEvent):
            if event.file_name is not None:
                self.record_file_switch(event.file_name)
        elif isinstance(event, WindowFocusEvent):
            if not event.focused:
                self.record_focus_loss()
        elif isinstance(event, TaskStartEvent):
            self._overlay.task_started(event.task_name)
        elif isinstance(event, TaskEndEvent):
            self._overlay.task_ended(event.task_name)
        elif isinstance(event, TestRunStartEvent):
            self._overlay.test_run_started()
        elif isinstance(event, TestRunResultEvent):
            self._overlay.test_run_finished(event.passed_count, event.failed_count)
        else:
            logger.warning("engine.unknown_event", event=repr(event))

    def record_keystroke(self, delta_length: Any, *, content_changed: bool = True) -> None:
        if self._disposed:
            return
        if self._aggregator.record_keystroke(delta_length, content_changed=content_changed):
            self._scheduler.schedule(
                DEBOUNCE, self._settings.typing_debounce_ms, self._aggregator.reset_typing
            )

    def record_file_switch(self, file_name: str | None = None) -> None:
        if self._disposed:
            return
        self._aggregator.record_file_switch(file_name)

    def record_focus_loss(self) -> None:
        if self._disposed:
            return
        self._aggregator.record_focus_loss()

    # ── Evaluation ────────────────────────────────────────────

    def poll(self) -> ActivityState:
        """Run one tick: snapshot → classify → report.  Returns the current state.

        While the overlay is active the classifier's verdict is computed for
        the log but not applied.
        """
        if self._disposed:
            return self._state
        metrics = self._aggregator.snapshot()
        result = self._classifier.evaluate(metrics, self._state)
        if self._overlay.active:
            logger.debug(
                "engine.poll_suppressed",
                overlay=self._overlay.phase.value,
                verdict=result.state.value,
            )
            return self._state
        self._apply(result.state, metrics, TransitionSource.CLASSIFIER, result.rule)
        return self._state

    def manual_state_change(self, state: ActivityState | str) -> bool:
        """Force *state*.  Reported only if it differs from the current one."""
        if self._disposed:
            return False
        try:
            target = ActivityState(state)
        except ValueError:
            logger.warning("engine.manual_state_invalid", state=str(state))
            return False
        return self._apply(
            target, self._aggregator.snapshot(), TransitionSource.MANUAL, "manual"
        )

    def _force_from_overlay(self, state: ActivityState, cause: str) -> None:
        if self._disposed:
            return
        self._apply(state, self._aggregator.snapshot(), TransitionSource.OVERLAY, cause)

    def _apply(
        self,
        state: ActivityState,
        metrics: ActivityMetrics,
        source: TransitionSource,
        rule: str | None,
    ) -> bool:
        if state is self._state:
            return False
        transition = StateTransition(
            state=state,
            previous_state=self._state,
            metrics=metrics,
            source=source,
            rule=rule,
        )
        self._state = state
        logger.info(
            "engine.state_changed",
            state=state.value,
            previous=transition.previous_state.value,
            source=source.value,
            rule=rule,
            typing_speed=round(metrics.typing_speed, 1),
            idle_ms=round(metrics.idle_time),
            tab_switches=metrics.tab_switches,
        )
        self._emitter.emit(transition)
        return True

    # ── Accessors ─────────────────────────────────────────────

    def get_current_state(self) -> ActivityState:
        return self._state

    def get_metrics_snapshot(self) -> ActivityMetrics:
        return self._aggregator.snapshot()

    @property
    def overlay_state(self) -> OverlayState:
        return self._overlay.state

    @property
    def overlay(self) -> BuildTestOverlay:
        return self._overlay

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def typed_chars(self) -> int:
        """Characters in the current typing burst (0 once the burst decayed)."""
        return self._aggregator.typed_chars

    @property
    def settings(self) -> Settings:
        return self._settings
