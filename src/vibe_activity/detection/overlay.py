"""Build/test overlay: a priority layer above the classifier.

Phases
~~~~~~
* ``idle``: no override; the classifier owns the state.
* ``building``: a build/compile task is running → ``building``.
* ``testing``: a test run (or test task) is running → ``testing``.
* ``resolved``: results arrived → ``test_passed`` / ``test_failed`` until
  the revert timer fires and forces ``productive``.

Every lifecycle event that moves the overlay cancels a pending revert first,
so the latest event always wins.
"""

from __future__ import annotations

import re
from typing import Callable

import structlog

from vibe_activity.models import ActivityState, OverlayPhase, OverlayState
from vibe_activity.scheduling.scheduler import REVERT, Scheduler

logger = structlog.get_logger(__name__)

BUILD_TASK_PATTERN = re.compile(r"build|compile", re.IGNORECASE)
TEST_TASK_PATTERN = re.compile(r"test", re.IGNORECASE)

DEFAULT_REVERT_MS = 3_000

ForceState = Callable[[ActivityState, str], None]
TestResultCallback = Callable[[bool, int], None]


def phase_for_task(task_name: str) -> OverlayPhase | None:
    """Map a task name to the overlay phase it drives, if any.

    Build/compile wins over test for names that contain both.
    """
    if BUILD_TASK_PATTERN.search(task_name):
        return OverlayPhase.BUILDING
    if TEST_TASK_PATTERN.search(task_name):
        return OverlayPhase.TESTING
    return None


_PHASE_STATE = {
    OverlayPhase.BUILDING: ActivityState.BUILDING,
    OverlayPhase.TESTING: ActivityState.TESTING,
}


class BuildTestOverlay:
    """Drive ``building``/``testing``/``test_*`` states from lifecycle events.

    The overlay never reports anything itself: it calls *force_state* with
    the state to show and a short cause string, and the engine decides
    whether that is a real transition.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        force_state: ForceState,
        *,
        revert_ms: float = DEFAULT_REVERT_MS,
        on_test_result: TestResultCallback | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._force_state = force_state
        self._revert_ms = revert_ms
        self._on_test_result = on_test_result
        self._phase = OverlayPhase.IDLE
        self._kind: ActivityState | None = None
        self._test_run_count = 0
        self._last_test_time: float | None = None

    # ── Introspection ─────────────────────────────────────────

    @property
    def active(self) -> bool:
        return self._phase is not OverlayPhase.IDLE

    @property
    def phase(self) -> OverlayPhase:
        return self._phase

    @property
    def state(self) -> OverlayState:
        return OverlayState(
            active=self.active,
            phase=self._phase,
            kind=self._kind,
            revert_pending=self._scheduler.is_scheduled(REVERT),
        )

    @property
    def test_run_count(self) -> int:
        return self._test_run_count

    @property
    def last_test_time(self) -> float | None:
        """Clock time (ms) of the most recent test result, if any."""
        return self._last_test_time

    # ── Lifecycle events ──────────────────────────────────────

    def task_started(self, task_name: str) -> bool:
        """Enter ``building``/``testing`` for a matching task.  Others are ignored."""
        phase = phase_for_task(task_name)
        if phase is None:
            logger.debug("overlay.task_ignored", task=task_name)
            return False
        self._enter(phase, _PHASE_STATE[phase], f"task_start:{phase.value}")
        return True

    def task_ended(self, task_name: str) -> bool:
        """Hand authority back to the classifier when the running task ends.

        An end event for a task kind the overlay is not showing is a no-op.
        The displayed state stays until the next poll tick reclassifies.
        """
        phase = phase_for_task(task_name)
        if phase is None or phase is not self._phase:
            return False
        self._clear()
        logger.info("overlay.released", task=task_name, phase=phase.value)
        return True

    def test_run_started(self) -> None:
        self._enter(OverlayPhase.TESTING, ActivityState.TESTING, "test_run_start")

    def test_run_finished(self, passed_count: int, failed_count: int) -> ActivityState:
        """Resolve the run and start the cool-down back to ``productive``."""
        passed = failed_count == 0 and passed_count > 0
        state = ActivityState.TEST_PASSED if passed else ActivityState.TEST_FAILED

        self._test_run_count += 1
        self._last_test_time = self._scheduler.clock.now()
        logger.info(
            "overlay.test_result",
            passed=passed_count,
            failed=failed_count,
            runs=self._test_run_count,
        )

        self._enter(OverlayPhase.RESOLVED, state, "test_run_result")
        self._scheduler.schedule(REVERT, self._revert_ms, self._revert)
        self._notify_test_result(passed, passed_count + failed_count)
        return state

    def clear(self) -> None:
        """Drop any override and pending revert without forcing a state."""
        self._clear()

    # ── Internals ─────────────────────────────────────────────

    def _enter(self, phase: OverlayPhase, state: ActivityState, cause: str) -> None:
        self._scheduler.cancel(REVERT)
        self._phase = phase
        self._kind = state
        logger.debug("overlay.enter", phase=phase.value, state=state.value)
        self._force_state(state, cause)

    def _clear(self) -> None:
        self._scheduler.cancel(REVERT)
        self._phase = OverlayPhase.IDLE
        self._kind = None

    def _revert(self) -> None:
        self._phase = OverlayPhase.IDLE
        self._kind = None
        logger.info("overlay.revert_fired")
        self._force_state(ActivityState.PRODUCTIVE, "test_result_cooldown")

    def _notify_test_result(self, passed: bool, test_count: int) -> None:
        if self._on_test_result is None:
            return
        try:
            self._on_test_result(passed, test_count)
        except Exception:
            logger.exception("overlay.test_callback_error")
