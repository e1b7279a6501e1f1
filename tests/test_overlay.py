"""Tests for the build/test overlay."""

from __future__ import annotations

import pytest

from vibe_activity.detection.overlay import BuildTestOverlay, phase_for_task
from vibe_activity.models import ActivityState, OverlayPhase
from vibe_activity.scheduling.scheduler import REVERT, Scheduler


class Forced:
    def __init__(self) -> None:
        self.calls: list[tuple[ActivityState, str]] = []

    def __call__(self, state: ActivityState, cause: str) -> None:
        self.calls.append((state, cause))

    @property
    def states(self) -> list[ActivityState]:
        return [s for s, _ in self.calls]


@pytest.fixture
def forced() -> Forced:
    return Forced()


@pytest.fixture
def overlay(clock, forced) -> BuildTestOverlay:
    return BuildTestOverlay(Scheduler(clock), forced, revert_ms=3_000)


@pytest.mark.parametrize(
    ("name", "phase"),
    [
        ("npm: build", OverlayPhase.BUILDING),
        ("Compile TypeScript", OverlayPhase.BUILDING),
        ("run tests", OverlayPhase.TESTING),
        ("pytest", OverlayPhase.TESTING),
        ("build and test", OverlayPhase.BUILDING),
        ("lint", None),
        ("", None),
    ],
)
def test_phase_for_task(name, phase):
    assert phase_for_task(name) is phase


class TestTasks:
    def test_build_task_forces_building(self, overlay, forced):
        assert overlay.task_started("webpack build") is True
        assert forced.calls == [(ActivityState.BUILDING, "task_start:building")]
        assert overlay.active
        assert overlay.state.kind == ActivityState.BUILDING

    def test_unrelated_task_is_ignored(self, overlay, forced):
        assert overlay.task_started("format") is False
        assert forced.calls == []
        assert not overlay.active

    def test_matching_end_releases_without_forcing(self, overlay, forced):
        overlay.task_started("build")
        assert overlay.task_ended("build") is True
        assert overlay.phase is OverlayPhase.IDLE
        assert forced.states == [ActivityState.BUILDING]

    def test_mismatched_end_is_noop(self, overlay):
        overlay.task_started("build")
        assert overlay.task_ended("unit tests") is False
        assert overlay.phase is OverlayPhase.BUILDING

    def test_test_task_enters_testing(self, overlay, forced):
        overlay.task_started("jest tests")
        assert overlay.phase is OverlayPhase.TESTING
        assert forced.states == [ActivityState.TESTING]


class TestTestRuns:
    def test_passed_then_revert(self, overlay, forced, clock):
        overlay.test_run_started()
        clock.advance(4_000)
        assert overlay.test_run_finished(12, 0) is ActivityState.TEST_PASSED
        assert overlay.state.revert_pending

        clock.advance(2_999)
        assert forced.states == [ActivityState.TESTING, ActivityState.TEST_PASSED]

        clock.advance(1)
        assert forced.calls[-1] == (ActivityState.PRODUCTIVE, "test_result_cooldown")
        assert overlay.phase is OverlayPhase.IDLE
        assert not overlay.state.revert_pending

    @pytest.mark.parametrize(("passed", "failed"), [(3, 1), (0, 0), (0, 2)])
    def test_failure_outcomes(self, overlay, passed, failed):
        assert overlay.test_run_finished(passed, failed) is ActivityState.TEST_FAILED

    def test_run_count_and_time(self, overlay, clock):
        assert overlay.test_run_count == 0
        assert overlay.last_test_time is None
        clock.advance(1_234)
        overlay.test_run_finished(1, 0)
        overlay.test_run_finished(1, 1)
        assert overlay.test_run_count == 2
        assert overlay.last_test_time == 1_234

    def test_new_run_cancels_pending_revert(self, overlay, forced, clock):
        overlay.test_run_finished(5, 0)
        clock.advance(2_000)
        overlay.test_run_started()
        clock.advance(10_000)
        assert forced.states == [ActivityState.TEST_PASSED, ActivityState.TESTING]
        assert overlay.phase is OverlayPhase.TESTING

    def test_second_result_restarts_revert(self, overlay, forced, clock):
        overlay.test_run_finished(5, 0)
        clock.advance(2_000)
        overlay.test_run_finished(4, 1)
        clock.advance(2_999)
        assert forced.states[-1] == ActivityState.TEST_FAILED
        clock.advance(1)
        assert forced.states[-1] == ActivityState.PRODUCTIVE

    def test_clear_drops_revert(self, overlay, forced, clock):
        overlay.test_run_finished(1, 0)
        overlay.clear()
        clock.advance(5_000)
        assert forced.states == [ActivityState.TEST_PASSED]
        assert not overlay.active


class TestResultCallback:
    def test_called_with_outcome_and_total(self, clock, forced):
        seen: list[tuple[bool, int]] = []
        overlay = BuildTestOverlay(
            Scheduler(clock), forced, on_test_result=lambda ok, n: seen.append((ok, n))
        )
        overlay.test_run_finished(7, 0)
        overlay.test_run_finished(7, 2)
        assert seen == [(True, 7), (False, 9)]

    def test_failing_callback_is_isolated(self, clock, forced):
        def _boom(ok: bool, n: int) -> None:
            raise RuntimeError("sink down")

        scheduler = Scheduler(clock)
        overlay = BuildTestOverlay(scheduler, forced, on_test_result=_boom)
        assert overlay.test_run_finished(1, 0) is ActivityState.TEST_PASSED
        assert scheduler.is_scheduled(REVERT)
