"""Tests for the signal aggregator and snapshot builder."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from vibe_activity.detection.aggregator import SignalAggregator
from vibe_activity.detection.snapshot import typing_speed
from vibe_activity.models import ActivityMetrics
from vibe_activity.scheduling.clock import VirtualClock


@pytest.fixture
def agg(clock: VirtualClock) -> SignalAggregator:
    return SignalAggregator(clock)


class TestTypingSpeed:
    def test_needs_two_timestamps(self):
        assert typing_speed([]) == 0.0
        assert typing_speed([1234.0]) == 0.0

    def test_average_interval(self):
        # 100 ms between keystrokes → 600 keystrokes per minute.
        assert typing_speed([0, 100, 200]) == pytest.approx(600.0)

    def test_only_last_window_counts(self):
        # A slow start followed by ten keystrokes 50 ms apart.
        stamps = [0, 5_000] + [10_000 + 50 * i for i in range(10)]
        assert typing_speed(stamps, window=10) == pytest.approx(1_200.0)

    def test_simultaneous_keystrokes_are_finite(self):
        assert typing_speed([500, 500, 500]) == pytest.approx(60_000.0)


class TestKeystrokes:
    def test_positive_edit_counts_as_typing(self, agg, clock):
        clock.advance(2_000)
        assert agg.record_keystroke(3) is True
        assert agg.typed_chars == 3
        assert agg.snapshot().idle_time == 0

    def test_buffer_feeds_speed(self, agg, clock):
        for _ in range(5):
            agg.record_keystroke(1)
            clock.advance(200)
        # Last keystroke was 200 ms ago; the average interval is 200 ms.
        snap = agg.snapshot()
        assert snap.typing_speed == pytest.approx(300.0)
        assert snap.idle_time == 200

    @pytest.mark.parametrize("bad", [0, -4, None, "abc", 2.5e400])
    def test_non_positive_or_malformed_is_not_typing(self, agg, clock, bad):
        clock.advance(1_000)
        assert agg.record_keystroke(bad) is False
        assert agg.typed_chars == 0
        assert agg.snapshot().typing_speed == 0.0

    def test_deletion_still_resets_idle(self, agg, clock):
        clock.advance(40_000)
        agg.record_keystroke(0, content_changed=True)
        assert agg.snapshot().idle_time == 0

    def test_no_content_change_leaves_idle(self, agg, clock):
        clock.advance(40_000)
        agg.record_keystroke(0, content_changed=False)
        assert agg.snapshot().idle_time == 40_000

    def test_reset_typing_clears_burst(self, agg, clock):
        for _ in range(4):
            agg.record_keystroke(2)
            clock.advance(100)
        agg.reset_typing()
        assert agg.typed_chars == 0
        assert agg.snapshot().typing_speed == 0.0


class TestFileSwitches:
    def test_first_file_is_not_a_switch(self, agg):
        assert agg.record_file_switch("a.py") is False
        assert agg.current_file == "a.py"
        assert agg.snapshot().tab_switches == 0

    def test_refocusing_same_file_is_not_a_switch(self, agg):
        agg.record_file_switch("a.py")
        assert agg.record_file_switch("a.py") is False
        assert agg.snapshot().file_changes == 0

    def test_switch_resets_time_in_file(self, agg, clock):
        agg.record_file_switch("a.py")
        clock.advance(30_000)
        assert agg.snapshot().time_in_file == 30_000

        assert agg.record_file_switch("b.py") is True
        clock.advance(1_000)
        snap = agg.snapshot()
        assert snap.tab_switches == 1
        assert snap.file_changes == 1
        assert snap.time_in_file == 1_000

    def test_anonymous_switches_always_count(self, agg):
        for _ in range(3):
            assert agg.record_file_switch() is True
        assert agg.snapshot().tab_switches == 3

    def test_window_reset_keeps_timers(self, agg, clock):
        agg.record_file_switch()
        agg.record_file_switch()
        clock.advance(5_000)
        agg.reset_window_counters()
        snap = agg.snapshot()
        assert snap.tab_switches == 0
        assert snap.file_changes == 0
        assert snap.time_in_file == 5_000


class TestFocusAndSnapshot:
    def test_focus_loss_refreshes_activity_only(self, agg, clock):
        clock.advance(50_000)
        agg.record_focus_loss()
        snap = agg.snapshot()
        assert snap.idle_time == 0
        assert snap.time_in_file == 50_000

    def test_idle_time_grows_with_clock(self, agg, clock):
        clock.advance(1_000)
        first = agg.snapshot().idle_time
        clock.advance(1_000)
        assert agg.snapshot().idle_time == first + 1_000

    def test_snapshot_is_pure(self, agg, clock):
        agg.record_file_switch()
        agg.record_keystroke(1)
        clock.advance(50)
        agg.record_keystroke(1)
        assert agg.snapshot() == agg.snapshot()
        assert agg.typed_chars == 2

    def test_durations_never_negative(self, agg, clock):
        clock.advance(10_000)
        agg.record_keystroke(1)
        agg.record_file_switch()
        snap = agg.snapshot(now=5_000)
        assert snap.idle_time == 0
        assert snap.time_in_file == 0


class TestMetricsModel:
    def test_frozen(self):
        m = ActivityMetrics(typing_speed=10)
        with pytest.raises(ValidationError):
            m.typing_speed = 20

    def test_rejects_negative(self):
        with pytest.raises(ValidationError):
            ActivityMetrics(idle_time=-1)

    def test_camel_case_dump(self):
        m = ActivityMetrics(typing_speed=1.5, tab_switches=2)
        dumped = m.model_dump(by_alias=True)
        assert dumped["typingSpeed"] == 1.5
        assert dumped["tabSwitches"] == 2
        assert set(dumped) == {"typingSpeed", "idleTime", "tabSwitches", "fileChanges", "timeInFile"}
