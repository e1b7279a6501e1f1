"""Tests for recording replay and the CLI."""

from __future__ import annotations

import json

import pytest

from vibe_activity.main import main
from vibe_activity.models import ActivityState, TransitionSource
from vibe_activity.replay import ReplayError, parse_records, replay, replay_file

RECORDING = """\
# developer runs the test suite
{"at": 4000, "event": {"type": "test_run_start"}}
{"at": 0, "event": {"type": "active_editor_change", "file_name": "app.py"}}

{"at": 6000, "event": {"type": "test_run_result", "passed_count": 40, "failed_count": 0}}
"""


@pytest.fixture(autouse=True)
def _keep_logging_config(monkeypatch):
    """The CLI would reconfigure structlog for the whole test session."""
    monkeypatch.setattr("vibe_activity.main.setup_logging", lambda *args, **kwargs: None)


def test_parse_skips_comments_and_sorts():
    records = parse_records(RECORDING.splitlines())
    assert [r.at for r in records] == [0, 4000, 6000]
    assert records[0].event.file_name == "app.py"


def test_parse_time_only_record():
    (record,) = parse_records(['{"at": 250000}'])
    assert record.event is None


def test_parse_error_reports_line():
    with pytest.raises(ReplayError) as info:
        parse_records(['{"at": 0}', '{"at": 5, "event": {"type": "nope"}}'])
    assert info.value.line_no == 2


def test_negative_offset_rejected():
    with pytest.raises(ReplayError):
        parse_records(['{"at": -1}'])


def test_replay_test_run(settings):
    transitions = replay(parse_records(RECORDING.splitlines()), settings=settings, trailing_ms=3500)
    states = [t.state for t in transitions]
    assert states == [
        ActivityState.TESTING,
        ActivityState.TEST_PASSED,
        ActivityState.PRODUCTIVE,
    ]
    assert all(t.source == TransitionSource.OVERLAY for t in transitions)


def test_replay_without_trailing_time_stops_at_last_record(settings):
    transitions = replay(parse_records(RECORDING.splitlines()), settings=settings)
    # The 5000 ms poll is suppressed by the test overlay and the revert is still pending.
    assert [t.state for t in transitions] == [ActivityState.TESTING, ActivityState.TEST_PASSED]


def test_replay_file_and_cli(tmp_path, capsys):
    path = tmp_path / "session.jsonl"
    path.write_text(RECORDING, encoding="utf-8")

    assert len(replay_file(path, trailing_ms=3500)) == 3

    main(["replay", str(path), "--trailing-ms", "3500"])
    out = capsys.readouterr().out
    # Log lines share stdout with the transitions here; only the latter are JSON.
    lines = [json.loads(line) for line in out.splitlines() if line.startswith("{")]
    assert [line["state"] for line in lines] == ["testing", "test_passed", "productive"]
    assert lines[0]["previousState"] == "idle"


def test_cli_reports_bad_recording(tmp_path):
    path = tmp_path / "broken.jsonl"
    path.write_text("not json\n", encoding="utf-8")
    with pytest.raises(SystemExit) as info:
        main(["replay", str(path)])
    assert info.value.code == 2


def test_cli_without_command_prints_help():
    with pytest.raises(SystemExit) as info:
        main([])
    assert info.value.code == 1
