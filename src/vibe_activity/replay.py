"""Replay recorded host events through an engine on simulated time.

Input is JSON lines, one record per line::

    {"at": 0, "event": {"type": "active_editor_change", "file_name": "a.py"}}
    {"at": 1200, "event": {"type": "text_change", "changed_length": 1}}
    {"at": 240000}

``at`` is the millisecond offset from the start of the recording.  A record
without ``event`` only moves time forward.  Blank lines and lines starting
with ``#`` are skipped.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, ValidationError

from vibe_activity.config import Settings
from vibe_activity.detection.engine import ActivityEngine
from vibe_activity.models import HostEvent, StateTransition
from vibe_activity.scheduling.clock import VirtualClock

logger = structlog.get_logger(__name__)


class ReplayError(ValueError):
    """A recording line could not be parsed."""

    def __init__(self, line_no: int, message: str) -> None:
        super().__init__(f"line {line_no}: {message}")
        self.line_no = line_no


class ReplayRecord(BaseModel):
    at: float = Field(ge=0)
    event: HostEvent | None = None


def parse_records(lines: Iterable[str]) -> list[ReplayRecord]:
    """Parse JSON-lines text into records ordered by ``at`` (stable for ties)."""
    records: list[ReplayRecord] = []
    for line_no, line in enumerate(lines, start=1):
        text = line.strip()
        if not text or text.startswith("#"):
            continue
        try:
            records.append(ReplayRecord.model_validate_json(text))
        except ValidationError as exc:
            raise ReplayError(line_no, str(exc)) from exc
    records.sort(key=lambda r: r.at)
    return records


def replay(
    records: Iterable[ReplayRecord],
    *,
    settings: Settings | None = None,
    trailing_ms: float = 0.0,
) -> list[StateTransition]:
    """Drive a fresh engine through *records* and collect its transitions.

    After the last record, time keeps running for *trailing_ms* so that
    pending polls and reverts get a chance to fire.
    """
    clock = VirtualClock()
    engine = ActivityEngine(clock, settings=settings)
    transitions: list[StateTransition] = []
    engine.add_transition_listener(transitions.append)
    engine.start()

    count = 0
    try:
        for record in records:
            clock.advance_to(max(record.at, clock.now()))
            if record.event is not None:
                engine.handle_event(record.event)
                count += 1
        if trailing_ms > 0:
            clock.advance(trailing_ms)
    finally:
        engine.dispose()

    logger.info("replay.finished", events=count, transitions=len(transitions), end_ms=clock.now())
    return transitions


def replay_file(
    path: str | Path, *, settings: Settings | None = None, trailing_ms: float = 0.0
) -> list[StateTransition]:
    with open(path, encoding="utf-8") as fh:
        records = parse_records(fh)
    return replay(records, settings=settings, trailing_ms=trailing_ms)
