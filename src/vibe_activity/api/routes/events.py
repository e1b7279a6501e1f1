"""Host event ingestion routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError

from vibe_activity.api.deps import get_engine
from vibe_activity.api.schemas import IngestResponse
from vibe_activity.detection.engine import ActivityEngine
from vibe_activity.models import HostEvent, parse_host_event

router = APIRouter(tags=["events"])


def _parse(raw: Any) -> HostEvent:
    try:
        return parse_host_event(raw)
    except ValidationError as exc:
        raise HTTPException(422, exc.errors(include_url=False, include_context=False)) from exc


@router.post("/events", status_code=202, response_model=IngestResponse)
async def ingest_event(
    payload: dict[str, Any] = Body(...),
    engine: ActivityEngine = Depends(get_engine),
):
    """Feed one host event (``{"type": "text_change", "changed_length": 3}`` …)."""
    engine.handle_event(_parse(payload))
    return IngestResponse(accepted=1, state=engine.get_current_state())


@router.post("/events/batch", status_code=202, response_model=IngestResponse)
async def ingest_batch(
    payload: list[dict[str, Any]] = Body(...),
    engine: ActivityEngine = Depends(get_engine),
):
    """Feed several events in order.  Nothing is applied if any fails validation."""
    events = [_parse(raw) for raw in payload]
    for event in events:
        engine.handle_event(event)
    return IngestResponse(accepted=len(events), state=engine.get_current_state())
