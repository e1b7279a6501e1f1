"""Request / response models shared across API route modules."""

from __future__ import annotations

from pydantic import BaseModel

from vibe_activity.models import ActivityState, OverlayState


class ManualStateRequest(BaseModel):
    state: ActivityState


class ManualStateResponse(BaseModel):
    changed: bool
    state: ActivityState


class StateResponse(BaseModel):
    state: ActivityState
    overlay: OverlayState
    test_run_count: int = 0


class IngestResponse(BaseModel):
    accepted: int
    state: ActivityState
