"""Current state, metrics snapshot and manual override routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from vibe_activity.api.deps import get_engine, get_ws_manager
from vibe_activity.api.schemas import ManualStateRequest, ManualStateResponse, StateResponse
from vibe_activity.api.websocket import ConnectionManager
from vibe_activity.detection.engine import ActivityEngine

router = APIRouter(tags=["state"])


@router.get("/state", response_model=StateResponse)
async def current_state(engine: ActivityEngine = Depends(get_engine)):
    return StateResponse(
        state=engine.get_current_state(),
        overlay=engine.overlay_state,
        test_run_count=engine.overlay.test_run_count,
    )


@router.post("/state", response_model=ManualStateResponse)
async def manual_state(req: ManualStateRequest, engine: ActivityEngine = Depends(get_engine)):
    """Force a state; reported to listeners only if it differs from the current one."""
    changed = engine.manual_state_change(req.state)
    return ManualStateResponse(changed=changed, state=engine.get_current_state())


@router.get("/metrics")
async def metrics(engine: ActivityEngine = Depends(get_engine)):
    return engine.get_metrics_snapshot().model_dump(mode="json", by_alias=True)


@router.get("/transitions")
async def recent_transitions(
    limit: int = 20, ws_manager: ConnectionManager = Depends(get_ws_manager)
):
    """Most recent transitions delivered to WebSocket clients, newest first."""
    return ws_manager.get_recent(limit)
