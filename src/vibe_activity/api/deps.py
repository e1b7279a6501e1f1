"""FastAPI dependencies resolving per-app components from ``app.state``."""

from __future__ import annotations

from fastapi import HTTPException, Request

from vibe_activity.api.websocket import ConnectionManager
from vibe_activity.detection.engine import ActivityEngine
from vibe_activity.streaming.pipeline import StreamPipeline


def get_engine(request: Request) -> ActivityEngine:
    engine: ActivityEngine | None = getattr(request.app.state, "engine", None)
    if engine is None or engine.disposed:
        raise HTTPException(503, "Activity engine not ready.")
    return engine


def get_pipeline(request: Request) -> StreamPipeline | None:
    return getattr(request.app.state, "pipeline", None)


def get_ws_manager(request: Request) -> ConnectionManager:
    return request.app.state.ws_manager
