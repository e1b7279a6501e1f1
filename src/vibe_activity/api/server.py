"""FastAPI application: event ingestion, state queries and live transitions.

This module wires together the runtime:
- one :class:`ActivityEngine` on the server's event loop
- the transition :class:`StreamPipeline` and notification dispatcher
- WebSocket broadcasting of transitions (and event intake from clients)

Components live on ``app.state``; build an app with :func:`create_app`.
"""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from vibe_activity import __version__
from vibe_activity.api.routes.events import router as events_router
from vibe_activity.api.routes.state import router as state_router
from vibe_activity.api.websocket import ConnectionManager
from vibe_activity.config import Settings, get_settings
from vibe_activity.detection.engine import ActivityEngine
from vibe_activity.models import StateTransition, parse_host_event
from vibe_activity.notifications.handlers import create_dispatcher
from vibe_activity.scheduling.clock import LoopClock
from vibe_activity.streaming.pipeline import StreamPipeline

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hooks."""
    settings: Settings = app.state.settings
    ws_manager: ConnectionManager = app.state.ws_manager

    # 1. Notifications
    dispatcher = create_dispatcher(settings, ws_manager=ws_manager)

    # 2. Transition pipeline
    pipeline = StreamPipeline(maxsize=settings.pipeline_maxsize)

    async def _deliver(transition: StateTransition) -> None:
        await dispatcher.dispatch(transition)

    pipeline.add_consumer(_deliver)
    pipeline_task = asyncio.create_task(pipeline.start())

    # 3. Engine on this loop
    engine = ActivityEngine(LoopClock(), settings=settings)
    engine.add_transition_listener(pipeline.publish_nowait)
    engine.start()

    app.state.engine = engine
    app.state.pipeline = pipeline
    logger.info("server.started", handlers=dispatcher.handler_names)

    yield  # ← application runs

    # Shutdown
    engine.dispose()
    await pipeline.stop()
    pipeline_task.cancel()
    try:
        await pipeline_task
    except asyncio.CancelledError:
        pass
    logger.info("server.stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build a fresh application with its own engine and connection manager."""
    app = FastAPI(
        title="Vibe Activity API",
        description="Developer activity-state inference from editor telemetry.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings or get_settings()
    app.state.ws_manager = ConnectionManager()
    app.state.engine = None
    app.state.pipeline = None

    app.include_router(state_router)
    app.include_router(events_router)

    @app.get("/health", tags=["system"])
    async def health(request: Request):
        pipeline: StreamPipeline | None = request.app.state.pipeline
        return {"status": "ok", "pipeline_pending": pipeline.pending if pipeline else 0}

    @app.get("/system/info", tags=["system"])
    async def system_info(request: Request):
        state = request.app.state
        engine: ActivityEngine | None = state.engine
        return {
            "version": __version__,
            "engine": {
                "running": engine.running if engine else False,
                "state": engine.get_current_state().value if engine else None,
                "timers": engine.scheduler.active_timers if engine else [],
            },
            "pipeline": (
                {"pending": state.pipeline.pending, **state.pipeline.stats}
                if state.pipeline
                else None
            ),
            "websocket": state.ws_manager.stats(),
        }

    @app.websocket("/ws")
    async def ws_stream(ws: WebSocket):
        """Live feed of transitions.

        Clients receive ``{"type": "state_changed", "data": ...}`` messages
        and may send host events as JSON text frames.
        """
        manager: ConnectionManager = ws.app.state.ws_manager
        await manager.connect(ws)
        engine: ActivityEngine | None = ws.app.state.engine
        if engine is not None:
            await ws.send_json({"type": "hello", "state": engine.get_current_state().value})
        try:
            while True:
                data = await ws.receive_text()
                try:
                    event = parse_host_event(json.loads(data))
                except (json.JSONDecodeError, ValidationError) as exc:
                    await ws.send_json({"type": "error", "error": str(exc)})
                    continue
                if engine is not None:
                    engine.handle_event(event)
        except WebSocketDisconnect:
            await manager.disconnect(ws)

    return app
