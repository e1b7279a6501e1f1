"""Live transition feed for WebSocket clients."""

from __future__ import annotations

import asyncio
import json
import time
from collections import deque
from typing import Any

import structlog
from fastapi import WebSocket

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """Track connected clients and push transition payloads to all of them.

    The last *recent* payloads are kept for ``GET /transitions`` so a
    dashboard that connects late can render history straight away.
    """

    def __init__(self, recent: int = 50) -> None:
        self._clients: set[WebSocket] = set()
        self._recent: deque[dict[str, Any]] = deque(maxlen=recent)
        self._guard = asyncio.Lock()
        self._started_at = time.monotonic()
        self._messages_sent = 0
        self._last_sent_at: float | None = None

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        async with self._guard:
            self._clients.add(ws)
        logger.info("ws.connected", clients=len(self._clients))

    async def disconnect(self, ws: WebSocket) -> None:
        async with self._guard:
            self._clients.discard(ws)
        logger.info("ws.disconnected", clients=len(self._clients))

    @property
    def active_count(self) -> int:
        return len(self._clients)

    async def broadcast(self, message: dict[str, Any]) -> int:
        """Send *message* to every client; drop clients whose send fails.

        Returns the number of clients reached.
        """
        async with self._guard:
            clients = list(self._clients)
        if not clients:
            return 0

        text = json.dumps(message)
        outcomes = await asyncio.gather(
            *(ws.send_text(text) for ws in clients), return_exceptions=True
        )
        stale = [ws for ws, out in zip(clients, outcomes) if isinstance(out, Exception)]
        for ws in stale:
            await self.disconnect(ws)

        self._messages_sent += 1
        self._last_sent_at = time.monotonic()
        return len(clients) - len(stale)

    async def broadcast_transition(self, payload: dict[str, Any]) -> int:
        self._recent.appendleft(payload)
        return await self.broadcast({"type": "state_changed", "data": payload})

    def get_recent(self, limit: int = 20) -> list[dict[str, Any]]:
        """Newest first."""
        return list(self._recent)[: max(limit, 0)]

    def stats(self) -> dict[str, Any]:
        now = time.monotonic()
        return {
            "connected_clients": len(self._clients),
            "messages_sent": self._messages_sent,
            "uptime_seconds": round(now - self._started_at),
            "last_message_ago_sec": (
                round(now - self._last_sent_at) if self._last_sent_at is not None else None
            ),
        }
