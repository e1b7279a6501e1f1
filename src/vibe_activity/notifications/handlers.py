"""Delivery channels for state transitions.

A transition leaves the engine synchronously, crosses the
:class:`~vibe_activity.streaming.pipeline.StreamPipeline` and ends up in
:meth:`NotificationDispatcher.dispatch`, which hands it to every channel
concurrently:

* ``log``: structured log line, always on.
* ``webhook``: JSON ``POST`` to ``VIBE_WEBHOOK_URL`` (music engine, avatar
  UI, chat bot ...), optionally only for some states.
* ``websocket``: push to clients connected on ``/ws``.

New channels subclass :class:`NotificationHandler` and are registered with
:meth:`NotificationDispatcher.add_handler`.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx
import structlog

from vibe_activity.models import ActivityState

if TYPE_CHECKING:
    from vibe_activity.api.websocket import ConnectionManager
    from vibe_activity.config import Settings
    from vibe_activity.models import StateTransition

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DeliveryReport:
    """Which channels took a transition and which did not."""

    state: ActivityState
    delivered: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failed


class NotificationHandler(ABC):
    """One delivery channel.

    :meth:`send` returns ``False`` for an expected delivery failure; an
    exception is treated the same way by the dispatcher.
    """

    name: str = "handler"

    def accepts(self, transition: StateTransition) -> bool:  # noqa: ARG002
        return True

    @abstractmethod
    async def send(self, transition: StateTransition) -> bool: ...


class LogHandler(NotificationHandler):
    name = "log"

    async def send(self, transition: StateTransition) -> bool:
        metrics = transition.metrics
        logger.info(
            "notification.transition",
            state=transition.state.value,
            previous=transition.previous_state.value,
            source=transition.source.value,
            rule=transition.rule,
            typing_speed=round(metrics.typing_speed, 1),
            idle_ms=round(metrics.idle_time),
        )
        return True


class WebhookHandler(NotificationHandler):
    """POST :meth:`StateTransition.to_payload` as JSON.

    *states* limits delivery to those states (``None`` = every transition).
    *transport* is passed to :class:`httpx.AsyncClient`, mainly for tests.
    """

    name = "webhook"

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 5.0,
        states: Iterable[ActivityState] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._states = None if states is None else frozenset(states)
        self._transport = transport

    def accepts(self, transition: StateTransition) -> bool:
        return self._states is None or transition.state in self._states

    async def send(self, transition: StateTransition) -> bool:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                resp = await client.post(self._url, json=transition.to_payload())
            except httpx.HTTPError as exc:
                logger.warning("notification.webhook_unreachable", url=self._url, error=str(exc))
                return False
        if not resp.is_success:
            logger.warning(
                "notification.webhook_rejected", url=self._url, status=resp.status_code
            )
            return False
        logger.debug("notification.webhook_sent", url=self._url, state=transition.state.value)
        return True


class WebSocketHandler(NotificationHandler):
    name = "websocket"

    def __init__(self, manager: ConnectionManager) -> None:
        self._manager = manager

    async def send(self, transition: StateTransition) -> bool:
        await self._manager.broadcast_transition(transition.to_payload())
        return True


class NotificationDispatcher:
    """Send each transition to all accepting channels at once.

    Channels are isolated from each other: a slow webhook does not delay the
    WebSocket push, and a channel that raises only marks itself failed.
    """

    def __init__(self, *, handlers: list[NotificationHandler] | None = None) -> None:
        self._handlers: list[NotificationHandler] = (
            list(handlers) if handlers is not None else [LogHandler()]
        )

    def add_handler(self, handler: NotificationHandler) -> None:
        self._handlers.append(handler)

    def remove_handler(self, name: str) -> bool:
        """Drop the first channel called *name*."""
        for handler in self._handlers:
            if handler.name == name:
                self._handlers.remove(handler)
                return True
        return False

    @property
    def handler_names(self) -> list[str]:
        return [h.name for h in self._handlers]

    async def dispatch(self, transition: StateTransition) -> DeliveryReport:
        targets = [h for h in self._handlers if h.accepts(transition)]
        outcomes = await asyncio.gather(
            *(h.send(transition) for h in targets), return_exceptions=True
        )

        delivered: list[str] = []
        failed: list[str] = []
        for handler, outcome in zip(targets, outcomes):
            if isinstance(outcome, Exception):
                logger.error(
                    "notification.handler_error",
                    handler=handler.name,
                    state=transition.state.value,
                    error=repr(outcome),
                )
                failed.append(handler.name)
            elif outcome:
                delivered.append(handler.name)
            else:
                failed.append(handler.name)

        report = DeliveryReport(transition.state, tuple(delivered), tuple(failed))
        if not report.ok:
            logger.warning(
                "notification.delivery_incomplete",
                state=transition.state.value,
                failed=list(report.failed),
            )
        return report


def create_dispatcher(
    settings: Settings, *, ws_manager: ConnectionManager | None = None
) -> NotificationDispatcher:
    """Wire the channels *settings* ask for; ``log`` is always present."""
    handlers: list[NotificationHandler] = [LogHandler()]
    if settings.webhook_url:
        handlers.append(WebhookHandler(settings.webhook_url, timeout=settings.webhook_timeout))
    if ws_manager is not None:
        handlers.append(WebSocketHandler(ws_manager))
    return NotificationDispatcher(handlers=handlers)
