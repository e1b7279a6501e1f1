"""Transition delivery channels."""

from vibe_activity.notifications.handlers import (
    DeliveryReport,
    LogHandler,
    NotificationDispatcher,
    NotificationHandler,
    WebhookHandler,
    WebSocketHandler,
    create_dispatcher,
)

__all__ = [
    "DeliveryReport",
    "LogHandler",
    "NotificationDispatcher",
    "NotificationHandler",
    "WebSocketHandler",
    "WebhookHandler",
    "create_dispatcher",
]
