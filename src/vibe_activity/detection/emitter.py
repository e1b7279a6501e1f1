"""Notification emitter: synchronous fan-out of state transitions."""

from __future__ import annotations

from typing import Callable

import structlog

from vibe_activity.models import ActivityMetrics, ActivityState, StateTransition

logger = structlog.get_logger(__name__)

StateListener = Callable[[ActivityState, ActivityMetrics], None]
TransitionListener = Callable[[StateTransition], None]


class TransitionEmitter:
    """Deliver each transition once to every registered listener.

    A listener that raises is logged and skipped; the others still run and
    nothing propagates back into the engine.
    """

    def __init__(self) -> None:
        self._state_listeners: list[StateListener] = []
        self._transition_listeners: list[TransitionListener] = []
        self._emitted = 0

    def add_listener(self, fn: StateListener) -> None:
        """Register an ``(state, metrics)`` callback."""
        self._state_listeners.append(fn)

    def add_transition_listener(self, fn: TransitionListener) -> None:
        """Register a callback receiving the full :class:`StateTransition`."""
        self._transition_listeners.append(fn)

    def remove_listener(self, fn: StateListener | TransitionListener) -> bool:
        for listeners in (self._state_listeners, self._transition_listeners):
            if fn in listeners:
                listeners.remove(fn)  # type: ignore[arg-type]
                return True
        return False

    def clear(self) -> None:
        self._state_listeners.clear()
        self._transition_listeners.clear()

    @property
    def emitted(self) -> int:
        """Number of transitions emitted so far."""
        return self._emitted

    def emit(self, transition: StateTransition) -> None:
        self._emitted += 1
        for fn in list(self._state_listeners):
            try:
                fn(transition.state, transition.metrics)
            except Exception:
                logger.exception("emitter.listener_error", state=transition.state.value)
        for fn in list(self._transition_listeners):
            try:
                fn(transition)
            except Exception:
                logger.exception("emitter.listener_error", state=transition.state.value)
