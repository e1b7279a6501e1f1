"""Async hand-off between the engine's synchronous emitter and notification consumers."""

from __future__ import annotations

import asyncio
import time
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable

import structlog

from vibe_activity.models import StateTransition

logger = structlog.get_logger(__name__)

Consumer = Callable[[StateTransition], Awaitable[None]]


@dataclass
class PipelineStats:
    published: int = 0
    dropped: int = 0
    processed: int = 0
    consumer_errors: int = 0


class StreamPipeline:
    """Bounded FIFO of transitions drained by a single consumer task.

    The engine emits from timer callbacks and cannot await, so it uses
    :meth:`publish_nowait`.  Consumers run in registration order for each
    transition and see transitions in emission order.  A consumer that
    raises is logged and the next one still runs.
    """

    def __init__(self, maxsize: int = 1_000, *, stats_interval: float = 60.0) -> None:
        self._queue: asyncio.Queue[StateTransition] = asyncio.Queue(maxsize=maxsize)
        self._consumers: list[Consumer] = []
        self._stats = PipelineStats()
        self._stats_interval = stats_interval
        self._running = False

    def add_consumer(self, fn: Consumer) -> None:
        self._consumers.append(fn)

    # ── Producers ─────────────────────────────────────────────

    async def publish(self, transition: StateTransition) -> None:
        """Enqueue *transition*, waiting for room if the queue is full."""
        await self._queue.put(transition)
        self._stats.published += 1

    def publish_nowait(self, transition: StateTransition) -> bool:
        """Enqueue without waiting.  A full queue drops the transition."""
        try:
            self._queue.put_nowait(transition)
        except asyncio.QueueFull:
            self._stats.dropped += 1
            logger.warning(
                "stream_pipeline.dropped",
                state=transition.state.value,
                dropped=self._stats.dropped,
            )
            return False
        self._stats.published += 1
        return True

    # ── Consumer task ─────────────────────────────────────────

    async def start(self) -> None:
        """Drain the queue until :meth:`stop` is called.  Run as a task."""
        self._running = True
        logger.info("stream_pipeline.started", consumers=len(self._consumers))
        next_report = time.monotonic() + self._stats_interval

        while self._running:
            try:
                transition = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            try:
                await self._deliver(transition)
            finally:
                self._queue.task_done()

            if time.monotonic() >= next_report:
                logger.info("stream_pipeline.stats", pending=self.pending, **self.stats)
                next_report = time.monotonic() + self._stats_interval

    async def _deliver(self, transition: StateTransition) -> None:
        for consumer in self._consumers:
            try:
                await consumer(transition)
            except Exception:
                self._stats.consumer_errors += 1
                logger.exception(
                    "stream_pipeline.consumer_error",
                    consumer=getattr(consumer, "__qualname__", repr(consumer)),
                    state=transition.state.value,
                )
        self._stats.processed += 1

    async def stop(self) -> None:
        self._running = False
        logger.info("stream_pipeline.stopped", pending=self.pending, **self.stats)

    # ── Introspection ─────────────────────────────────────────

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def processed_total(self) -> int:
        return self._stats.processed

    @property
    def stats(self) -> dict[str, Any]:
        return asdict(self._stats)
