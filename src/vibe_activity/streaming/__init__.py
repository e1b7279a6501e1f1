"""Async transition streaming."""

from vibe_activity.streaming.pipeline import StreamPipeline

__all__ = ["StreamPipeline"]
