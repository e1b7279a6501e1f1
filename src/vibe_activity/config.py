"""Centralised application settings loaded from environment / .env file."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from vibe_activity.models import ActivityState, ClassifierThresholds

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """All runtime configuration for the activity engine.

    Values are read from environment variables first, then from a *.env* file
    located at the project root.  Every variable lives in the flat ``VIBE_``
    namespace, e.g. ``VIBE_POLL_INTERVAL_MS=2500``.
    """

    model_config = SettingsConfigDict(
        env_prefix="VIBE_",
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Timers (milliseconds) ─────────────────────────────────
    poll_interval_ms: int = 5_000
    counter_reset_interval_ms: int = 60_000
    typing_debounce_ms: int = 1_000
    test_result_revert_ms: int = 3_000

    # ── Signal aggregation ────────────────────────────────────
    keystroke_buffer_size: int = 10
    initial_state: ActivityState = ActivityState.IDLE

    # ── Classifier thresholds ─────────────────────────────────
    procrastination_tab_switches: int = 10
    procrastination_max_typing_speed: float = 100.0
    productive_min_typing_speed: float = 200.0
    productive_max_idle_ms: float = 10_000
    stuck_min_time_in_file_ms: float = 120_000
    stuck_min_idle_ms: float = 30_000
    idle_threshold_ms: float = 180_000
    fallback_productive_typing_speed: float = 50.0

    # ── API server ────────────────────────────────────────────
    api_host: str = "127.0.0.1"
    api_port: int = 8765
    pipeline_maxsize: int = 1_000

    # ── Notifications ─────────────────────────────────────────
    webhook_url: str = ""
    webhook_timeout: float = 5.0

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    def thresholds(self) -> ClassifierThresholds:
        """Build the classifier threshold set from the flat settings."""
        return ClassifierThresholds(
            procrastination_tab_switches=self.procrastination_tab_switches,
            procrastination_max_typing_speed=self.procrastination_max_typing_speed,
            productive_min_typing_speed=self.productive_min_typing_speed,
            productive_max_idle_ms=self.productive_max_idle_ms,
            stuck_min_time_in_file_ms=self.stuck_min_time_in_file_ms,
            stuck_min_idle_ms=self.stuck_min_idle_ms,
            idle_threshold_ms=self.idle_threshold_ms,
            fallback_productive_typing_speed=self.fallback_productive_typing_speed,
        )


@lru_cache
def get_settings() -> Settings:
    """Return a cached :class:`Settings` singleton."""
    return Settings()
