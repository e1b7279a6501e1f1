"""vibe-activity: infer a developer's activity state from editor telemetry."""

__version__ = "0.1.0"
