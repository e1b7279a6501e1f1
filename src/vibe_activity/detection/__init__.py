"""Activity detection: aggregation, classification, overlay and emission.

1. **Signal aggregation** (`aggregator.py`) folds editor signals into
   rolling counters.
2. **Snapshots** (`snapshot.py`) turn counters into immutable metrics.
3. **Classification** (`classifier.py`) applies ordered priority rules.
4. **Overlay** (`overlay.py`) forces build/test states from lifecycle events.
5. **Emission** (`emitter.py`) reports each real transition once.
6. **Engine** (`engine.py`) wires all of the above to one scheduler.
"""

from vibe_activity.detection.aggregator import RollingCounters, SignalAggregator
from vibe_activity.detection.classifier import (
    PRIORITY_RULES,
    ClassificationResult,
    ClassificationRule,
    StateClassifier,
    classify,
)
from vibe_activity.detection.emitter import TransitionEmitter
from vibe_activity.detection.engine import ActivityEngine
from vibe_activity.detection.overlay import BuildTestOverlay, phase_for_task
from vibe_activity.detection.snapshot import build_snapshot, typing_speed

__all__ = [
    "ActivityEngine",
    "BuildTestOverlay",
    "ClassificationResult",
    "ClassificationRule",
    "PRIORITY_RULES",
    "RollingCounters",
    "SignalAggregator",
    "StateClassifier",
    "TransitionEmitter",
    "build_snapshot",
    "classify",
    "phase_for_task",
    "typing_speed",
]
