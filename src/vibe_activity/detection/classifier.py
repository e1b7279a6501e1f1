"""State classifier: ordered priority rules over a metrics snapshot.

Rules are evaluated top to bottom and the first match wins:

1. **procrastinating**: many tab switches, little typing.
2. **productive**: fast typing with a recent input.
3. **stuck**: long time in one file with a medium idle gap (30 s – 180 s).
4. **idle**: idle gap beyond 180 s.
5. **fallback**: some typing → productive, otherwise stuck.

Procrastination comes first so that a short productive burst cannot mask
it.  Stuck comes before idle because its idle band is a strict subrange
below the idle threshold.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from vibe_activity.models import (
    DEFAULT_THRESHOLDS,
    ActivityMetrics,
    ActivityState,
    ClassifierThresholds,
)

Condition = Callable[[ActivityMetrics, ClassifierThresholds], bool]


@dataclass(frozen=True, slots=True)
class ClassificationRule:
    """A named predicate that yields *state* when it matches."""

    name: str
    state: ActivityState
    condition: Condition

    def matches(self, metrics: ActivityMetrics, thresholds: ClassifierThresholds) -> bool:
        return self.condition(metrics, thresholds)


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    state: ActivityState
    rule: str


def _procrastinating(m: ActivityMetrics, t: ClassifierThresholds) -> bool:
    return (
        m.tab_switches > t.procrastination_tab_switches
        and m.typing_speed < t.procrastination_max_typing_speed
    )


def _productive(m: ActivityMetrics, t: ClassifierThresholds) -> bool:
    return m.typing_speed > t.productive_min_typing_speed and m.idle_time < t.productive_max_idle_ms


def _stuck(m: ActivityMetrics, t: ClassifierThresholds) -> bool:
    return (
        m.time_in_file > t.stuck_min_time_in_file_ms
        and t.stuck_min_idle_ms < m.idle_time < t.idle_threshold_ms
    )


def _idle(m: ActivityMetrics, t: ClassifierThresholds) -> bool:
    return m.idle_time > t.idle_threshold_ms


PRIORITY_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule("procrastinating", ActivityState.PROCRASTINATING, _procrastinating),
    ClassificationRule("productive", ActivityState.PRODUCTIVE, _productive),
    ClassificationRule("stuck", ActivityState.STUCK, _stuck),
    ClassificationRule("idle", ActivityState.IDLE, _idle),
)


class StateClassifier:
    """Map a metrics snapshot to an :class:`ActivityState`.

    Deterministic and side-effect free: the same ``(metrics,
    previous_state)`` always produces the same result, and every input
    produces exactly one of the eight states.
    """

    def __init__(
        self,
        thresholds: ClassifierThresholds | None = None,
        rules: tuple[ClassificationRule, ...] = PRIORITY_RULES,
    ) -> None:
        self._thresholds = thresholds or DEFAULT_THRESHOLDS
        self._rules = rules

    @property
    def thresholds(self) -> ClassifierThresholds:
        return self._thresholds

    @property
    def rules(self) -> list[ClassificationRule]:
        return list(self._rules)

    def evaluate(
        self, metrics: ActivityMetrics, previous_state: ActivityState
    ) -> ClassificationResult:
        """Classify *metrics* and report which rule decided.

        *previous_state* is accepted so callers can tell real transitions
        apart; the rule bands themselves carry the hysteresis.
        """
        for rule in self._rules:
            if rule.matches(metrics, self._thresholds):
                return ClassificationResult(rule.state, rule.name)

        if metrics.typing_speed > self._thresholds.fallback_productive_typing_speed:
            return ClassificationResult(ActivityState.PRODUCTIVE, "fallback_productive")
        return ClassificationResult(ActivityState.STUCK, "fallback_stuck")

    def classify(self, metrics: ActivityMetrics, previous_state: ActivityState) -> ActivityState:
        return self.evaluate(metrics, previous_state).state


_DEFAULT_CLASSIFIER = StateClassifier()


def classify(
    metrics: ActivityMetrics,
    previous_state: ActivityState,
    thresholds: ClassifierThresholds | None = None,
) -> ActivityState:
    """Functional form of :meth:`StateClassifier.classify`."""
    classifier = _DEFAULT_CLASSIFIER if thresholds is None else StateClassifier(thresholds)
    return classifier.classify(metrics, previous_state)
