from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

import numpy as np

from sprintmarkov.core.rubric import FALLBACK_STATE
from sprintmarkov.core.states import UnifiedState, fold_level

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreThresholds:
    """
    Cut points on the 0..100 normalized scale.
    """
    excellent: float = 90.0
    good: float = 75.0
    stable: float = 60.0
    risk: float = 40.0


@dataclass(frozen=True)
class MetricDefinition:
    id: str
    min_value: float
    max_value: float
    thresholds: ScoreThresholds = field(default_factory=ScoreThresholds)
    weight: float = 1.0
    # Lower-is-better metrics (debt, bug rate, resolution time)
    inverse: bool = False


@dataclass(frozen=True)
class ScoreCriterion:
    id: str
    name: str
    metrics: tuple[MetricDefinition, ...]
    weight: float = 1.0


@dataclass(frozen=True)
class ScoreResult:
    level: int | None
    state: UnifiedState
    overall_score: float | None
    criteria_scores: dict[str, float]
    coverage: float


# Score points awarded per band, and overall-score cut points per graded level
_BAND_POINTS = (100.0, 85.0, 70.0, 50.0, 25.0)
_LEVEL_CUTS = ((85.0, 0), (70.0, 1), (55.0, 2), (35.0, 3))


def metric_score(value: float, metric: MetricDefinition) -> float:
    """
    Normalize a raw value onto 0..100 within the metric's range and award
    band points (100/85/70/50/25).
    """
    span = float(metric.max_value) - float(metric.min_value)
    if span <= 0:
        normalized = 100.0 if value >= metric.max_value else 0.0
    else:
        normalized = (float(value) - float(metric.min_value)) / span * 100.0
    normalized = float(np.clip(normalized, 0.0, 100.0))

    if metric.inverse:
        normalized = 100.0 - normalized

    t = metric.thresholds
    for cut, points in zip((t.excellent, t.good, t.stable, t.risk), _BAND_POINTS):
        if normalized >= cut:
            return points
    return _BAND_POINTS[-1]


def criterion_score(criterion: ScoreCriterion, metrics: Mapping[str, Any]) -> float:
    """
    Weighted mean of the metric scores that have a value; 0 when none do.
    """
    total = 0.0
    weight = 0.0
    for m in criterion.metrics:
        v = metrics.get(m.id)
        if v is None:
            continue
        total += metric_score(float(v), m) * m.weight
        weight += m.weight
    return total / weight if weight > 0 else 0.0


def level_from_score(score: float) -> int:
    for cut, level in _LEVEL_CUTS:
        if score >= cut:
            return level
    return 4


def score_iteration(criteria: Sequence[ScoreCriterion], metrics: Mapping[str, Any]) -> ScoreResult:
    """
    Alternative to the threshold rubric: weighted quantified scoring.

    coverage is the share of defined metrics that were supplied. With no
    coverage nothing was scored: level and overall_score are None and the
    state is the At Risk fallback.
    """
    defined = {m.id for c in criteria for m in c.metrics}
    filled = sum(1 for k in defined if metrics.get(k) is not None)
    coverage = filled / len(defined) if defined else 0.0

    if coverage == 0:
        logger.warning("None of the scored metrics were supplied; using fallback state %s.", FALLBACK_STATE.value)
        return ScoreResult(
            level=None,
            state=FALLBACK_STATE,
            overall_score=None,
            criteria_scores={c.id: 0.0 for c in criteria},
            coverage=0.0,
        )

    criteria_scores: dict[str, float] = {}
    total = 0.0
    weight = 0.0
    for c in criteria:
        s = criterion_score(c, metrics)
        criteria_scores[c.id] = s
        total += s * c.weight
        weight += c.weight

    overall = total / weight if weight > 0 else 0.0
    level = level_from_score(overall)

    return ScoreResult(
        level=level,
        state=fold_level(level),
        overall_score=round(overall, 1),
        criteria_scores=criteria_scores,
        coverage=coverage,
    )


def default_score_criteria() -> list[ScoreCriterion]:
    """
    Criteria over the metrics that metrics.derive_metrics() can produce.
    """
    return [
        ScoreCriterion(
            id="delivery",
            name="Value delivery",
            weight=0.5,
            metrics=(
                MetricDefinition("story_completion", 0, 100, ScoreThresholds(95, 85, 70, 50), weight=0.6),
                MetricDefinition("velocity_consistency", 0, 150, ScoreThresholds(95, 85, 75, 60), weight=0.4),
            ),
        ),
        ScoreCriterion(
            id="technical",
            name="Technical health",
            weight=0.3,
            metrics=(
                MetricDefinition("code_coverage", 0, 100, ScoreThresholds(90, 80, 70, 50), weight=0.3),
                MetricDefinition("technical_debt", 0, 100, weight=0.4, inverse=True),
                MetricDefinition("bug_rate", 0, 5, weight=0.3, inverse=True),
            ),
        ),
        ScoreCriterion(
            id="process",
            name="Process flow",
            weight=0.2,
            metrics=(
                MetricDefinition("impediment_days", 0, 10, inverse=True),
            ),
        ),
    ]


class InsightPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Insight:
    priority: InsightPriority
    category: str
    issue: str
    suggestion: str
    impact: str

    def as_dict(self) -> dict[str, str]:
        return {
            "priority": self.priority.value,
            "category": self.category,
            "issue": self.issue,
            "suggestion": self.suggestion,
            "impact": self.impact,
        }


# Criterion score cut points: below 35 high, below 55 medium, below 70 low
_INSIGHT_CUTS = (
    (35.0, InsightPriority.HIGH, "Critical score", "Review the {name} process immediately", "High impact on overall project health"),
    (55.0, InsightPriority.MEDIUM, "At-risk score", "Plan improvements to {name}", "Medium impact on project health"),
    (70.0, InsightPriority.LOW, "Stable score with room to improve", "Consider optimising {name}", "Low impact, improvement opportunity"),
)
_PRIORITY_ORDER = {InsightPriority.HIGH: 0, InsightPriority.MEDIUM: 1, InsightPriority.LOW: 2}


def actionable_insights(result: ScoreResult, criteria: Sequence[ScoreCriterion]) -> list[Insight]:
    """
    Suggestions for weak criteria, most urgent first.

    Criteria scoring 70 or more produce nothing. A score of 0 means none of
    the criterion's metrics were supplied, so it is skipped rather than
    reported as critical.
    """
    insights: list[Insight] = []
    for c in criteria:
        score = result.criteria_scores.get(c.id)
        if score is None or score <= 0:
            continue
        for cut, priority, issue, suggestion, impact in _INSIGHT_CUTS:
            if score < cut:
                insights.append(
                    Insight(
                        priority=priority,
                        category=c.name,
                        issue=f"{issue} in {c.name} ({score:.1f}/100)",
                        suggestion=suggestion.format(name=c.name.lower()),
                        impact=impact,
                    )
                )
                break
    return sorted(insights, key=lambda i: _PRIORITY_ORDER[i.priority])
