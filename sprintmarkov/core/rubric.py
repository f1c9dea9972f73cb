from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Sequence

try:
    import tomllib  # py3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore

from sprintmarkov.core.contract import DEFAULT_METRIC, EQ_TOLERANCE
from sprintmarkov.core.errors import InvalidRubricError
from sprintmarkov.core.states import GRADED_LEVELS, UnifiedState, fold_level

logger = logging.getLogger(__name__)

# Conservative answer whenever the rubric cannot decide
FALLBACK_STATE = UnifiedState.AT_RISK


class ComparisonOperator(str, Enum):
    GTE = ">="
    LTE = "<="
    EQ = "="
    GT = ">"
    LT = "<"


_OPERATOR_ALIASES = {
    ">=": ComparisonOperator.GTE,
    "<=": ComparisonOperator.LTE,
    "=": ComparisonOperator.EQ,
    "==": ComparisonOperator.EQ,
    ">": ComparisonOperator.GT,
    "<": ComparisonOperator.LT,
    "≥": ComparisonOperator.GTE,
    "≤": ComparisonOperator.LTE,
}


def parse_operator(x: Any) -> ComparisonOperator:
    """
    Accept an operator member, its symbol (">=") or its name ("GTE").
    """
    if isinstance(x, ComparisonOperator):
        return x
    s = str(x).strip()
    if s in _OPERATOR_ALIASES:
        return _OPERATOR_ALIASES[s]
    try:
        return ComparisonOperator[s.upper()]
    except KeyError:
        raise InvalidRubricError(f"Unknown comparison operator: {x!r}") from None


@dataclass(frozen=True)
class RubricCriterion:
    level: int
    metric: str
    operator: ComparisonOperator
    threshold: float
    description: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.level, bool) or self.level not in GRADED_LEVELS:
            raise InvalidRubricError(f"Criterion level must be one of {GRADED_LEVELS}, got {self.level!r}")
        if not str(self.metric).strip():
            raise InvalidRubricError("Criterion metric name must be non-empty.")


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(v) else v


def evaluate_criterion(value: Any, criterion: RubricCriterion) -> bool:
    """
    True only when value is a usable number and the comparison holds.
    """
    v = _as_number(value)
    if v is None:
        return False

    t = criterion.threshold
    op = criterion.operator
    if op is ComparisonOperator.GTE:
        return v >= t
    if op is ComparisonOperator.LTE:
        return v <= t
    if op is ComparisonOperator.GT:
        return v > t
    if op is ComparisonOperator.LT:
        return v < t
    if op is ComparisonOperator.EQ:
        return abs(v - t) < EQ_TOLERANCE
    return False


def _group_by_level(criteria: Iterable[RubricCriterion]) -> dict[int, list[RubricCriterion]]:
    groups: dict[int, list[RubricCriterion]] = {}
    for c in criteria:
        groups.setdefault(c.level, []).append(c)
    return groups


def grade(metrics: Mapping[str, Any] | None, criteria: Sequence[RubricCriterion] | None) -> int | None:
    """
    Matched graded level (0..4), or None when the rubric cannot decide.

    Levels are tried most critical first (4 -> 0); the first level whose
    criteria ALL hold wins, healthier levels are never looked at after that.
    """
    if not isinstance(metrics, Mapping) or not metrics:
        logger.warning("Iteration metrics missing or invalid; rubric cannot grade.")
        return None
    if not criteria:
        logger.warning("Rubric has no criteria; rubric cannot grade.")
        return None

    groups = _group_by_level(criteria)
    for level in sorted(GRADED_LEVELS, reverse=True):
        level_criteria = groups.get(level)
        if not level_criteria:
            continue
        if all(evaluate_criterion(metrics.get(c.metric), c) for c in level_criteria):
            return level

    logger.warning("No rubric level matched metrics %s.", sorted(metrics))
    return None


def classify(metrics: Mapping[str, Any] | None, criteria: Sequence[RubricCriterion] | None) -> UnifiedState:
    """
    Classify one iteration's metrics into a unified state.

    Falls back to At Risk (never Healthy) when the metrics or rubric are
    empty, or when no level matches.
    """
    level = grade(metrics, criteria)
    if level is None:
        return FALLBACK_STATE
    return fold_level(level)


def default_rubric(metric: str = DEFAULT_METRIC) -> list[RubricCriterion]:
    """
    Single-metric rubric with thresholds 90/70/50/<50/<=30 for levels 0..4.

    Healthier bands carry the next band's upper bound so that, evaluated
    most-critical-first, each value lands in exactly one band.
    """
    return [
        RubricCriterion(4, metric, ComparisonOperator.LTE, 30.0, f"{metric} <= 30: critical"),
        RubricCriterion(3, metric, ComparisonOperator.LT, 50.0, f"{metric} < 50: at risk"),
        RubricCriterion(2, metric, ComparisonOperator.GTE, 50.0, f"{metric} >= 50: stable"),
        RubricCriterion(2, metric, ComparisonOperator.LT, 70.0),
        RubricCriterion(1, metric, ComparisonOperator.GTE, 70.0, f"{metric} >= 70: good"),
        RubricCriterion(1, metric, ComparisonOperator.LT, 90.0),
        RubricCriterion(0, metric, ComparisonOperator.GTE, 90.0, f"{metric} >= 90: excellent"),
    ]


# ----------------------------
# Loading
# ----------------------------

def criterion_from_record(record: Mapping[str, Any]) -> RubricCriterion:
    if not isinstance(record, Mapping):
        raise InvalidRubricError(f"Criterion must be a table/mapping, got {type(record).__name__}")

    missing = [k for k in ("level", "metric", "operator", "threshold") if k not in record]
    if missing:
        raise InvalidRubricError(f"Criterion missing keys: {missing}")

    threshold = _as_number(record["threshold"])
    if threshold is None:
        raise InvalidRubricError(f"Criterion threshold must be numeric, got {record['threshold']!r}")

    try:
        level = int(record["level"])
    except (TypeError, ValueError):
        raise InvalidRubricError(f"Criterion level must be an integer, got {record['level']!r}") from None

    description = record.get("description")
    return RubricCriterion(
        level=level,
        metric=str(record["metric"]).strip(),
        operator=parse_operator(record["operator"]),
        threshold=threshold,
        description=str(description) if description is not None else None,
    )


def criteria_from_records(records: Iterable[Mapping[str, Any]]) -> list[RubricCriterion]:
    return [criterion_from_record(r) for r in records]


def load_rubric(path: str | Path | None, metric: str = DEFAULT_METRIC) -> list[RubricCriterion]:
    """
    Load [[criteria]] tables from a rubric TOML file.
    No path, or a missing file, gives the default rubric for `metric`.
    """
    if not path:
        return default_rubric(metric)

    p = Path(path)
    if not p.exists():
        logger.warning("Rubric file not found: %s; using default rubric.", p)
        return default_rubric(metric)

    data = tomllib.loads(p.read_text(encoding="utf-8"))
    records = data.get("criteria", [])
    if not isinstance(records, list):
        raise InvalidRubricError(f"'criteria' must be an array of tables in {p}")
    return criteria_from_records(records)
