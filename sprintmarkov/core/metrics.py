from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

# Raw per-iteration counts a tracker export may carry
RAW_COLUMNS = [
    "planned_points",
    "completed_points",
    "completed_stories",
    "total_stories",
    "bug_count",
    "code_coverage",
    "technical_debt",
    "impediment_days",
]

DERIVED_METRICS = [
    "story_completion",
    "velocity_consistency",
    "bug_rate",
    "code_coverage",
    "technical_debt",
    "impediment_days",
]

VELOCITY_CONSISTENCY_CAP = 150.0


def _num(raw: Mapping[str, Any], key: str) -> float | None:
    v = raw.get(key)
    if v is None or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(f) else f


def derive_metrics(raw: Mapping[str, Any]) -> dict[str, float]:
    """
    Turn raw sprint counts into rubric-ready metrics.

    Only metrics whose inputs are present (and whose denominators are > 0)
    are emitted; the input mapping is not modified.
    """
    out: dict[str, float] = {}

    total_stories = _num(raw, "total_stories")
    completed_stories = _num(raw, "completed_stories")
    if total_stories and completed_stories is not None and total_stories > 0:
        out["story_completion"] = completed_stories / total_stories * 100.0

    planned = _num(raw, "planned_points")
    completed = _num(raw, "completed_points")
    if planned and completed is not None and planned > 0:
        out["velocity_consistency"] = min(completed / planned * 100.0, VELOCITY_CONSISTENCY_CAP)

    bugs = _num(raw, "bug_count")
    if completed and bugs is not None and completed > 0:
        out["bug_rate"] = bugs / completed

    for key in ("code_coverage", "technical_debt", "impediment_days"):
        v = _num(raw, key)
        if v is not None:
            out[key] = v

    return out
