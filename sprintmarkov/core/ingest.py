from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import pandas as pd

from sprintmarkov.core.errors import UnknownStateError
from sprintmarkov.core.metrics import RAW_COLUMNS, derive_metrics
from sprintmarkov.core.rubric import FALLBACK_STATE, RubricCriterion, grade
from sprintmarkov.core.scoring import Insight, ScoreCriterion, actionable_insights, default_score_criteria, score_iteration
from sprintmarkov.core.states import UnifiedState, coerce_state, fold_level

REQUIRED_COLUMNS = ["iteration"]

# Columns that are never treated as metrics
NON_METRIC_COLUMNS = {"iteration", "end_date", "state", "notes", "level", "source", "score"}


@dataclass(frozen=True)
class IngestResult:
    df: pd.DataFrame
    issues: list[str]


def metric_columns(df: pd.DataFrame) -> list[str]:
    return [
        c for c in df.columns
        if c not in NON_METRIC_COLUMNS and pd.api.types.is_numeric_dtype(df[c])
    ]


def load_iterations_csv(path: str | Path) -> IngestResult:
    """
    Load one-row-per-iteration CSV and validate basic schema.

    Expected columns:
    iteration (required), end_date (optional, used for ordering),
    state (optional label overriding classification), numeric metric columns.
    Raw sprint counts (planned_points, completed_points, ...) gain derived
    metrics (story_completion, velocity_consistency, bug_rate, ...).
    """
    path = Path(path)
    issues: list[str] = []

    if not path.exists():
        return IngestResult(df=pd.DataFrame(), issues=[f"File not found: {path}"])

    df = pd.read_csv(path)

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        issues.append(f"Missing required columns: {missing}")
        return IngestResult(df=pd.DataFrame(), issues=issues)

    df = df.dropna(subset=["iteration"]).copy()
    df["iteration"] = df["iteration"].astype(str).str.strip()

    # Chronological order
    if "end_date" in df.columns:
        df["end_date"] = pd.to_datetime(df["end_date"], errors="coerce")
        bad_dates = int(df["end_date"].isna().sum())
        if bad_dates:
            issues.append(f"{bad_dates} rows have invalid end_date (kept in file order)")
        df = df.sort_values("end_date", kind="mergesort", na_position="last")

    # Coerce metrics (skip free-text columns)
    for col in df.columns:
        if col in NON_METRIC_COLUMNS:
            continue
        coerced = pd.to_numeric(df[col], errors="coerce")
        if coerced.notna().any() or df[col].isna().all():
            df[col] = coerced

    # Derived metrics from raw sprint counts
    if any(c in df.columns for c in RAW_COLUMNS):
        derived = pd.DataFrame(
            [derive_metrics(row) for row in df.to_dict(orient="records")],
            index=df.index,
        )
        for col in derived.columns:
            if col not in df.columns:
                df[col] = derived[col]

    # Explicit state labels
    if "state" in df.columns:
        labels: list[str | None] = []
        bad_labels = 0
        for raw in df["state"].tolist():
            if raw is None or (isinstance(raw, float) and pd.isna(raw)) or not str(raw).strip():
                labels.append(None)
                continue
            try:
                labels.append(coerce_state(str(raw)).value)
            except UnknownStateError:
                labels.append(None)
                bad_labels += 1
        if bad_labels:
            issues.append(f"{bad_labels} rows have an unknown state label (classified from metrics instead)")
        df["state"] = pd.Series(labels, index=df.index, dtype=object)

    return IngestResult(df=df.reset_index(drop=True), issues=issues)


def classify_iterations(df: pd.DataFrame, criteria: Sequence[RubricCriterion]) -> pd.DataFrame:
    """
    Add level / state / source columns.

    An explicit state label wins (source="label"); otherwise the rubric grades
    the row's metrics (source="rubric"), falling back to At Risk.
    """
    if df is None or df.empty:
        return pd.DataFrame(columns=["iteration", "level", "state", "source"])

    out = df.copy()
    metrics = metric_columns(out)

    levels: list[int | None] = []
    states: list[str] = []
    sources: list[str] = []

    has_labels = "state" in out.columns
    for _, row in out.iterrows():
        label = row["state"] if has_labels else None
        if isinstance(label, str) and label:
            levels.append(None)
            states.append(label)
            sources.append("label")
            continue

        values = {c: float(row[c]) for c in metrics if pd.notna(row[c])}
        level = grade(values, criteria)
        state = fold_level(level) if level is not None else FALLBACK_STATE
        levels.append(level)
        states.append(state.value)
        sources.append("rubric")

    out["level"] = pd.array(levels, dtype="Int64")
    out["state"] = states
    out["source"] = sources
    return out


def score_iterations(df: pd.DataFrame, criteria: Sequence[ScoreCriterion] | None = None) -> pd.DataFrame:
    """
    Same columns as classify_iterations, plus score, using weighted
    quantified scoring instead of the threshold rubric. Labels still win.
    """
    if df is None or df.empty:
        return pd.DataFrame(columns=["iteration", "level", "state", "source", "score"])

    criteria = list(criteria) if criteria else default_score_criteria()
    out = df.copy()
    metrics = metric_columns(out)

    levels: list[int | None] = []
    states: list[str] = []
    sources: list[str] = []
    scores: list[float | None] = []

    has_labels = "state" in out.columns
    for _, row in out.iterrows():
        label = row["state"] if has_labels else None
        if isinstance(label, str) and label:
            levels.append(None)
            states.append(label)
            sources.append("label")
            scores.append(None)
            continue

        result = score_iteration(criteria, {c: float(row[c]) for c in metrics if pd.notna(row[c])})
        levels.append(result.level)
        states.append(result.state.value)
        sources.append("score")
        scores.append(result.overall_score)

    out["level"] = pd.array(levels, dtype="Int64")
    out["state"] = states
    out["source"] = sources
    out["score"] = pd.array(scores, dtype="Float64")
    return out


def latest_insights(df: pd.DataFrame, criteria: Sequence[ScoreCriterion] | None = None) -> list[Insight]:
    """
    Actionable insights for the most recent iteration's metrics.
    """
    if df is None or df.empty:
        return []
    criteria = list(criteria) if criteria else default_score_criteria()
    row = df.iloc[-1]
    values = {c: float(row[c]) for c in metric_columns(df) if pd.notna(row[c])}
    return actionable_insights(score_iteration(criteria, values), criteria)


def state_history(classified: pd.DataFrame) -> list[UnifiedState]:
    if classified is None or classified.empty or "state" not in classified.columns:
        return []
    return [coerce_state(s) for s in classified["state"].tolist()]
