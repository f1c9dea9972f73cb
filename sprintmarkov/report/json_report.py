from __future__ import annotations

import json
import math
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from sprintmarkov.core.contract import CONFIDENCE_NOTE
from sprintmarkov.core.matrix import is_stochastic, matrix_to_rows
from sprintmarkov.core.predictor import StatePrediction
from sprintmarkov.core.scoring import Insight
from sprintmarkov.core.states import STATE_LABELS


def _json_safe(x: Any) -> Any:
    """
    Convert values into strict JSON-safe Python types.

    Guarantees:
    - No NaN / Infinity (converted to None)
    - pandas/numpy NA -> None
    - numpy scalars and arrays -> python primitives / lists
    - enums -> their value, timestamps -> ISO strings
    - Recurses through dict/list/tuple
    """
    if isinstance(x, dict):
        return {str(k): _json_safe(v) for k, v in x.items()}

    if isinstance(x, (list, tuple)):
        return [_json_safe(v) for v in x]

    if isinstance(x, np.ndarray):
        return _json_safe(x.tolist())

    if isinstance(x, Enum):
        return _json_safe(x.value)

    # Timestamps before NA checks: NaT is NA, real timestamps are not
    if isinstance(x, (pd.Timestamp, datetime)):
        return None if pd.isna(x) else x.isoformat()

    if x is None or isinstance(x, (str, bool)):
        return x

    if isinstance(x, np.generic):
        return _json_safe(x.item())

    if isinstance(x, int):
        return x

    if isinstance(x, float):
        return None if (math.isnan(x) or math.isinf(x)) else x

    try:
        if pd.isna(x):
            return None
    except (TypeError, ValueError):
        pass

    # Fallback: stringify unknown types
    return str(x)


def _df_to_records(df: pd.DataFrame) -> list[dict[str, Any]]:
    if df is None or df.empty:
        return []
    return [_json_safe(r) for r in df.to_dict(orient="records")]


def _predictions(predictions: list[StatePrediction] | None) -> list[dict[str, Any]]:
    return [p.as_dict() for p in (predictions or [])]


def write_json_report(
    out_path: str | Path,
    *,
    generated_at: str | None,
    coverage_line: str | None,
    project: str,
    current_state: str,
    window_size: int,
    transitions_used: int,
    matrix: Any,
    counts_df: pd.DataFrame | None,
    predictions: list[StatePrediction],
    delta_lines: list[str] | None,
    iterations_df: pd.DataFrame,
    scenario: dict[str, Any] | None,
    notes: list[str] | None,
    run_config: dict[str, str] | None,
    insights: list[Insight] | None = None,
) -> Path:
    """
    Writes the canonical SprintMarkov JSON report.

    IMPORTANT:
    - `meta` must remain schema-stable and NOT include extra keys.
    - `scenario` is null unless a what-if matrix was supplied; when present it
      carries matrix, comparison, forecast, deltas and summary.
    - `insights` is empty unless the weighted score classifier was used.
    """
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)

    decision_version = run_config.get("version") if run_config else None
    schema_version = run_config.get("schema") if run_config else None

    counts = counts_df.to_numpy().tolist() if counts_df is not None and not counts_df.empty else []

    scenario_payload: dict[str, Any] | None = None
    if scenario:
        deltas = scenario.get("deltas")
        scenario_payload = {
            "matrix": matrix_to_rows(scenario["matrix"]),
            "normalized": bool(scenario.get("normalized", False)),
            "comparison": scenario.get("comparison", {}),
            "forecast": _predictions(scenario.get("forecast")),
            "deltas": _df_to_records(deltas) if isinstance(deltas, pd.DataFrame) else [],
            "summary": list(scenario.get("summary") or []),
        }

    iteration_cols = [c for c in ("iteration", "end_date", "level", "state", "source", "score") if c in iterations_df.columns]

    payload: dict[str, Any] = {
        "meta": {
            "generated_at": generated_at,
            "coverage": coverage_line,
            "decision_version": decision_version,
            "schema_version": schema_version,
        },
        "model": {
            "project": project,
            "current_state": current_state,
            "states": list(STATE_LABELS),
            "window_size": window_size,
            "transitions_used": transitions_used,
            "stochastic": is_stochastic(matrix),
            "matrix": matrix_to_rows(matrix),
            "counts": counts,
        },
        "forecast": {
            "confidence_note": CONFIDENCE_NOTE,
            "steps": _predictions(predictions),
        },
        "scenario": scenario_payload,
        "delta": delta_lines or [],
        "insights": [i.as_dict() for i in (insights or [])],
        "iterations": _df_to_records(iterations_df[iteration_cols]) if iteration_cols else [],
        "notes": notes or [],
    }

    # Sanitize *entire* payload recursively
    payload = _json_safe(payload)

    # STRICT JSON: no NaN allowed
    p.write_text(
        json.dumps(payload, indent=2, sort_keys=False, allow_nan=False),
        encoding="utf-8",
    )
    return p
