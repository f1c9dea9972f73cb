from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from sprintmarkov.core.contract import MATERIAL_DIFFERENCE
from sprintmarkov.core.matrix import as_matrix, compare
from sprintmarkov.core.states import STATE_LABELS


@dataclass(frozen=True)
class DeltaConfig:
    # Per-cell movement (probability points) worth a bullet
    cell_change: float = MATERIAL_DIFFERENCE
    max_lines: int = 8


SNAPSHOT_COLUMNS = ["from_state", *STATE_LABELS]


def snapshot_from_matrix(matrix: Any) -> pd.DataFrame:
    """
    Stable tabular snapshot of a transition matrix, one row per origin state.
    """
    m = as_matrix(matrix)
    df = pd.DataFrame(m, columns=list(STATE_LABELS))
    df.insert(0, "from_state", list(STATE_LABELS))
    return df


def matrix_from_snapshot(snapshot_df: pd.DataFrame) -> np.ndarray | None:
    """
    Rebuild the matrix from a snapshot table; None if it is empty or unusable.
    """
    if snapshot_df is None or snapshot_df.empty:
        return None

    d = snapshot_df.set_index("from_state", drop=True) if "from_state" in snapshot_df.columns else snapshot_df
    try:
        d = d.reindex(index=list(STATE_LABELS), columns=list(STATE_LABELS))
        values = d.apply(pd.to_numeric, errors="coerce").to_numpy(dtype=float)
    except (KeyError, ValueError, TypeError):
        return None

    if values.shape != (len(STATE_LABELS), len(STATE_LABELS)) or not np.isfinite(values).all() or (values < 0).any():
        return None
    return values


def load_snapshot(path: str | Path) -> pd.DataFrame:
    p = Path(path)
    if not p.exists():
        return pd.DataFrame(columns=SNAPSHOT_COLUMNS)

    try:
        df = pd.read_csv(p)
    except (OSError, ValueError, pd.errors.ParserError):
        return pd.DataFrame(columns=SNAPSHOT_COLUMNS)

    for c in SNAPSHOT_COLUMNS:
        if c not in df.columns:
            df[c] = pd.NA

    df = df[SNAPSHOT_COLUMNS].copy()
    df["from_state"] = df["from_state"].astype(str)
    for c in STATE_LABELS:
        df[c] = pd.to_numeric(df[c], errors="coerce")
    return df.reset_index(drop=True)


def save_snapshot(snapshot_df: pd.DataFrame, path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    out = snapshot_df.copy()
    for c in SNAPSHOT_COLUMNS:
        if c not in out.columns:
            out[c] = pd.NA
    out[SNAPSHOT_COLUMNS].to_csv(p, index=False)


def compute_delta_lines(
    prev_snapshot: pd.DataFrame,
    curr_snapshot: pd.DataFrame,
    cfg: DeltaConfig | None = None,
) -> list[str]:
    """
    Executive-friendly bullets describing how the transition matrix moved
    since the previous report.
    """
    cfg = cfg or DeltaConfig()

    prev = matrix_from_snapshot(prev_snapshot)
    curr = matrix_from_snapshot(curr_snapshot)

    if curr is None and prev is None:
        return ["No transition data available yet."]

    if prev is None:
        return ["Baseline matrix created (first run). Future reports will highlight changes."]

    if curr is None:
        return ["Current transition matrix unavailable; previous snapshot kept for reference."]

    result = compare(prev, curr)
    lines: list[str] = []

    moved = sorted(result.differences, key=lambda c: c.difference, reverse=True)
    for cell in moved:
        if cell.difference <= cfg.cell_change:
            continue
        src = STATE_LABELS[cell.row]
        dst = STATE_LABELS[cell.col]
        verb = "rose" if cell.b > cell.a else "fell"
        lines.append(f"P({src} → {dst}) {verb} {cell.a:.2f} → {cell.b:.2f}.")
        if len(lines) >= cfg.max_lines:
            break

    if not lines:
        if result.equal:
            return ["Transition matrix unchanged since last report."]
        return [
            f"No material matrix changes since last report "
            f"(max cell move {result.max_absolute_difference:.3f})."
        ]

    return lines
