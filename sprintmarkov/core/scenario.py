from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pandas as pd

from sprintmarkov.core.contract import MATERIAL_DIFFERENCE
from sprintmarkov.core.predictor import StatePrediction, predict
from sprintmarkov.core.states import STATE_LABELS

DELTA_COLUMNS = ["step", "state", "base", "scenario", "delta"]


@dataclass(frozen=True)
class ScenarioComparison:
    base: list[StatePrediction]
    scenario: list[StatePrediction]


def compare_scenarios(
    current_state: Any,
    base_matrix: Any,
    scenario_matrix: Any,
    steps: int,
) -> ScenarioComparison:
    """
    Two parallel forecasts from the same state and horizon.

    The scenario matrix is not checked for the stochastic property here;
    callers validate it (matrix.is_stochastic) before comparing.
    """
    return ScenarioComparison(
        base=predict(current_state, base_matrix, steps),
        scenario=predict(current_state, scenario_matrix, steps),
    )


def scenario_deltas(comparison: ScenarioComparison) -> pd.DataFrame:
    """
    Long table of per-step, per-state probabilities: delta = scenario - base.
    """
    rows = []
    for b, s in zip(comparison.base, comparison.scenario):
        for i, label in enumerate(STATE_LABELS):
            rows.append(
                {
                    "step": b.step,
                    "state": label,
                    "base": b.probabilities[i],
                    "scenario": s.probabilities[i],
                    "delta": s.probabilities[i] - b.probabilities[i],
                }
            )
    return pd.DataFrame(rows, columns=DELTA_COLUMNS)


def scenario_summary_lines(
    comparison: ScenarioComparison,
    threshold: float = MATERIAL_DIFFERENCE,
    max_lines: int = 6,
) -> list[str]:
    """
    Executive-friendly bullets for the horizon's final step, plus any state
    whose probability moves by more than `threshold` at some step.
    """
    if not comparison.base or not comparison.scenario:
        return ["No forecast steps to compare."]

    d = scenario_deltas(comparison)
    last_step = int(d["step"].max())
    lines: list[str] = []

    final = d[d["step"] == last_step]
    for _, r in final.iterrows():
        if abs(r["delta"]) < 0.0005:
            continue
        verb = "rises" if r["delta"] > 0 else "falls"
        lines.append(
            f"Step {last_step}: {r['state']} {verb} {r['base'] * 100:.1f}% → {r['scenario'] * 100:.1f}% "
            f"({r['delta'] * 100:+.1f} pts)."
        )

    big = d[d["delta"].abs() > threshold]
    if not big.empty:
        first = big.sort_values(["step", "state"]).iloc[0]
        lines.append(
            f"Material divergence (> {threshold * 100:.0f} pts) from step {int(first['step'])} "
            f"({first['state']} {first['delta'] * 100:+.1f} pts)."
        )

    if not lines:
        return ["Scenario forecast matches the baseline."]

    return lines[:max_lines]
