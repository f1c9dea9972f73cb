from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

import numpy as np
import pandas as pd

from sprintmarkov.core.contract import HIGH_CONFIDENCE_MAX_STEP, MEDIUM_CONFIDENCE_MAX_STEP
from sprintmarkov.core.matrix import as_matrix, power
from sprintmarkov.core.states import N_STATES, STATE_LABELS, STATES, UnifiedState, coerce_state

logger = logging.getLogger(__name__)


class Confidence(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    def __str__(self) -> str:
        return self.value


def confidence_for_step(step: int) -> Confidence:
    """
    Fixed step-count heuristic: compounding a fitted matrix forward loses
    reliability. Independent of how much history was used.
    """
    if step <= HIGH_CONFIDENCE_MAX_STEP:
        return Confidence.HIGH
    if step <= MEDIUM_CONFIDENCE_MAX_STEP:
        return Confidence.MEDIUM
    return Confidence.LOW


def most_likely_state(probabilities: Sequence[float]) -> UnifiedState:
    """
    Highest-probability state; ties go to the more critical state.
    """
    p = [float(x) for x in probabilities]
    best = max(range(N_STATES), key=lambda i: (p[i], i))
    return STATES[best]


def entropy(probabilities: Sequence[float]) -> float:
    """
    Shannon entropy in bits (0 = certain, log2(3) = uniform).
    """
    return float(-sum(p * math.log2(p) for p in map(float, probabilities) if p > 0))


@dataclass(frozen=True)
class StatePrediction:
    step: int
    probabilities: tuple[float, float, float]
    confidence: Confidence

    @property
    def most_likely(self) -> UnifiedState:
        return most_likely_state(self.probabilities)

    @property
    def entropy(self) -> float:
        return entropy(self.probabilities)

    def probability_of(self, state: Any) -> float:
        return self.probabilities[coerce_state(state).index]

    def as_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "probabilities": dict(zip(STATE_LABELS, self.probabilities)),
            "confidence": self.confidence.value,
            "most_likely": self.most_likely.value,
            "entropy": round(self.entropy, 4),
        }


def one_hot(state: Any) -> np.ndarray:
    v = np.zeros(N_STATES, dtype=float)
    v[coerce_state(state).index] = 1.0
    return v


def predict(current_state: Any, matrix: Any, steps: int) -> list[StatePrediction]:
    """
    Forward distributions v_k = v_(k-1) @ M for k = 1..steps, starting from
    the one-hot current state. steps <= 0 gives an empty forecast.
    """
    start = one_hot(current_state)
    m = as_matrix(matrix)

    if steps <= 0:
        if steps < 0:
            logger.warning("Negative forecast horizon %s; returning no predictions.", steps)
        return []

    out: list[StatePrediction] = []
    v = start
    for k in range(1, int(steps) + 1):
        v = v @ m
        out.append(
            StatePrediction(
                step=k,
                probabilities=(float(v[0]), float(v[1]), float(v[2])),
                confidence=confidence_for_step(k),
            )
        )
    return out


def project(current_state: Any, matrix: Any, k: int) -> tuple[float, float, float]:
    """
    Distribution k steps ahead via matrix power, for long horizons.
    """
    v = one_hot(current_state) @ power(matrix, k)
    return (float(v[0]), float(v[1]), float(v[2]))


def predictions_frame(predictions: Sequence[StatePrediction]) -> pd.DataFrame:
    columns = ["step", *STATE_LABELS, "most_likely", "confidence"]
    if not predictions:
        return pd.DataFrame(columns=columns)

    rows = []
    for p in predictions:
        row: dict[str, Any] = {"step": p.step}
        row.update(zip(STATE_LABELS, p.probabilities))
        row["most_likely"] = p.most_likely.value
        row["confidence"] = p.confidence.value
        rows.append(row)
    return pd.DataFrame(rows, columns=columns)
