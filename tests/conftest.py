from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from sprintmarkov.core.rubric import ComparisonOperator, RubricCriterion, default_rubric
from sprintmarkov.core.states import UnifiedState

H = UnifiedState.HEALTHY
R = UnifiedState.AT_RISK
C = UnifiedState.CRITICAL


@pytest.fixture
def example_matrix() -> np.ndarray:
    """
    Reference 3x3 chain used across predictor/scenario tests.
    Rows: Healthy, At Risk, Critical.
    """
    return np.array(
        [
            [0.7, 0.2, 0.1],
            [0.3, 0.4, 0.3],
            [0.1, 0.4, 0.5],
        ],
        dtype=float,
    )


@pytest.fixture
def sample_history() -> list[UnifiedState]:
    return [H, H, R, C, R, H]


@pytest.fixture
def velocity_rubric() -> list[RubricCriterion]:
    return default_rubric("velocity")


@pytest.fixture
def healthy_only_rubric() -> list[RubricCriterion]:
    return [RubricCriterion(0, "velocity", ComparisonOperator.GTE, 80.0)]


@pytest.fixture
def iterations_csv(tmp_path: Path) -> Path:
    """
    Five iterations, written out of date order, covering every graded level:
    95 -> 0, 80 -> 1, 60 -> 2, 40 -> 3, 20 -> 4.
    """
    df = pd.DataFrame(
        {
            "iteration": ["S3", "S1", "S2", "S5", "S4"],
            "end_date": ["2026-02-02", "2026-01-05", "2026-01-19", "2026-03-02", "2026-02-16"],
            "velocity": [60.0, 95.0, 80.0, 20.0, 40.0],
        }
    )
    p = tmp_path / "iterations.csv"
    df.to_csv(p, index=False)
    return p
