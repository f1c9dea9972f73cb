import logging

import numpy as np
import pytest

from sprintmarkov.core.errors import InvalidWindowError, UnknownStateError
from sprintmarkov.core.estimator import estimate, trailing_window, transition_counts
from sprintmarkov.core.matrix import is_stochastic, uniform
from sprintmarkov.core.states import STATE_LABELS, UnifiedState

H = UnifiedState.HEALTHY
R = UnifiedState.AT_RISK
C = UnifiedState.CRITICAL


def test_reference_history_gives_exact_rows(sample_history):
    m = estimate(sample_history, 10)
    assert m[0].tolist() == [0.5, 0.5, 0.0]
    assert m[1].tolist() == [0.5, 0.0, 0.5]
    assert m[2].tolist() == [0.0, 1.0, 0.0]


@pytest.mark.parametrize("history", [[], [H], ["Critical"]])
def test_short_history_is_uniform(history):
    assert np.array_equal(estimate(history, 10), uniform())


def test_zero_window_is_uniform(sample_history):
    assert np.array_equal(estimate(sample_history, 0), uniform())


def test_window_keeps_only_trailing_transitions():
    history = [C, C, C, C, H, R, H]
    assert trailing_window(history, 2) == [H, R, H]
    m = estimate(history, 2)
    assert m[0].tolist() == [0.0, 1.0, 0.0]
    assert m[1].tolist() == [1.0, 0.0, 0.0]
    # Critical never an origin in the window -> identity row
    assert m[2].tolist() == [0.0, 0.0, 1.0]


def test_unseen_origin_logs_identity_row(caplog):
    with caplog.at_level(logging.WARNING, logger="sprintmarkov.core.estimator"):
        m = estimate([H, H, H], 10)
    assert m[1].tolist() == [0.0, 1.0, 0.0]
    assert m[2].tolist() == [0.0, 0.0, 1.0]
    assert any("identity row" in r.getMessage() for r in caplog.records)


def test_estimate_is_always_stochastic():
    rng = np.random.default_rng(7)
    labels = [H, R, C]
    for _ in range(25):
        history = [labels[i] for i in rng.integers(0, 3, size=rng.integers(0, 30))]
        for window in (0, 1, 3, 10, 50):
            assert is_stochastic(estimate(history, window))


def test_history_is_not_mutated(sample_history):
    before = list(sample_history)
    estimate(sample_history, 3)
    assert sample_history == before


def test_negative_window_raises(sample_history):
    with pytest.raises(InvalidWindowError):
        estimate(sample_history, -1)
    with pytest.raises(InvalidWindowError):
        estimate([], -1)


@pytest.mark.parametrize("history", [["Healthy", "Sunny"], ["Sunny"], ["Sunny", "Healthy", "Healthy"]])
def test_unknown_state_fails_fast(history):
    with pytest.raises(UnknownStateError):
        estimate(history, 10)


def test_unknown_state_outside_zero_window_still_fails():
    with pytest.raises(UnknownStateError):
        estimate(["Sunny", "Healthy"], 0)


def test_transition_counts_frame(sample_history):
    counts = transition_counts(sample_history, 10)
    assert list(counts.index) == STATE_LABELS
    assert list(counts.columns) == STATE_LABELS
    assert counts.loc["Healthy", "At Risk"] == 1
    assert counts.loc["Critical", "At Risk"] == 1
    assert int(counts.to_numpy().sum()) == len(sample_history) - 1
