import numpy as np
import pytest

from sprintmarkov.core.errors import InvalidMatrixError, UnknownStateError
from sprintmarkov.core.matrix import identity, power
from sprintmarkov.core.predictor import (
    Confidence,
    confidence_for_step,
    entropy,
    most_likely_state,
    predict,
    predictions_frame,
    project,
)
from sprintmarkov.core.states import UnifiedState


def test_reference_forecast(example_matrix):
    preds = predict(UnifiedState.HEALTHY, example_matrix, 3)

    assert [p.step for p in preds] == [1, 2, 3]
    assert preds[0].probabilities == pytest.approx((0.7, 0.2, 0.1))
    assert preds[1].probabilities == pytest.approx((0.56, 0.26, 0.18))
    expected_3 = np.array([0.56, 0.26, 0.18]) @ example_matrix
    assert preds[2].probabilities == pytest.approx(tuple(expected_3))
    assert [p.confidence for p in preds] == [Confidence.HIGH, Confidence.HIGH, Confidence.MEDIUM]


@pytest.mark.parametrize("steps", [1, 2, 5, 12])
def test_prediction_length_and_sums(example_matrix, steps):
    for start in UnifiedState:
        preds = predict(start, example_matrix, steps)
        assert len(preds) == steps
        for p in preds:
            assert abs(sum(p.probabilities) - 1.0) <= 0.001


def test_zero_and_negative_steps_are_empty(example_matrix):
    assert predict("Healthy", example_matrix, 0) == []
    assert predict("Healthy", example_matrix, -3) == []


def test_invalid_inputs_raise(example_matrix):
    with pytest.raises(UnknownStateError):
        predict("Sunny", example_matrix, 2)
    with pytest.raises(InvalidMatrixError):
        predict("Healthy", [[1, 0], [0, 1]], 2)


@pytest.mark.parametrize(
    "step,label",
    [(1, "High"), (2, "High"), (3, "Medium"), (5, "Medium"), (6, "Low"), (40, "Low")],
)
def test_confidence_is_step_based(step, label):
    assert confidence_for_step(step).value == label


def test_predict_is_deterministic(example_matrix):
    assert predict("At Risk", example_matrix, 4) == predict("At Risk", example_matrix, 4)


def test_project_matches_iterated_forecast(example_matrix):
    preds = predict("Critical", example_matrix, 9)
    assert project("Critical", example_matrix, 9) == pytest.approx(preds[-1].probabilities)
    assert project("Critical", example_matrix, 0) == (0.0, 0.0, 1.0)


def test_identity_matrix_keeps_state():
    preds = predict(UnifiedState.AT_RISK, identity(), 3)
    assert all(p.most_likely is UnifiedState.AT_RISK for p in preds)
    assert all(p.entropy == 0.0 for p in preds)


def test_most_likely_ties_prefer_critical():
    assert most_likely_state([0.4, 0.2, 0.4]) is UnifiedState.CRITICAL
    assert most_likely_state([0.5, 0.5, 0.0]) is UnifiedState.AT_RISK


def test_entropy_bounds():
    assert entropy([1.0, 0.0, 0.0]) == 0.0
    assert entropy([1 / 3, 1 / 3, 1 / 3]) == pytest.approx(np.log2(3))


def test_prediction_as_dict_and_frame(example_matrix):
    preds = predict("Healthy", example_matrix, 2)
    d = preds[0].as_dict()
    assert d["step"] == 1
    assert d["probabilities"]["Healthy"] == pytest.approx(0.7)
    assert d["confidence"] == "High"
    assert d["most_likely"] == "Healthy"
    assert preds[1].probability_of("at risk") == pytest.approx(0.26)

    frame = predictions_frame(preds)
    assert list(frame["step"]) == [1, 2]
    assert frame.loc[1, "Critical"] == pytest.approx(0.18)
    assert predictions_frame([]).empty


def test_long_horizon_converges(example_matrix):
    stationary = power(example_matrix, 200)[0]
    assert project("Healthy", example_matrix, 200) == pytest.approx(tuple(stationary))
    assert project("Critical", example_matrix, 200) == pytest.approx(tuple(stationary), abs=1e-9)
