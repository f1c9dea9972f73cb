import logging
from pathlib import Path

import pytest

from sprintmarkov.core.errors import InvalidRubricError
from sprintmarkov.core.rubric import (
    ComparisonOperator,
    RubricCriterion,
    classify,
    criteria_from_records,
    evaluate_criterion,
    grade,
    load_rubric,
    parse_operator,
)
from sprintmarkov.core.states import UnifiedState


def test_single_level_zero_criterion_classifies_healthy(healthy_only_rubric):
    assert classify({"velocity": 90}, healthy_only_rubric) is UnifiedState.HEALTHY


def test_level_four_wins_over_level_zero():
    criteria = [
        RubricCriterion(0, "velocity", ComparisonOperator.GTE, 10.0),
        RubricCriterion(4, "velocity", ComparisonOperator.GTE, 10.0),
    ]
    assert grade({"velocity": 50}, criteria) == 4
    assert classify({"velocity": 50}, criteria) is UnifiedState.CRITICAL


def test_level_requires_all_criteria():
    criteria = [
        RubricCriterion(3, "velocity", ComparisonOperator.LT, 50.0),
        RubricCriterion(3, "bug_rate", ComparisonOperator.GT, 1.0),
        RubricCriterion(1, "velocity", ComparisonOperator.LT, 100.0),
    ]
    # velocity alone is not enough for level 3
    assert grade({"velocity": 40, "bug_rate": 0.5}, criteria) == 1
    assert grade({"velocity": 40, "bug_rate": 2.0}, criteria) == 3


@pytest.mark.parametrize(
    "metrics,criteria",
    [
        (None, [RubricCriterion(0, "velocity", ComparisonOperator.GTE, 0.0)]),
        ({}, [RubricCriterion(0, "velocity", ComparisonOperator.GTE, 0.0)]),
        ({"velocity": 90}, []),
        ({"velocity": 10}, [RubricCriterion(0, "velocity", ComparisonOperator.GTE, 80.0)]),
    ],
)
def test_fallback_is_at_risk_never_healthy(metrics, criteria, caplog):
    with caplog.at_level(logging.WARNING, logger="sprintmarkov.core.rubric"):
        assert classify(metrics, criteria) is UnifiedState.AT_RISK
    assert caplog.records


def test_missing_metric_never_matches():
    c = RubricCriterion(4, "bug_rate", ComparisonOperator.GTE, 0.0)
    assert evaluate_criterion(None, c) is False
    assert classify({"velocity": 90}, [c]) is UnifiedState.AT_RISK


def test_eq_uses_tolerance():
    c = RubricCriterion(2, "velocity", ComparisonOperator.EQ, 50.0)
    assert evaluate_criterion(50.0005, c) is True
    assert evaluate_criterion(50.01, c) is False


@pytest.mark.parametrize(
    "velocity,expected",
    [
        (95, UnifiedState.HEALTHY),
        (90, UnifiedState.HEALTHY),
        (75, UnifiedState.HEALTHY),
        (50, UnifiedState.AT_RISK),
        (69.9, UnifiedState.AT_RISK),
        (45, UnifiedState.CRITICAL),
        (30, UnifiedState.CRITICAL),
    ],
)
def test_default_rubric_bands(velocity_rubric, velocity, expected):
    assert classify({"velocity": velocity}, velocity_rubric) is expected


def test_parse_operator_accepts_symbols_and_names():
    assert parse_operator(">=") is ComparisonOperator.GTE
    assert parse_operator("lte") is ComparisonOperator.LTE
    assert parse_operator("==") is ComparisonOperator.EQ
    with pytest.raises(InvalidRubricError):
        parse_operator("~")


def test_criterion_level_out_of_range_raises():
    with pytest.raises(InvalidRubricError):
        RubricCriterion(5, "velocity", ComparisonOperator.GTE, 1.0)


def test_criteria_from_records_rejects_missing_keys():
    with pytest.raises(InvalidRubricError):
        criteria_from_records([{"level": 1, "metric": "velocity"}])


def test_load_rubric_from_toml(tmp_path: Path):
    p = tmp_path / "rubric.toml"
    p.write_text(
        "\n".join(
            [
                "[[criteria]]",
                "level = 4",
                'metric = "story_completion"',
                'operator = "<"',
                "threshold = 40",
                "",
                "[[criteria]]",
                "level = 0",
                'metric = "story_completion"',
                'operator = "GTE"',
                "threshold = 90",
                'description = "nearly everything shipped"',
            ]
        ),
        encoding="utf-8",
    )
    criteria = load_rubric(p)
    assert len(criteria) == 2
    assert criteria[1].description == "nearly everything shipped"
    assert classify({"story_completion": 20}, criteria) is UnifiedState.CRITICAL
    assert classify({"story_completion": 95}, criteria) is UnifiedState.HEALTHY


def test_load_rubric_missing_file_uses_default(tmp_path: Path):
    criteria = load_rubric(tmp_path / "nope.toml", metric="story_completion")
    assert {c.metric for c in criteria} == {"story_completion"}
