import logging

import pytest

from sprintmarkov.core.scoring import (
    MetricDefinition,
    ScoreCriterion,
    ScoreResult,
    ScoreThresholds,
    actionable_insights,
    default_score_criteria,
    level_from_score,
    metric_score,
    score_iteration,
)
from sprintmarkov.core.states import UnifiedState


def test_metric_score_bands():
    m = MetricDefinition("story_completion", 0, 100, ScoreThresholds(90, 75, 60, 40))
    assert metric_score(95, m) == 100.0
    assert metric_score(80, m) == 85.0
    assert metric_score(65, m) == 70.0
    assert metric_score(45, m) == 50.0
    assert metric_score(10, m) == 25.0


def test_metric_score_clips_and_inverts():
    m = MetricDefinition("technical_debt", 0, 100, inverse=True)
    # far above range clips to 100, inverted to 0 -> lowest band
    assert metric_score(500, m) == 25.0
    assert metric_score(0, m) == 100.0


@pytest.mark.parametrize(
    "score,level",
    [(100, 0), (85, 0), (84.9, 1), (70, 1), (55, 2), (35, 3), (34.9, 4), (0, 4)],
)
def test_level_from_score(score, level):
    assert level_from_score(score) == level


def test_score_iteration_strong_team_is_healthy():
    metrics = {
        "story_completion": 100.0,
        "velocity_consistency": 150.0,
        "code_coverage": 95.0,
        "technical_debt": 0.0,
        "bug_rate": 0.0,
        "impediment_days": 0.0,
    }
    result = score_iteration(default_score_criteria(), metrics)
    assert result.overall_score == 100.0
    assert result.level == 0
    assert result.state is UnifiedState.HEALTHY
    assert result.coverage == 1.0


def test_score_iteration_weak_team_is_critical():
    metrics = {
        "story_completion": 10.0,
        "velocity_consistency": 20.0,
        "code_coverage": 10.0,
        "technical_debt": 100.0,
        "bug_rate": 5.0,
        "impediment_days": 10.0,
    }
    result = score_iteration(default_score_criteria(), metrics)
    assert result.overall_score == 25.0
    assert result.state is UnifiedState.CRITICAL


def test_score_iteration_reports_partial_coverage():
    criteria = [
        ScoreCriterion(
            id="delivery",
            name="Delivery",
            metrics=(
                MetricDefinition("a", 0, 100),
                MetricDefinition("b", 0, 100),
            ),
        )
    ]
    result = score_iteration(criteria, {"a": 100.0})
    assert result.coverage == 0.5
    # only the supplied metric is averaged
    assert result.criteria_scores["delivery"] == 100.0


def test_score_iteration_empty_criteria_falls_back():
    result = score_iteration([], {"a": 1.0})
    assert result.overall_score is None
    assert result.level is None
    assert result.state is UnifiedState.AT_RISK
    assert result.coverage == 0.0


def test_score_iteration_without_any_scored_metric_is_at_risk(caplog):
    with caplog.at_level(logging.WARNING, logger="sprintmarkov.core.scoring"):
        result = score_iteration(default_score_criteria(), {"velocity": 10.0})
    assert result.state is UnifiedState.AT_RISK
    assert result.level is None
    assert result.overall_score is None
    assert "fallback" in caplog.text


def _one_criterion_result(score: float) -> tuple[ScoreResult, list[ScoreCriterion]]:
    criteria = [ScoreCriterion(id="delivery", name="Delivery", metrics=(MetricDefinition("a", 0, 100),))]
    return ScoreResult(level=2, state=UnifiedState.AT_RISK, overall_score=score, criteria_scores={"delivery": score}, coverage=1.0), criteria


@pytest.mark.parametrize(
    "score,priority",
    [(25.0, "high"), (34.9, "high"), (35.0, "medium"), (54.9, "medium"), (55.0, "low"), (69.9, "low")],
)
def test_insight_priority_cutoffs(score, priority):
    result, criteria = _one_criterion_result(score)
    insights = actionable_insights(result, criteria)
    assert [i.priority.value for i in insights] == [priority]
    assert insights[0].category == "Delivery"
    assert f"({score:.1f}/100)" in insights[0].issue


def test_no_insight_at_or_above_70_or_without_data():
    for score in (70.0, 100.0, 0.0):
        result, criteria = _one_criterion_result(score)
        assert actionable_insights(result, criteria) == []


def test_insights_sorted_most_urgent_first():
    criteria = [
        ScoreCriterion(id=cid, name=cid.title(), metrics=(MetricDefinition(cid, 0, 100),))
        for cid in ("low", "high", "medium")
    ]
    result = ScoreResult(
        level=3,
        state=UnifiedState.CRITICAL,
        overall_score=45.0,
        criteria_scores={"low": 60.0, "high": 25.0, "medium": 50.0},
        coverage=1.0,
    )
    insights = actionable_insights(result, criteria)
    assert [i.priority.value for i in insights] == ["high", "medium", "low"]
    assert insights[0].as_dict()["category"] == "High"
