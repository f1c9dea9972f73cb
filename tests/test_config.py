from argparse import Namespace
from pathlib import Path

from sprintmarkov.core.config import SprintMarkovConfig, load_config, merge_config


def test_missing_config_gives_defaults(tmp_path: Path):
    assert load_config(None) == SprintMarkovConfig()
    cfg = load_config(tmp_path / "missing.toml")
    assert cfg.window_size == 10
    assert cfg.steps == 6
    assert cfg.metric == "velocity"
    assert cfg.classifier == "rubric"
    assert cfg.scenario_matrix is None


def test_simple_and_structured_tables(tmp_path: Path):
    p = tmp_path / "config.toml"
    p.write_text(
        "\n".join(
            [
                "[sprintmarkov]",
                'input = "data/team.csv"',
                'project = "Payments"',
                "window_size = 6",
                "",
                "[model]",
                "steps = 4",
                'classifier = "score"',
                "",
                "[report]",
                'json_out = "out/report.json"',
                "",
                "[scenario]",
                "matrix = [[0.8, 0.2, 0.0], [0.5, 0.4, 0.1], [0.2, 0.5, 0.3]]",
            ]
        ),
        encoding="utf-8",
    )
    cfg = load_config(p)
    assert cfg.input == "data/team.csv"
    assert cfg.project == "Payments"
    assert cfg.window_size == 6
    assert cfg.steps == 4
    assert cfg.classifier == "score"
    assert cfg.json_out == "out/report.json"
    assert cfg.scenario_matrix == ((0.8, 0.2, 0.0), (0.5, 0.4, 0.1), (0.2, 0.5, 0.3))


def test_bad_values_fall_back(tmp_path: Path):
    p = tmp_path / "config.toml"
    p.write_text(
        "\n".join(
            [
                "[sprintmarkov]",
                'window_size = "many"',
                "steps = -2",
                'classifier = "magic"',
                "",
                "[scenario]",
                "matrix = [[1, 0], [0, 1]]",
            ]
        ),
        encoding="utf-8",
    )
    cfg = load_config(p)
    assert cfg.window_size == 10
    assert cfg.steps == 6
    assert cfg.classifier == "rubric"
    assert cfg.scenario_matrix is None


def test_merge_applies_only_present_overrides():
    base = SprintMarkovConfig(project="Payments", window_size=6)
    merged = merge_config(base, {"steps": 3, "project": "  ", "input": None})
    assert merged.steps == 3
    assert merged.project == "Payments"
    assert merged.window_size == 6
    assert merged.input == base.input


def test_merge_accepts_argparse_namespace():
    ns = Namespace(input="x.csv", out=None, window_size=0, classifier="score", rubric="r.toml")
    merged = merge_config(SprintMarkovConfig(), ns)
    assert merged.input == "x.csv"
    assert merged.out == SprintMarkovConfig().out
    assert merged.window_size == 0
    assert merged.classifier == "score"
    assert merged.rubric == "r.toml"
