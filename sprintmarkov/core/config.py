from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomllib  # py3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore

from sprintmarkov.core.contract import DEFAULT_METRIC, DEFAULT_STEPS, DEFAULT_WINDOW_SIZE

CLASSIFIERS = ("rubric", "score")


# ----------------------------
# Primary config object
# ----------------------------

@dataclass(frozen=True)
class SprintMarkovConfig:
    """
    Single, flattened config object used by the CLI/runtime.

    Supports the simple style:
      [sprintmarkov]
      input, out, snapshot, json_out, rubric, project, window_size, steps, metric, classifier

    Also supports structured style:
      [meta], [model], [report], [scenario]
    """
    schema_version: str = "1.0"

    # IO
    input: str = "data/iterations.csv"
    out: str = "outputs/sprintmarkov_report.pdf"
    snapshot: str = "outputs/last_matrix.csv"
    json_out: str = "outputs/sprintmarkov_report.json"
    rubric: str | None = None

    # model knobs
    project: str = "default"
    window_size: int = DEFAULT_WINDOW_SIZE
    steps: int = DEFAULT_STEPS
    metric: str = DEFAULT_METRIC
    classifier: str = "rubric"

    # what-if matrix (3 rows of 3), optional
    scenario_matrix: tuple[tuple[float, ...], ...] | None = None


# ----------------------------
# Helpers
# ----------------------------

def _as_dict(x: Any) -> dict[str, Any]:
    return x if isinstance(x, dict) else {}


def _get(d: dict[str, Any], key: str, default: Any) -> Any:
    return d.get(key, default) if isinstance(d, dict) else default


def _coerce_int(x: Any, default: int, minimum: int = 0) -> int:
    try:
        v = int(x)
    except (TypeError, ValueError):
        return default
    return v if v >= minimum else default


def _coerce_str(x: Any, default: str) -> str:
    if x is None:
        return default
    s = str(x)
    return s if s.strip() else default


def _coerce_opt_str(x: Any) -> str | None:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


def _coerce_classifier(x: Any, default: str) -> str:
    s = str(x).strip().lower() if x is not None else ""
    return s if s in CLASSIFIERS else default


def _coerce_matrix(x: Any) -> tuple[tuple[float, ...], ...] | None:
    """
    Accept a list of 3 rows of 3 numbers; anything else means "no scenario".
    Stochastic validation happens later, at the caller.
    """
    if not isinstance(x, (list, tuple)) or len(x) != 3:
        return None
    rows: list[tuple[float, ...]] = []
    for row in x:
        if not isinstance(row, (list, tuple)) or len(row) != 3:
            return None
        try:
            rows.append(tuple(float(v) for v in row))
        except (TypeError, ValueError):
            return None
    return tuple(rows)


# ----------------------------
# Load + merge
# ----------------------------

def load_config(path: str | Path | None) -> SprintMarkovConfig:
    """
    Load TOML config. If missing/None, returns safe defaults.
    Never raises for missing file (config is optional).
    """
    if not path:
        return SprintMarkovConfig()

    p = Path(path)
    if not p.exists():
        return SprintMarkovConfig()

    data = tomllib.loads(p.read_text(encoding="utf-8"))

    # Preferred simple table
    smk = _as_dict(data.get("sprintmarkov", {}))

    # Optional structured tables
    meta = _as_dict(data.get("meta", {}))
    model = _as_dict(data.get("model", {}))
    report = _as_dict(data.get("report", {}))
    scenario = _as_dict(data.get("scenario", {}))

    d = SprintMarkovConfig
    schema_version = _coerce_str(_get(meta, "schema_version", d.schema_version), d.schema_version)

    input_path = _coerce_str(_get(smk, "input", d.input), d.input)
    out_pdf = _coerce_str(_get(smk, "out", _get(report, "out", d.out)), d.out)
    snapshot = _coerce_str(_get(smk, "snapshot", d.snapshot), d.snapshot)
    json_out = _coerce_str(_get(smk, "json_out", _get(report, "json_out", d.json_out)), d.json_out)
    rubric = _coerce_opt_str(_get(smk, "rubric", None))

    project = _coerce_str(_get(smk, "project", d.project), d.project)
    window_size = _coerce_int(_get(smk, "window_size", _get(model, "window_size", d.window_size)), d.window_size)
    steps = _coerce_int(_get(smk, "steps", _get(model, "steps", d.steps)), d.steps)
    metric = _coerce_str(_get(smk, "metric", _get(model, "metric", d.metric)), d.metric)
    classifier = _coerce_classifier(_get(smk, "classifier", _get(model, "classifier", d.classifier)), d.classifier)

    scenario_matrix = _coerce_matrix(_get(scenario, "matrix", None))

    return SprintMarkovConfig(
        schema_version=schema_version,
        input=input_path,
        out=out_pdf,
        snapshot=snapshot,
        json_out=json_out,
        rubric=rubric,
        project=project,
        window_size=window_size,
        steps=steps,
        metric=metric,
        classifier=classifier,
        scenario_matrix=scenario_matrix,
    )


def merge_config(cfg: SprintMarkovConfig, overrides: dict[str, Any] | Any) -> SprintMarkovConfig:
    """
    Merge CLI overrides over file config.
    Only applies fields that are present AND not None/empty.
    """
    def lookup(name: str) -> Any:
        if isinstance(overrides, dict):
            return overrides.get(name)
        return getattr(overrides, name, None)

    def pick_str(name: str, cur: str) -> str:
        v = lookup(name)
        if v is not None and str(v).strip():
            return str(v).strip()
        return cur

    def pick_opt_str(name: str, cur: str | None) -> str | None:
        v = lookup(name)
        if v is None:
            return cur
        return str(v).strip() or cur

    def pick_int(name: str, cur: int) -> int:
        v = lookup(name)
        if v is None:
            return cur
        return _coerce_int(v, cur)

    scenario_override = lookup("scenario_matrix")

    return SprintMarkovConfig(
        schema_version=cfg.schema_version,
        input=pick_str("input", cfg.input),
        out=pick_str("out", cfg.out),
        snapshot=pick_str("snapshot", cfg.snapshot),
        json_out=pick_str("json_out", cfg.json_out),
        rubric=pick_opt_str("rubric", cfg.rubric),
        project=pick_str("project", cfg.project),
        window_size=pick_int("window_size", cfg.window_size),
        steps=pick_int("steps", cfg.steps),
        metric=pick_str("metric", cfg.metric),
        classifier=_coerce_classifier(lookup("classifier"), cfg.classifier),
        scenario_matrix=_coerce_matrix(scenario_override) or cfg.scenario_matrix,
    )
