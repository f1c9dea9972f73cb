from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import importlib.resources as resources

import jsonschema

from sprintmarkov.core.contract import STOCHASTIC_TOLERANCE
from sprintmarkov.core.matrix import is_stochastic
from sprintmarkov.schema_constants import (
    SCHEMA_VERSION,
    SCHEMA_RESOURCE_PACKAGE,
    SCHEMA_RESOURCE_NAME,
)

EXPECTED_SCHEMA_VERSION = SCHEMA_VERSION


class StrictJsonError(ValueError):
    """Invalid JSON, or NaN/Infinity constants."""


class SchemaVersionMismatch(ValueError):
    pass


class ReportConsistencyError(ValueError):
    """Schema-valid report whose matrices or forecasts are not probability distributions."""


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    schema_version: str
    forecast_steps: int
    insights: int = 0
    has_scenario: bool = False


def _reject_nonfinite_constants(value: str) -> Any:
    raise StrictJsonError(f"Forbidden JSON constant encountered: {value}")


def _load_schema_text() -> str:
    return resources.files(SCHEMA_RESOURCE_PACKAGE).joinpath(SCHEMA_RESOURCE_NAME).read_text(
        encoding="utf-8"
    )


def _parse_strict_json(text: str) -> dict[str, Any]:
    try:
        data = json.loads(text, parse_constant=_reject_nonfinite_constants)
    except StrictJsonError:
        raise
    except json.JSONDecodeError as e:
        raise StrictJsonError(f"Invalid JSON: {e.msg} (line {e.lineno}, col {e.colno})") from e

    if not isinstance(data, dict):
        raise StrictJsonError("Top-level JSON must be an object.")
    return data


def _schema_version(data: dict[str, Any]) -> str:
    meta = data.get("meta")
    if not isinstance(meta, dict):
        raise SchemaVersionMismatch("Missing or invalid 'meta' object.")
    v = meta.get("schema_version")
    if not isinstance(v, str) or not v.strip():
        raise SchemaVersionMismatch("Missing or invalid 'meta.schema_version' (must be a non-empty string).")
    return v.strip()


def _check_steps(where: str, steps: Any) -> int:
    if not isinstance(steps, list):
        return 0
    for n, s in enumerate(steps, start=1):
        if not isinstance(s, dict):
            continue
        if s.get("step") != n:
            raise ReportConsistencyError(f"{where}: expected step {n}, got {s.get('step')!r}.")
        probs = s.get("probabilities")
        if isinstance(probs, dict) and abs(sum(probs.values()) - 1.0) > STOCHASTIC_TOLERANCE:
            raise ReportConsistencyError(f"{where} step {n}: probabilities sum to {sum(probs.values()):.4f}.")
    return len(steps)


def _check_report(data: dict[str, Any]) -> ValidationResult:
    """
    Matrix rows and forecast steps must each sum to 1. Sections missing
    from the report are not checked.
    """
    model = data.get("model")
    if isinstance(model, dict) and "matrix" in model and not is_stochastic(model["matrix"]):
        raise ReportConsistencyError("model.matrix is not row-stochastic.")

    forecast = data.get("forecast")
    steps = _check_steps("forecast", forecast.get("steps") if isinstance(forecast, dict) else None)

    scenario = data.get("scenario")
    if isinstance(scenario, dict):
        if not is_stochastic(scenario.get("matrix")):
            raise ReportConsistencyError("scenario.matrix is not row-stochastic.")
        _check_steps("scenario.forecast", scenario.get("forecast"))

    insights = data.get("insights")
    return ValidationResult(
        ok=True,
        schema_version=_schema_version(data),
        forecast_steps=steps,
        insights=len(insights) if isinstance(insights, list) else 0,
        has_scenario=isinstance(scenario, dict),
    )


def validate_json(path: str | Path, *, expected_schema_version: str = EXPECTED_SCHEMA_VERSION) -> ValidationResult:
    """
    Validate a SprintMarkov report: strict parse, schema version lock,
    bundled JSON Schema, then matrix and forecast consistency.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(str(p))

    data = _parse_strict_json(p.read_text(encoding="utf-8"))

    actual = _schema_version(data)
    if actual != expected_schema_version:
        raise SchemaVersionMismatch(
            f"Schema version mismatch: expected '{expected_schema_version}', got '{actual}'."
        )

    jsonschema.validate(instance=data, schema=_parse_strict_json(_load_schema_text()))
    return _check_report(data)


def main(argv: list[str] | None = None) -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Validate a SprintMarkov JSON report.")
    parser.add_argument("path", help="Path to JSON report file")
    args = parser.parse_args(argv)

    try:
        result = validate_json(args.path)
    except (OSError, ValueError, jsonschema.ValidationError) as e:
        print(f"ERROR: {e}")
        return 1

    scenario = ", scenario" if result.has_scenario else ""
    print(
        f"OK: {result.schema_version}, {result.forecast_steps} forecast steps, "
        f"{result.insights} insights{scenario}."
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
