from __future__ import annotations

import argparse
import logging
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from sprintmarkov.core.config import CLASSIFIERS, load_config, merge_config
from sprintmarkov.core.contract import SPRINTMARKOV_DECISION_VERSION
from sprintmarkov.core.delta import compute_delta_lines, load_snapshot, save_snapshot, snapshot_from_matrix
from sprintmarkov.core.errors import SprintMarkovError
from sprintmarkov.core.estimator import estimate, trailing_window, transition_counts
from sprintmarkov.core.ingest import (
    classify_iterations,
    latest_insights,
    load_iterations_csv,
    score_iterations,
    state_history,
)
from sprintmarkov.core.matrix import as_matrix, compare, is_stochastic, normalize
from sprintmarkov.core.predictor import predict
from sprintmarkov.core.rubric import load_rubric
from sprintmarkov.core.scenario import compare_scenarios, scenario_deltas, scenario_summary_lines
from sprintmarkov.core.states import STATES
from sprintmarkov.report.json_report import write_json_report
from sprintmarkov.report.pdf_report import write_pdf_report
from sprintmarkov.schema_constants import SCHEMA_VERSION

try:
    SPRINTMARKOV_PACKAGE_VERSION = version("sprintmarkov")
except PackageNotFoundError:
    SPRINTMARKOV_PACKAGE_VERSION = "dev"

logger = logging.getLogger(__name__)


def _console_safe(s: str) -> str:
    """
    Keep console output ASCII-safe while leaving PDF/JSON output untouched.
    """
    return str(s).replace("→", "->").replace("•", "-")


def _require_existing_file(path: Path, label: str) -> None:
    if not path.exists():
        raise FileNotFoundError(f"{label} not found: {path}")
    if path.is_dir():
        raise IsADirectoryError(f"{label} is a directory, expected a file: {path}")


def _coverage_line(df: pd.DataFrame, transitions_used: int) -> str:
    span = "N/A"
    if "end_date" in df.columns:
        dates = pd.to_datetime(df["end_date"], errors="coerce").dropna()
        if not dates.empty:
            span = f"{dates.min().date()} -> {dates.max().date()}"
    return f"Coverage: {span} | Iterations: {len(df)} | Transitions used: {transitions_used}"


def _non_negative_int(text: str) -> int:
    try:
        v = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {text!r}") from None
    if v < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {v}")
    return v


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="sprintmarkov", description="SprintMarkov: project health forecasting")

    p.add_argument("--input", default=None, help="Path to iterations CSV (defaults from config or built-in)")
    p.add_argument("--out", default=None, help="Output PDF path (defaults from config or built-in)")
    p.add_argument("--snapshot", default=None, help="Snapshot CSV path for change tracking")
    p.add_argument("--config", default=None, help="Path to config TOML (optional)")
    p.add_argument("--rubric", default=None, help="Path to rubric TOML (default: built-in velocity rubric)")
    p.add_argument("--project", default=None, help="Project name shown in reports")

    p.add_argument("--window-size", type=_non_negative_int, default=None, help="Transitions used to estimate the matrix")
    p.add_argument("--steps", type=_non_negative_int, default=None, help="Forecast horizon in iterations")
    p.add_argument("--metric", default=None, help="Metric graded by the built-in rubric")
    p.add_argument("--classifier", choices=CLASSIFIERS, default=None,
                   help="How unlabelled iterations are classified (threshold rubric or weighted score)")

    p.add_argument(
        "--json-out",
        "--json",
        dest="json_out",
        default=None,
        help="Optional JSON report output path",
    )
    p.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    return p


def _scenario_section(current_state: Any, base_matrix: Any, raw: Any, steps: int, notes: list[str]) -> dict[str, Any]:
    # Rows within tolerance of 1 are rescaled too so no probability exceeds 1
    scenario_matrix = normalize(raw)
    normalized = not np.allclose(scenario_matrix, as_matrix(raw), rtol=0.0, atol=1e-9)
    if not is_stochastic(raw):
        notes.append("Scenario matrix rows did not sum to 1; rows were normalized before forecasting.")

    comparison = compare_scenarios(current_state, base_matrix, scenario_matrix, steps)
    diff = compare(base_matrix, scenario_matrix)
    return {
        "matrix": scenario_matrix,
        "normalized": normalized,
        "comparison": {
            "max_absolute_difference": diff.max_absolute_difference,
            "materially_different": diff.materially_different,
        },
        "forecast": comparison.scenario,
        "deltas": scenario_deltas(comparison),
        "summary": scenario_summary_lines(comparison),
    }


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    cfg = merge_config(load_config(args.config), args)

    data_path = Path(cfg.input)
    out_pdf = Path(cfg.out)
    snapshot_path = Path(cfg.snapshot)
    json_out_path = Path(cfg.json_out) if cfg.json_out else None

    try:
        _require_existing_file(data_path, "Input CSV")
    except (FileNotFoundError, IsADirectoryError) as e:
        print(f"ERROR: {e}")
        return 2

    ingest = load_iterations_csv(data_path)
    if ingest.df.empty:
        print(f"ERROR: input CSV parsed to 0 iterations: {data_path}")
        for msg in ingest.issues:
            print(f" - {_console_safe(msg)}")
        return 1

    notes = list(ingest.issues)

    try:
        if cfg.classifier == "score":
            classified = score_iterations(ingest.df)
        else:
            classified = classify_iterations(ingest.df, load_rubric(cfg.rubric, metric=cfg.metric))

        history = state_history(classified)
        matrix = estimate(history, cfg.window_size)
        counts = transition_counts(history, cfg.window_size)
        current_state = history[-1]
        predictions = predict(current_state, matrix, cfg.steps)

        insights = latest_insights(ingest.df) if cfg.classifier == "score" else []

        scenario = None
        if cfg.scenario_matrix is not None:
            scenario = _scenario_section(current_state, matrix, cfg.scenario_matrix, cfg.steps, notes)
    except SprintMarkovError as e:
        print(f"ERROR: {e}")
        return 1

    transitions_used = max(len(trailing_window(history, cfg.window_size)) - 1, 0)
    if transitions_used == 0:
        notes.append("Fewer than two iterations in the window; the matrix is uniform.")
    logger.debug("Estimated matrix from %d transitions: %s", transitions_used, matrix.tolist())

    # Delta against the previous run; save only after comparing
    curr_snap = snapshot_from_matrix(matrix)
    delta_lines = compute_delta_lines(load_snapshot(snapshot_path), curr_snap)
    save_snapshot(curr_snap, snapshot_path)

    generated_at = datetime.now().strftime("%Y-%m-%d %H:%M")
    coverage = _coverage_line(classified, transitions_used)

    run_config = {
        "config": str(args.config or ""),
        "schema": SCHEMA_VERSION,
        "window": str(cfg.window_size),
        "steps": str(cfg.steps),
        "metric": cfg.metric if cfg.classifier == "rubric" else "weighted score",
        "package": SPRINTMARKOV_PACKAGE_VERSION,
        "version": SPRINTMARKOV_DECISION_VERSION,
    }

    write_pdf_report(
        out_path=out_pdf,
        project=cfg.project,
        current_state=current_state,
        matrix=matrix,
        counts_df=counts,
        predictions=predictions,
        delta_lines=delta_lines,
        generated_at=generated_at,
        coverage_line=coverage,
        scenario=scenario,
        insights=insights,
        notes=notes,
        run_config=run_config,
    )

    if json_out_path:
        write_json_report(
            out_path=json_out_path,
            generated_at=generated_at,
            coverage_line=coverage,
            project=cfg.project,
            current_state=current_state.value,
            window_size=cfg.window_size,
            transitions_used=transitions_used,
            matrix=matrix,
            counts_df=counts,
            predictions=predictions,
            delta_lines=delta_lines,
            iterations_df=classified,
            scenario=scenario,
            insights=insights,
            notes=notes,
            run_config=run_config,
        )

    print(f"Report generated: {out_pdf.resolve()}")
    print(f"Snapshot saved:  {snapshot_path.resolve()}")
    print(f"Current state:   {current_state.value}")
    for p in predictions:
        probs = " | ".join(f"{s.value} {v * 100:.1f}%" for s, v in zip(STATES, p.probabilities))
        print(f"  Step {p.step} [{p.confidence.value}]: {probs}")

    if delta_lines:
        print("Key Changes:")
        for d in delta_lines:
            print(f" - {_console_safe(d)}")

    if insights:
        print("Insights:")
        for i in insights:
            print(f" - [{i.priority.value}] {i.issue}: {i.suggestion}")

    if scenario:
        print("Scenario:")
        for line in scenario["summary"]:
            print(f" - {_console_safe(line)}")

    if json_out_path:
        print(f"JSON saved:      {json_out_path.resolve()}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
