from __future__ import annotations

import argparse
import csv
import random
from datetime import datetime, timedelta
from pathlib import Path

from sprintmarkov.core.states import STATES, UnifiedState

# ----------------------------
# Profiles: the "true" chain each synthetic project follows
# ----------------------------

PROFILE_MATRICES: dict[str, list[list[float]]] = {
    "steady": [
        [0.85, 0.12, 0.03],
        [0.50, 0.40, 0.10],
        [0.30, 0.40, 0.30],
    ],
    "degrading": [
        [0.55, 0.35, 0.10],
        [0.15, 0.50, 0.35],
        [0.05, 0.25, 0.70],
    ],
    "volatile": [
        [0.40, 0.30, 0.30],
        [0.35, 0.30, 0.35],
        [0.30, 0.30, 0.40],
    ],
    "recovering": [
        [0.80, 0.15, 0.05],
        [0.45, 0.45, 0.10],
        [0.20, 0.50, 0.30],
    ],
}

# Velocity bands that the default rubric maps back to each state
VELOCITY_BANDS: dict[UnifiedState, tuple[float, float]] = {
    UnifiedState.HEALTHY: (72.0, 100.0),
    UnifiedState.AT_RISK: (51.0, 68.0),
    UnifiedState.CRITICAL: (15.0, 48.0),
}

COLUMNS = [
    "iteration",
    "end_date",
    "velocity",
    "planned_points",
    "completed_points",
    "completed_stories",
    "total_stories",
    "bug_count",
]


def parse_dt(s: str) -> datetime:
    return datetime.fromisoformat(s)


def next_state(rng: random.Random, current: UnifiedState, matrix: list[list[float]]) -> UnifiedState:
    row = matrix[current.index]
    return rng.choices(STATES, weights=row, k=1)[0]


def simulate_states(
    rng: random.Random,
    iterations: int,
    profile: str,
    start_state: UnifiedState = UnifiedState.HEALTHY,
) -> list[UnifiedState]:
    if profile not in PROFILE_MATRICES:
        raise ValueError(f"Unknown profile: {profile}")

    matrix = PROFILE_MATRICES[profile]
    states = [start_state]
    while len(states) < iterations:
        states.append(next_state(rng, states[-1], matrix))
    return states[:iterations]


def _row_for(rng: random.Random, state: UnifiedState) -> dict[str, float]:
    lo, hi = VELOCITY_BANDS[state]
    velocity = round(rng.uniform(lo, hi), 1)

    planned = rng.choice([30, 35, 40, 45, 50])
    completed = round(planned * velocity / 100.0)
    total_stories = rng.randint(6, 12)
    completed_stories = min(total_stories, round(total_stories * velocity / 100.0))
    bug_pressure = {UnifiedState.HEALTHY: 1, UnifiedState.AT_RISK: 3, UnifiedState.CRITICAL: 6}[state]
    bugs = rng.randint(0, bug_pressure)

    return {
        "velocity": velocity,
        "planned_points": planned,
        "completed_points": completed,
        "completed_stories": completed_stories,
        "total_stories": total_stories,
        "bug_count": bugs,
    }


# ----------------------------
# Core generation
# ----------------------------

def generate_csv(
    out_path: Path,
    start: datetime,
    iterations: int,
    length_days: int,
    seed: int | None,
    profile: str,
    with_labels: bool,
    print_summary: bool,
) -> list[UnifiedState]:
    """
    Write one row per iteration and return the simulated state sequence.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)

    rng = random.Random(seed)
    states = simulate_states(rng, iterations, profile)

    columns = COLUMNS + (["state"] if with_labels else [])
    with out_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=columns)
        w.writeheader()
        for i, state in enumerate(states, start=1):
            row: dict[str, object] = {
                "iteration": f"S{i:02d}",
                "end_date": (start + timedelta(days=i * length_days)).strftime("%Y-%m-%d"),
            }
            row.update(_row_for(rng, state))
            if with_labels:
                row["state"] = state.value
            w.writerow(row)

    if print_summary:
        counts = {s.value: states.count(s) for s in STATES}
        print(f"Generated {out_path} with {len(states)} iterations")
        print(f"Profile: {profile} | Seed: {seed} | Length: {length_days}d | States: {counts}")

    return states


# ----------------------------
# CLI
# ----------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="generate_iterations.py",
        description="Generate a synthetic iterations.csv for SprintMarkov demo/testing.",
    )

    p.add_argument("--out", default="data/iterations.csv",
                   help="Output CSV path (default: data/iterations.csv)")
    p.add_argument("--start", default="2026-01-05",
                   help="Start date (ISO format)")
    p.add_argument("--iterations", type=int, default=24,
                   help="Number of iterations to generate")
    p.add_argument("--length-days", type=int, default=14,
                   help="Iteration length in days")
    p.add_argument("--seed", type=int, default=None,
                   help="Random seed for reproducible output")
    p.add_argument("--profile", choices=sorted(PROFILE_MATRICES), default="steady",
                   help="True transition profile")
    p.add_argument("--with-labels", action="store_true",
                   help="Also write the simulated state label per row")
    p.add_argument("--print-summary", action="store_true",
                   help="Print generation summary to console")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    if args.iterations <= 0:
        raise SystemExit("--iterations must be > 0")
    if args.length_days <= 0:
        raise SystemExit("--length-days must be > 0")

    generate_csv(
        out_path=Path(args.out),
        start=parse_dt(args.start),
        iterations=args.iterations,
        length_days=args.length_days,
        seed=args.seed,
        profile=args.profile,
        with_labels=args.with_labels,
        print_summary=args.print_summary,
    )


if __name__ == "__main__":
    main()
