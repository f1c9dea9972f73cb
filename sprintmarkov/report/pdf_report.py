from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from sprintmarkov.core.contract import CONFIDENCE_NOTE
from sprintmarkov.core.predictor import StatePrediction
from sprintmarkov.core.scoring import Insight
from sprintmarkov.core.states import STATE_LABELS, UnifiedState


def _fmt_pct(x: Any) -> str:
    try:
        return f"{float(x) * 100:.1f}%"
    except (TypeError, ValueError):
        return "N/A"


def _wrap_lines(c: canvas.Canvas, text: str, max_width: float, font_name: str, font_size: int) -> list[str]:
    words = (text or "").split()
    if not words:
        return [""]

    lines: list[str] = []
    current = words[0]
    for w in words[1:]:
        test = f"{current} {w}"
        if c.stringWidth(test, font_name, font_size) <= max_width:
            current = test
        else:
            lines.append(current)
            current = w
    lines.append(current)
    return lines


def _draw_wrapped(
    c: canvas.Canvas,
    x: float,
    y: float,
    text: str,
    max_width: float,
    line_height: int = 13,
    font_name: str = "Helvetica",
    font_size: int = 10,
) -> float:
    c.setFont(font_name, font_size)
    for line in _wrap_lines(c, text, max_width, font_name, font_size):
        c.drawString(x, y, line)
        y -= line_height
    return y


def _draw_sparkline(
    c: canvas.Canvas,
    x: float,
    y: float,
    w: float,
    h: float,
    values: list[float] | None,
) -> None:
    """
    Polyline of probabilities on a fixed 0..1 scale, baseline at y.
    """
    vals = [min(max(float(v), 0.0), 1.0) for v in (values or [])]
    if len(vals) < 2:
        return

    c.setLineWidth(0.3)
    c.line(x, y, x + w, y)
    c.setLineWidth(0.8)

    dx = w / (len(vals) - 1)
    last_x, last_y = x, y + vals[0] * h
    for i in range(1, len(vals)):
        xx, yy = x + i * dx, y + vals[i] * h
        c.line(last_x, last_y, xx, yy)
        last_x, last_y = xx, yy


def _draw_footer(c: canvas.Canvas, page_w: float, text: str, left: float, right: float) -> None:
    c.setFont("Helvetica", 8)
    c.drawRightString(page_w - right, 24, text)
    c.drawString(left, 24, "SprintMarkov · Project Health Forecast")


def _section(c: canvas.Canvas, left: float, y: float, title: str) -> float:
    c.setFont("Helvetica-Bold", 12)
    c.drawString(left, y, title)
    return y - 16


def _draw_matrix(c: canvas.Canvas, left: float, y: float, rows: list[list[float]], fmt) -> float:
    col_w = 90
    c.setFont("Helvetica-Bold", 9)
    c.drawString(left, y, "From \\ To")
    for j, label in enumerate(STATE_LABELS):
        c.drawString(left + col_w * (j + 1), y, label)
    y -= 13

    for i, label in enumerate(STATE_LABELS):
        c.setFont("Helvetica-Bold", 9)
        c.drawString(left, y, label)
        c.setFont("Helvetica", 9)
        for j in range(len(STATE_LABELS)):
            c.drawString(left + col_w * (j + 1), y, fmt(rows[i][j]))
        y -= 12
    return y - 6


def _draw_forecast(c: canvas.Canvas, left: float, y: float, predictions: list[StatePrediction]) -> float:
    cols = [("Step", 0), ("Healthy", 45), ("At Risk", 115), ("Critical", 185), ("Most likely", 260), ("Confidence", 350)]
    c.setFont("Helvetica-Bold", 9)
    for name, dx in cols:
        c.drawString(left + dx, y, name)
    y -= 13

    c.setFont("Helvetica", 9)
    for p in predictions:
        values = [str(p.step), *(_fmt_pct(v) for v in p.probabilities), p.most_likely.value, p.confidence.value]
        for (_, dx), v in zip(cols, values):
            c.drawString(left + dx, y, v)
        y -= 12
    return y - 6


def write_pdf_report(
    out_path: str | Path,
    *,
    project: str,
    current_state: UnifiedState,
    matrix: Any,
    counts_df: pd.DataFrame | None,
    predictions: list[StatePrediction],
    delta_lines: list[str] | None,
    generated_at: str | None,
    coverage_line: str | None,
    scenario: dict[str, Any] | None = None,
    insights: list[Insight] | None = None,
    notes: list[str] | None = None,
    run_config: dict[str, str] | None = None,
) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    c = canvas.Canvas(str(out_path), pagesize=letter)
    page_w, page_h = letter

    left = 34
    right = 44
    max_width = page_w - left - right

    # ======================
    # PAGE 1: CURRENT MODEL
    # ======================
    y = page_h - 60
    c.setFont("Helvetica-Bold", 18)
    c.drawString(left, y, f"SprintMarkov · {project}")
    y -= 26

    c.setFont("Helvetica", 10)
    if generated_at:
        c.drawString(left, y, f"Generated: {generated_at}")
        y -= 14
    if coverage_line:
        y = _draw_wrapped(c, left, y, coverage_line, max_width, line_height=12)
        y -= 4

    if run_config:
        labels = {"window": "Window", "steps": "Steps", "metric": "Metric", "version": "Version"}
        parts = [f"{label}: {run_config[k]}" for k, label in labels.items() if run_config.get(k)]
        if parts:
            c.setFont("Helvetica-Bold", 10)
            c.drawString(left, y, "Run Configuration")
            y -= 12
            y = _draw_wrapped(c, left, y, " | ".join(parts), max_width, line_height=12)
    y -= 10

    y = _section(c, left, y, "Current State")
    c.setFont("Helvetica-Bold", 14)
    c.drawString(left, y, current_state.value)
    y -= 24

    y = _section(c, left, y, "Transition Matrix")
    y = _draw_matrix(c, left, y, [list(r) for r in matrix], _fmt_pct)

    if counts_df is not None and not counts_df.empty:
        y = _section(c, left, y, "Observed Transitions")
        y = _draw_matrix(c, left, y, counts_df.to_numpy().tolist(), lambda v: str(int(v)))

    if delta_lines is not None:
        y = _section(c, left, y, "Key Changes Since Last Report")
        for line in delta_lines:
            y = _draw_wrapped(c, left, y, f"• {line}", max_width, line_height=13)
        y -= 6

    _draw_footer(c, page_w, f"Generated {generated_at}" if generated_at else "", left, right)

    # ======================
    # PAGE 2: FORECAST
    # ======================
    c.showPage()
    y = page_h - 60
    c.setFont("Helvetica-Bold", 16)
    c.drawString(left, y, "Forecast")
    y -= 24

    if not predictions:
        c.setFont("Helvetica", 10)
        c.drawString(left, y, "No forecast steps requested.")
        y -= 16
    else:
        y = _draw_forecast(c, left, y, predictions)

        critical = [p.probabilities[UnifiedState.CRITICAL.index] for p in predictions]
        if len(critical) >= 2:
            c.setFont("Helvetica", 9)
            c.drawString(left, y, "P(Critical) by step")
            _draw_sparkline(c, left + 110, y - 2, w=160, h=18, values=critical)
            y -= 28

    y = _draw_wrapped(c, left, y, CONFIDENCE_NOTE, max_width, line_height=12, font_name="Helvetica-Oblique", font_size=9)
    y -= 14

    if insights:
        y = _section(c, left, y, "Actionable Insights (latest iteration)")
        for i in insights:
            if y < 80:
                _draw_footer(c, page_w, project, left, right)
                c.showPage()
                y = page_h - 60
            y = _draw_wrapped(c, left, y, f"[{i.priority.value.upper()}] {i.issue}. {i.suggestion}. {i.impact}.", max_width, line_height=13)
        y -= 10

    if scenario:
        y = _section(c, left, y, "What-if Scenario")
        y = _draw_matrix(c, left, y, [list(r) for r in scenario["matrix"]], _fmt_pct)
        for line in scenario.get("summary") or []:
            if y < 80:
                _draw_footer(c, page_w, project, left, right)
                c.showPage()
                y = page_h - 60
            y = _draw_wrapped(c, left, y, f"• {line}", max_width, line_height=13)
        y -= 10

    if notes:
        if y < 120:
            _draw_footer(c, page_w, project, left, right)
            c.showPage()
            y = page_h - 60
        y = _section(c, left, y, "Data Notes")
        for n in notes:
            y = _draw_wrapped(c, left, y, f"- {n}", max_width, line_height=13)

    _draw_footer(
        c,
        page_w,
        f"Version {run_config.get('version', '')}" if run_config else project,
        left,
        right,
    )

    c.save()
    return out_path
