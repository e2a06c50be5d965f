"""Markdown summary table for the job summary page."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping, Sequence

from ensure_ci.models.checks import Interpretation, SummaryRow

log = logging.getLogger(__name__)

TABLE_HEADER = (
    "| Check Name | Source | Start Time | Duration | Status | Interpreted as |\n"
    "|------------|--------|------------|----------|--------|----------------|\n"
)

_LABELS: dict[Interpretation, str] = {
    Interpretation.SUCCESS: "✅ All good!",
    Interpretation.FAILURE: "❌ Something failed.",
    Interpretation.STILL_RUNNING: "⏳ Still running...",
    Interpretation.CURRENT_JOB: "🙈 Current job",
    Interpretation.IGNORED: "🙈 Ignored",
}


def fancy_interpretation(interpreted: Interpretation) -> str:
    return _LABELS.get(interpreted, "⚠️ Unknown status")


def _format_row(row: SummaryRow) -> str:
    duration = f"{round(row.duration)}s" if row.duration is not None else "-"
    name = f"[{row.name}]({row.url})" if row.url else row.name
    start = row.start.isoformat().replace("+00:00", "Z") if row.start else "-"
    return f"| {name} | {row.source} | {start} | {duration} | {row.status} | {fancy_interpretation(row.interpreted)} |"


def render_summary(rows: Sequence[SummaryRow], full_details: bool) -> str:
    header = ""
    shown = list(rows)
    if not full_details:
        ignored = sum(1 for r in shown if r.interpreted is Interpretation.IGNORED)
        successful = sum(1 for r in shown if r.interpreted is Interpretation.SUCCESS)
        shown = [
            r for r in shown if r.interpreted in (Interpretation.FAILURE, Interpretation.STILL_RUNNING)
        ]
        header = (
            f"\n> ℹ️ {successful} successful, {ignored} ignored. "
            "Enable full-details-summary to see them.\n\n"
        )
    body = "\n".join(_format_row(r) for r in shown)
    return header + TABLE_HEADER + body + "\n"


def write_summary(summary: str, env: Mapping[str, str] | None = None) -> Path | None:
    """Append to ``GITHUB_STEP_SUMMARY`` when the runner provides it, else log."""
    env = os.environ if env is None else env
    summary_path = env.get("GITHUB_STEP_SUMMARY")
    if summary_path:
        path = Path(summary_path)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(summary)
        return path
    log.info("GITHUB_STEP_SUMMARY not available")
    log.info("%s", summary)
    return None
