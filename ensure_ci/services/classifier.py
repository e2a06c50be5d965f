"""Classify raw check runs and commit statuses into summary rows.

Everything here is pure: no logging, no I/O. The same record with the same
patterns always yields an equal row.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional, Sequence

from ensure_ci.errors import ConfigurationError
from ensure_ci.models.checks import CheckRun, CommitStatus, Interpretation, SummaryRow

TEMPLATE_MARKER = "${{"

CompiledPatterns = tuple[re.Pattern[str], ...]

CHECK_SUCCESS_CONCLUSIONS = frozenset({"success", "neutral", "skipped"})
CHECK_FAILURE_CONCLUSIONS = frozenset(
    {"failure", "cancelled", "timed_out", "action_required", "startup_failure", "stale"}
)
STATUS_SUCCESS_STATES = frozenset({"success"})
STATUS_FAILURE_STATES = frozenset({"failure", "error"})
STATUS_PENDING_STATES = frozenset({"pending"})


def compile_ignore_patterns(raw: str | None) -> CompiledPatterns:
    """Compile one anchored regular expression per nonblank line."""
    compiled: list[re.Pattern[str]] = []
    for line in (raw or "").split("\n"):
        pattern = line.strip()
        if not pattern:
            continue
        try:
            compiled.append(re.compile(f"^(?:{pattern})$"))
        except re.error as exc:
            raise ConfigurationError(f"Invalid ignored-name pattern {pattern!r}: {exc}") from exc
    return tuple(compiled)


def has_unresolved_template(name: str) -> bool:
    return TEMPLATE_MARKER in name


def is_ignored(name: str, patterns: CompiledPatterns) -> bool:
    return any(p.match(name) for p in patterns)


def _duration(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    if start is None or end is None:
        return None
    return (end - start).total_seconds()


def _by_name(name: str, patterns: CompiledPatterns, current_job_name: str | None) -> Interpretation | None:
    if current_job_name is not None and name == current_job_name:
        return Interpretation.CURRENT_JOB
    if is_ignored(name, patterns):
        return Interpretation.IGNORED
    return None


def check_run_outcome(run: CheckRun) -> Interpretation:
    """Map lifecycle status and conclusion, ignoring the run's name.

    Unrecognized terminal conclusions count as failures so that a new
    platform value can never turn the gate green.
    """
    if (run.status or "").lower() != "completed":
        return Interpretation.STILL_RUNNING
    conclusion = (run.conclusion or "").lower()
    if conclusion in CHECK_SUCCESS_CONCLUSIONS:
        return Interpretation.SUCCESS
    return Interpretation.FAILURE


def commit_status_outcome(status: CommitStatus) -> Interpretation:
    state = (status.state or "").lower()
    if state in STATUS_PENDING_STATES:
        return Interpretation.STILL_RUNNING
    if state in STATUS_SUCCESS_STATES:
        return Interpretation.SUCCESS
    return Interpretation.FAILURE


def unrecognized_value(record: CheckRun | CommitStatus) -> str | None:
    """Return the raw terminal value when it is neither success- nor failure-like."""
    if isinstance(record, CheckRun):
        if (record.status or "").lower() != "completed":
            return None
        conclusion = (record.conclusion or "").lower()
        if conclusion in CHECK_SUCCESS_CONCLUSIONS or conclusion in CHECK_FAILURE_CONCLUSIONS:
            return None
        return record.conclusion or "null"
    state = (record.state or "").lower()
    if state in STATUS_PENDING_STATES | STATUS_SUCCESS_STATES | STATUS_FAILURE_STATES:
        return None
    return record.state or "null"


def classify_check_run(
    run: CheckRun,
    patterns: CompiledPatterns,
    current_job_name: str | None,
) -> SummaryRow:
    interpreted = _by_name(run.name, patterns, current_job_name) or check_run_outcome(run)
    return SummaryRow(
        name=run.name,
        source="check",
        status=run.conclusion or run.status or "unknown",
        url=run.html_url or run.details_url,
        start=run.started_at,
        duration=_duration(run.started_at, run.completed_at),
        interpreted=interpreted,
    )


def classify_status(
    status: CommitStatus,
    patterns: CompiledPatterns,
    current_job_name: str | None = None,
) -> SummaryRow:
    interpreted = _by_name(status.context, patterns, current_job_name) or commit_status_outcome(status)
    return SummaryRow(
        name=status.context,
        source="status",
        status=status.state or "unknown",
        url=status.target_url,
        start=status.created_at,
        duration=_duration(status.created_at, status.updated_at),
        interpreted=interpreted,
    )


def classify(
    record: CheckRun | CommitStatus,
    patterns: CompiledPatterns,
    current_job_name: str | None,
) -> SummaryRow | None:
    """Classify either record type; templated check run names yield ``None``."""
    if isinstance(record, CheckRun):
        if has_unresolved_template(record.name):
            return None
        return classify_check_run(record, patterns, current_job_name)
    return classify_status(record, patterns, current_job_name)


def classify_all(
    check_runs: Sequence[CheckRun],
    statuses: Sequence[CommitStatus],
    patterns: CompiledPatterns,
    current_job_name: str,
) -> list[SummaryRow]:
    """Check runs first, then statuses. Statuses never stand for the current job."""
    rows: list[SummaryRow] = []
    for run in check_runs:
        row = classify(run, patterns, current_job_name)
        if row is not None:
            rows.append(row)
    for status in statuses:
        rows.append(classify_status(status, patterns))
    return rows
