"""Fold classified rows into one go / no-go decision."""

from __future__ import annotations

import logging
from typing import Iterable

from ensure_ci.models.checks import AggregateDecision, Interpretation, Outcome, SummaryRow

log = logging.getLogger(__name__)


def aggregate(rows: Iterable[SummaryRow], current_job_name: str) -> AggregateDecision:
    """Decide from one cycle's rows only; nothing carries over between calls.

    The current job not appearing yet is treated as "still running": its own
    check run often shows up in the API after the job has started.
    """
    contains_failure = False
    still_running = False
    current_job_found = False

    for row in rows:
        if row.interpreted is Interpretation.CURRENT_JOB:
            log.info("* Skipping current running check: %s", row.name)
            current_job_found = True
        elif row.interpreted is Interpretation.IGNORED:
            log.info("* Ignoring %s (matched ignore pattern)", row.name)
        elif row.interpreted is Interpretation.STILL_RUNNING:
            log.info("* %s is still running (state: %s)", row.name, row.status)
            still_running = True
        elif row.interpreted is Interpretation.FAILURE:
            log.info("* Check failed: %s (status: %s)", row.name, row.status)
            contains_failure = True

    if not current_job_found:
        log.warning(
            "The current job (%s) has not been reported yet, likely check runs API lag.",
            current_job_name,
        )
        still_running = True

    if contains_failure:
        outcome = Outcome.FAILED
    elif not still_running:
        outcome = Outcome.CONVERGED
    else:
        outcome = Outcome.PENDING

    return AggregateDecision(
        contains_failure=contains_failure,
        still_running=still_running,
        should_retry=outcome is Outcome.PENDING,
        current_job_found=current_job_found,
        outcome=outcome,
    )
