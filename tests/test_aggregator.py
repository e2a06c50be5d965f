from __future__ import annotations

import itertools
import logging

import pytest

from ensure_ci.models.checks import Interpretation, Outcome, SummaryRow
from ensure_ci.services.aggregator import aggregate

CURRENT_JOB = "ensure-ci-success"


def _row(name: str, interpreted: Interpretation, status: str = "completed") -> SummaryRow:
    return SummaryRow(name=name, source="check", status=status, interpreted=interpreted)


def test_converges_when_only_current_job_is_present() -> None:
    decision = aggregate([_row(CURRENT_JOB, Interpretation.CURRENT_JOB)], CURRENT_JOB)

    assert decision.outcome is Outcome.CONVERGED
    assert decision.should_retry is False
    assert decision.contains_failure is False
    assert decision.still_running is False


def test_failure_stops_retrying() -> None:
    rows = [
        _row(CURRENT_JOB, Interpretation.CURRENT_JOB),
        _row("some-job", Interpretation.FAILURE, "failure"),
    ]

    decision = aggregate(rows, CURRENT_JOB)

    assert decision.contains_failure is True
    assert decision.should_retry is False
    assert decision.outcome is Outcome.FAILED


def test_failure_wins_over_running_rows() -> None:
    rows = [
        _row(CURRENT_JOB, Interpretation.CURRENT_JOB),
        _row("build", Interpretation.STILL_RUNNING, "in_progress"),
        _row("lint", Interpretation.FAILURE, "failure"),
    ]

    decision = aggregate(rows, CURRENT_JOB)

    assert decision.outcome is Outcome.FAILED
    assert decision.still_running is True
    assert decision.should_retry is False


def test_missing_current_job_forces_still_running(caplog: pytest.LogCaptureFixture) -> None:
    rows = [_row("build", Interpretation.SUCCESS), _row("lint", Interpretation.IGNORED)]

    with caplog.at_level(logging.WARNING, logger="ensure_ci.services.aggregator"):
        decision = aggregate(rows, CURRENT_JOB)

    assert decision.still_running is True
    assert decision.should_retry is True
    assert decision.current_job_found is False
    assert decision.outcome is Outcome.PENDING
    assert "has not been reported yet" in caplog.text


def test_empty_rows_are_pending() -> None:
    decision = aggregate([], CURRENT_JOB)

    assert decision.outcome is Outcome.PENDING
    assert decision.should_retry is True


def test_ignored_failures_do_not_count() -> None:
    rows = [_row(CURRENT_JOB, Interpretation.CURRENT_JOB), _row("ignored-job", Interpretation.IGNORED, "failure")]

    decision = aggregate(rows, CURRENT_JOB)

    assert decision.contains_failure is False
    assert decision.outcome is Outcome.CONVERGED


def test_aggregation_is_order_independent() -> None:
    rows = [
        _row(CURRENT_JOB, Interpretation.CURRENT_JOB),
        _row("build", Interpretation.SUCCESS),
        _row("deploy", Interpretation.STILL_RUNNING, "queued"),
        _row("docs", Interpretation.IGNORED),
    ]
    expected = aggregate(rows, CURRENT_JOB)

    for permutation in itertools.permutations(rows):
        assert aggregate(list(permutation), CURRENT_JOB) == expected


def test_aggregation_is_idempotent() -> None:
    rows = [_row(CURRENT_JOB, Interpretation.CURRENT_JOB), _row("build", Interpretation.STILL_RUNNING)]

    assert aggregate(rows, CURRENT_JOB) == aggregate(rows, CURRENT_JOB)


def test_accepts_a_single_pass_iterator() -> None:
    rows = iter([_row(CURRENT_JOB, Interpretation.CURRENT_JOB), _row("build", Interpretation.SUCCESS)])

    assert aggregate(rows, CURRENT_JOB).outcome is Outcome.CONVERGED
