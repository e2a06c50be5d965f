"""Pydantic models."""

from ensure_ci.models.checks import (
    AggregateDecision,
    CheckRun,
    CheckSuite,
    CommitStatus,
    Interpretation,
    Outcome,
    RowSource,
    SummaryRow,
    WorkflowRun,
)
from ensure_ci.models.invocation import InvocationContext

__all__ = [
    "AggregateDecision",
    "CheckRun",
    "CheckSuite",
    "CommitStatus",
    "Interpretation",
    "InvocationContext",
    "Outcome",
    "RowSource",
    "SummaryRow",
    "WorkflowRun",
]
