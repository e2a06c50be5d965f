"""Check run, commit status and summary row models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


RowSource = Literal["check", "status"]


def _lift_app_id(data: Any) -> Any:
    # GitHub nests the owning application; only its id matters for identity.
    if isinstance(data, dict) and "app_id" not in data:
        app = data.get("app")
        if isinstance(app, dict):
            return {**data, "app_id": app.get("id")}
    return data


class CheckSuite(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    url: Optional[str] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None
    latest_check_runs_count: int = Field(default=0, ge=0)
    app_id: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _app(cls, data: Any) -> Any:
        return _lift_app_id(data)


class CheckRun(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    app_id: Optional[int] = None
    status: str = "queued"
    conclusion: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    html_url: Optional[str] = None
    details_url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _app(cls, data: Any) -> Any:
        return _lift_app_id(data)


class CommitStatus(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    context: str
    state: str
    description: Optional[str] = None
    target_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WorkflowRun(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: Optional[str] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None
    run_attempt: int = Field(default=1, ge=1)


class Interpretation(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    STILL_RUNNING = "still_running"
    CURRENT_JOB = "current_job"
    IGNORED = "ignored"


class SummaryRow(BaseModel):
    """One classified check run or commit status. Never mutated after classification."""

    model_config = ConfigDict(frozen=True)

    name: str
    source: RowSource
    status: str
    url: Optional[str] = None
    start: Optional[datetime] = None
    duration: Optional[float] = None
    interpreted: Interpretation


class Outcome(str, Enum):
    FAILED = "failed"
    CONVERGED = "converged"
    PENDING = "pending"


class AggregateDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    contains_failure: bool
    still_running: bool
    should_retry: bool
    current_job_found: bool
    outcome: Outcome
