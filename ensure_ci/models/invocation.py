"""Identity of the running workflow job and the commit it gates."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ensure_ci.errors import ConfigurationError


class InvocationContext(BaseModel):
    """Explicit replacement for the ambient GitHub Actions context."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    sha: str = Field(min_length=1)
    job_name: str = Field(min_length=1)
    run_id: int
    event_name: str = ""
    pr_number: Optional[int] = None
    run_attempt: int = Field(default=1, ge=1)

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    def with_run_attempt(self, run_attempt: int) -> "InvocationContext":
        return self.model_copy(update={"run_attempt": run_attempt})

    @classmethod
    def from_environment(cls, env: Mapping[str, str] | None = None) -> "InvocationContext":
        """Build the context from the variables a GitHub Actions runner exports.

        Pull request events gate the PR head commit, not the merge commit in
        ``GITHUB_SHA``.
        """
        env = os.environ if env is None else env
        repository = (env.get("GITHUB_REPOSITORY") or "").strip()
        if "/" not in repository:
            raise ConfigurationError("GITHUB_REPOSITORY must be set to 'owner/repo'.")
        owner, repo = repository.split("/", 1)

        job_name = (env.get("GITHUB_JOB") or "").strip()
        if not job_name:
            raise ConfigurationError("GITHUB_JOB must be set to the current job id.")

        raw_run_id = (env.get("GITHUB_RUN_ID") or "").strip()
        try:
            run_id = int(raw_run_id)
        except ValueError:
            raise ConfigurationError(f"GITHUB_RUN_ID must be an integer, got {raw_run_id!r}.") from None

        payload = _read_event_payload(env.get("GITHUB_EVENT_PATH"))
        pull_request = payload.get("pull_request") if isinstance(payload.get("pull_request"), dict) else None

        sha = ""
        pr_number: int | None = None
        if pull_request:
            head = pull_request.get("head") if isinstance(pull_request.get("head"), dict) else {}
            sha = str(head.get("sha") or "")
            number = pull_request.get("number")
            pr_number = number if isinstance(number, int) else None
        if not sha:
            sha = (env.get("GITHUB_SHA") or "").strip()
        if not sha:
            raise ConfigurationError("Unable to determine the commit sha (GITHUB_SHA is empty).")

        return cls(
            owner=owner,
            repo=repo,
            sha=sha,
            job_name=job_name,
            run_id=run_id,
            event_name=(env.get("GITHUB_EVENT_NAME") or "").strip(),
            pr_number=pr_number,
        )


def _read_event_payload(path: str | None) -> dict[str, Any]:
    if not path:
        return {}
    event_file = Path(path)
    if not event_file.is_file():
        return {}
    try:
        data = json.loads(event_file.read_text(encoding="utf-8") or "{}")
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Event payload at {path} is not valid JSON: {exc}") from exc
    return data if isinstance(data, dict) else {}
