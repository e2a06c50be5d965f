"""Pytest configuration and record factories shared by the test modules."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tests.payloads import check_run_payload, commit_status_payload  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_github_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    # Runner variables from the host must not leak into config or client defaults.
    for key in ("GITHUB_TOKEN", "GH_TOKEN", "GITHUB_STEP_SUMMARY", "RUNNER_DEBUG"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def make_check_run():
    from ensure_ci.models.checks import CheckRun

    def _make(**kwargs: Any) -> CheckRun:
        return CheckRun.model_validate(check_run_payload(**kwargs))

    return _make


@pytest.fixture
def make_status():
    from ensure_ci.models.checks import CommitStatus

    def _make(**kwargs: Any) -> CommitStatus:
        return CommitStatus.model_validate(commit_status_payload(**kwargs))

    return _make
