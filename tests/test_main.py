"""End-to-end runs of the gate against a mocked GitHub API."""

from __future__ import annotations

import io
import json
import logging
from pathlib import Path
from typing import Any

import pytest
import respx
from httpx import Response

from ensure_ci.main import EXIT_CONFIGURATION_ERROR, run
from ensure_ci.services.failure_signal import FailureSignal
from ensure_ci.services.poll_driver import CHECKS_FAILED_MESSAGE, RETRIES_EXHAUSTED_MESSAGE
from tests.payloads import check_run_payload, check_suite_payload, commit_status_payload

REPO_API = "https://api.github.com/repos/octo-org/example-repo"
SHA = "abc123def456"


class MockGitHub:
    def __init__(self, router: respx.MockRouter) -> None:
        self.router = router

    def add_action_run(self, run_attempt: int = 1) -> "MockGitHub":
        self.router.get(f"{REPO_API}/actions/runs/123").mock(
            return_value=Response(200, json={"id": 123, "run_attempt": run_attempt})
        )
        return self

    def add_check_suite(self) -> "MockGitHub":
        self.router.get(f"{REPO_API}/commits/{SHA}/check-suites").mock(
            return_value=Response(
                200,
                json={
                    "total_count": 1,
                    "check_suites": [check_suite_payload(), check_suite_payload(id=666, latest_check_runs_count=0)],
                },
            )
        )
        return self

    def add_check_runs(self, *runs: dict[str, Any]) -> "MockGitHub":
        self.router.get(f"{REPO_API}/check-suites/1234567890/check-runs").mock(
            return_value=Response(200, json={"total_count": len(runs), "check_runs": list(runs)})
        )
        return self

    def add_check_run(self) -> "MockGitHub":
        return self.add_check_runs(
            check_run_payload(),  # current job
            check_run_payload(name="${{ not interpolated }}", conclusion="failure"),
            check_run_payload(id=1, name="some-job", conclusion="failure"),
            check_run_payload(id=2, name="some-job", conclusion="success"),
            check_run_payload(name="ignored-job", conclusion="failure"),
        )

    def add_failed_check_run(self) -> "MockGitHub":
        return self.add_check_runs(
            check_run_payload(),  # current job
            check_run_payload(name="${{ not interpolated }}", conclusion="failure"),
            check_run_payload(id=1, name="failed-job", conclusion="failure"),
            check_run_payload(name="ignored-job", conclusion="failure"),
        )

    def add_statuses(self, *statuses: dict[str, Any]) -> "MockGitHub":
        self.router.get(f"{REPO_API}/commits/{SHA}/status").mock(
            return_value=Response(200, json={"statuses": list(statuses), "total_count": len(statuses)})
        )
        return self


@pytest.fixture
def github():
    with respx.mock(assert_all_called=False) as router:
        yield MockGitHub(router)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def actions_env(tmp_path: Path):
    def _env(pull_request: bool = True, **inputs: str) -> dict[str, str]:
        payload = {"pull_request": {"number": 42, "head": {"sha": SHA}}} if pull_request else {}
        event = tmp_path / "event.json"
        event.write_text(json.dumps(payload), encoding="utf-8")
        env = {
            "GITHUB_REPOSITORY": "octo-org/example-repo",
            "GITHUB_JOB": "ensure-ci-success",
            "GITHUB_RUN_ID": "123",
            "GITHUB_SHA": SHA,
            "GITHUB_EVENT_PATH": str(event),
            "GITHUB_STEP_SUMMARY": str(tmp_path / "summary.md"),
            "INPUT_GITHUB-TOKEN": "Not a token",
        }
        for name, value in inputs.items():
            env[f"INPUT_{name.replace('_', '-').upper()}"] = value
        return env

    return _env


def _signal() -> FailureSignal:
    return FailureSignal(stream=io.StringIO())


def test_succeeds_with_a_generic_scenario(github, actions_env, sleeps, caplog, tmp_path: Path) -> None:
    github.add_action_run().add_check_suite().add_check_run().add_statuses()
    signal = _signal()

    with caplog.at_level(logging.DEBUG, logger="ensure_ci"):
        code = run([], actions_env(ignored_name_patterns="ignored-job"), sleep=sleeps.append, signal=signal)

    assert code == 0
    assert signal.failed is False
    assert sleeps == [5]
    assert f"Checking CI statuses for commit: {SHA} on PR #42" in caplog.text
    assert (
        "Check suite 666 has no check runs (https://api.github.com/repos/github/hello-world/check-suites/5)"
        in caplog.text
    )
    summary = (tmp_path / "summary.md").read_text(encoding="utf-8")
    assert "| Check Name | Source |" in summary
    assert "1 successful, 1 ignored" in summary


def test_succeeds_with_a_push_event(github, actions_env, sleeps, caplog) -> None:
    github.add_action_run().add_check_suite().add_check_run().add_statuses()

    with caplog.at_level(logging.INFO, logger="ensure_ci"):
        code = run([], actions_env(pull_request=False, ignored_name_patterns="ignored-job"), sleep=sleeps.append, signal=_signal())

    assert code == 0
    assert f"Checking CI statuses for commit: {SHA} on push event" in caplog.text


def test_does_not_sleep_for_a_job_retry(github, actions_env, sleeps) -> None:
    github.add_action_run(run_attempt=2).add_check_suite().add_check_run().add_statuses()

    code = run([], actions_env(ignored_name_patterns="ignored-job"), sleep=sleeps.append, signal=_signal())

    assert code == 0
    assert sleeps == []


def test_fails_if_there_is_a_failure(github, actions_env, sleeps) -> None:
    github.add_action_run().add_check_suite().add_failed_check_run().add_statuses()
    stream = io.StringIO()
    signal = FailureSignal(stream=stream)

    code = run([], actions_env(), sleep=sleeps.append, signal=signal)

    assert code == 1
    assert signal.message == CHECKS_FAILED_MESSAGE
    assert stream.getvalue().startswith("::error::")


def test_ignore_patterns_cover_check_runs_and_statuses(github, actions_env, sleeps) -> None:
    github.add_action_run().add_check_suite().add_failed_check_run().add_statuses(
        commit_status_payload(context="failed-status", state="failure"),
        commit_status_payload(context="good-status", state="success"),
    )
    signal = _signal()

    code = run(
        [],
        actions_env(ignored_name_patterns="ignored-job\nfailed-job\nfailed-status"),
        sleep=sleeps.append,
        signal=signal,
    )

    assert code == 0
    assert signal.failed is False


def test_gives_up_when_checks_never_finish(github, actions_env, sleeps) -> None:
    github.add_action_run().add_check_suite().add_check_runs(
        check_run_payload(),
        check_run_payload(id=9, name="slow-job", status="in_progress", conclusion=None, completed_at=None),
    ).add_statuses()
    signal = _signal()

    code = run([], actions_env(max_retries="3", polling_interval="30"), sleep=sleeps.append, signal=signal)

    assert code == 1
    assert signal.message == RETRIES_EXHAUSTED_MESSAGE
    assert sleeps == [5, 30, 30]


def test_pending_status_keeps_polling(github, actions_env, sleeps) -> None:
    github.add_action_run().add_check_suite().add_check_runs(check_run_payload()).add_statuses(
        commit_status_payload(context="ci/external", state="pending")
    )

    code = run([], actions_env(max_retries="2"), sleep=sleeps.append, signal=_signal())

    assert code == 1
    assert len(sleeps) == 2


def test_json_output(github, actions_env, sleeps, capsys) -> None:
    github.add_action_run().add_check_suite().add_check_runs(check_run_payload()).add_statuses()

    code = run(["--json"], actions_env(), sleep=sleeps.append, signal=_signal())

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["outcome"] == "converged"
    assert payload["rows"][0]["interpreted"] == "current_job"


def test_missing_token_exits_with_configuration_error(actions_env) -> None:
    env = actions_env()
    env.pop("INPUT_GITHUB-TOKEN")
    signal = _signal()

    code = run([], env, sleep=lambda _s: None, signal=signal)

    assert code == EXIT_CONFIGURATION_ERROR
    assert "github-token" in (signal.message or "")


def test_invalid_ignore_pattern_exits_with_configuration_error(github, actions_env) -> None:
    github.add_action_run()

    code = run([], actions_env(ignored_name_patterns="bad-("), sleep=lambda _s: None, signal=_signal())

    assert code == EXIT_CONFIGURATION_ERROR


def test_api_error_is_fatal(github, actions_env, sleeps) -> None:
    github.add_action_run()
    github.router.get(f"{REPO_API}/commits/{SHA}/check-suites").mock(return_value=Response(502, text="bad gateway"))
    signal = _signal()

    code = run([], actions_env(), sleep=sleeps.append, signal=signal)

    assert code == 1
    assert "502" in (signal.message or "")
    assert sleeps == [5]


def test_non_json_reply_is_reported_as_a_failure(github, actions_env, sleeps) -> None:
    github.add_action_run()
    github.router.get(f"{REPO_API}/commits/{SHA}/check-suites").mock(
        return_value=Response(200, text="<html>upstream error</html>")
    )
    stream = io.StringIO()
    signal = FailureSignal(stream=stream)

    code = run([], actions_env(), sleep=sleeps.append, signal=signal)

    assert code == 1
    assert "non-JSON" in (signal.message or "")
    assert stream.getvalue().startswith("::error::")


def test_malformed_check_run_is_reported_as_a_failure(github, actions_env, sleeps) -> None:
    nameless = check_run_payload(id=5)
    del nameless["name"]
    github.add_action_run().add_check_suite().add_check_runs(check_run_payload(), nameless).add_statuses()
    signal = _signal()

    code = run([], actions_env(), sleep=sleeps.append, signal=signal)

    assert code == 1
    assert "Unexpected CheckRun payload" in (signal.message or "")


def test_unexpected_error_still_signals_failure(github, actions_env, sleeps, monkeypatch, caplog) -> None:
    def _explode(*_args: Any, **_kwargs: Any) -> None:
        raise RuntimeError("disk full")

    monkeypatch.setattr("ensure_ci.main.evaluate", _explode)
    signal = _signal()

    with caplog.at_level(logging.ERROR, logger="ensure_ci"):
        code = run([], actions_env(), sleep=sleeps.append, signal=signal)

    assert code == 1
    assert signal.message == "Unexpected error: disk full"
    assert "Gate aborted by an unexpected error" in caplog.text
