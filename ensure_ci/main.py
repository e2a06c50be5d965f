"""Command line entry point: ``ensure-ci-success``."""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from typing import Callable, Mapping, Optional, Sequence

from ensure_ci.config import GateSettings, load_settings
from ensure_ci.errors import ConfigurationError, EnsureCIError
from ensure_ci.models.invocation import InvocationContext
from ensure_ci.services.check_report import CheckReport
from ensure_ci.services.classifier import compile_ignore_patterns
from ensure_ci.services.collector import Collector
from ensure_ci.services.failure_signal import FailureSignal
from ensure_ci.services.github_client import GitHubClient
from ensure_ci.services.poll_driver import PollDriver, PollResult
from ensure_ci.services.summary_renderer import render_summary, write_summary

logger = logging.getLogger("ensure_ci")
log = logging.getLogger(__name__)

EXIT_CONFIGURATION_ERROR = 2


def configure_logging(debug: bool = False) -> None:
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
        logger.addHandler(handler)
    logger.propagate = False
    logger.setLevel(logging.DEBUG if debug else logging.INFO)


def _describe_target(context: InvocationContext) -> str:
    if context.pr_number is not None:
        return f"Checking CI statuses for commit: {context.sha} on PR #{context.pr_number}"
    return f"Checking CI statuses for commit: {context.sha} on push event"


def _json_payload(context: InvocationContext, report: CheckReport, result: PollResult) -> dict:
    return {
        "repository": context.repository,
        "sha": context.sha,
        "outcome": result.outcome.value,
        "message": result.message,
        "cycles": result.cycles,
        "retries": result.retries,
        "contains_failure": report.contains_failure,
        "still_running": report.still_running,
        "rows": [row.model_dump(mode="json") for row in report.items],
    }


def evaluate(
    settings: GateSettings,
    context: InvocationContext,
    client: GitHubClient,
    signal: FailureSignal,
    env: Mapping[str, str],
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    """Poll until the commit's CI settles, write the summary, signal failure."""
    patterns = compile_ignore_patterns(settings.ignored_name_patterns)
    workflow_run = client.get_workflow_run(context.owner, context.repo, context.run_id)
    context = context.with_run_attempt(workflow_run.run_attempt)

    report = CheckReport(
        Collector(client, context.owner, context.repo, context.sha),
        patterns,
        context.job_name,
    )
    driver = PollDriver(report, settings.poll_settings(), sleep=sleep)
    result = driver.run(context.run_attempt)

    if result.message:
        signal.fail(result.message)

    write_summary(render_summary(report.items, settings.full_details_summary), env)
    if settings.json_output:
        print(json.dumps(_json_payload(context, report, result), indent=2, sort_keys=True))
    return result


def run(
    argv: Optional[Sequence[str]] = None,
    env: Optional[Mapping[str, str]] = None,
    sleep: Callable[[float], None] = time.sleep,
    signal: Optional[FailureSignal] = None,
) -> int:
    env = os.environ if env is None else env
    signal = signal or FailureSignal()

    try:
        settings = load_settings(env, argv)
        if settings.debug:
            logger.setLevel(logging.DEBUG)
        context = InvocationContext.from_environment(env)
    except ConfigurationError as exc:
        signal.fail(str(exc))
        return EXIT_CONFIGURATION_ERROR

    log.info("%s", _describe_target(context))
    try:
        with GitHubClient(token=settings.github_token, base_url=settings.api_url) as client:
            evaluate(settings, context, client, signal, env, sleep=sleep)
    except ConfigurationError as exc:
        signal.fail(str(exc))
        return EXIT_CONFIGURATION_ERROR
    except EnsureCIError as exc:
        log.exception("Gate aborted")
        signal.fail(str(exc))
    except Exception as exc:
        log.exception("Gate aborted by an unexpected error")
        signal.fail(f"Unexpected error: {exc}")
    return signal.exit_code


def main() -> int:
    argv = sys.argv[1:]
    configure_logging("--debug" in argv or os.getenv("RUNNER_DEBUG", "").strip() == "1")
    return run(argv)


if __name__ == "__main__":
    raise SystemExit(main())
