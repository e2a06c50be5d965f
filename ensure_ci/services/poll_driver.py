"""Bounded wait / fetch / decide loop around a CheckReport.

INIT -> (immediate fetch on a re-run attempt) -> WAITING -> FETCHING ->
DECIDING -> WAITING | TERMINAL

The budget is a retry count times a fixed delay. ``deadline_seconds`` adds
an optional wall-clock cap on top of it.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from ensure_ci.services.check_report import CheckReport

log = logging.getLogger(__name__)

CHECKS_FAILED_MESSAGE = "❌ Some CI checks or statuses failed, please check the summary table."
RETRIES_EXHAUSTED_MESSAGE = "❌ Some checks are still running, but we are not retrying anymore."
DEADLINE_MESSAGE = "❌ Some checks are still running and the deadline of {seconds}s has passed."


class PollState(str, Enum):
    INIT = "init"
    WAITING = "waiting"
    FETCHING = "fetching"
    DECIDING = "deciding"
    TERMINAL = "terminal"


class PollOutcome(str, Enum):
    FAILED = "failed"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"
    DEADLINE = "deadline"


class PollSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    initial_delay_seconds: int = Field(default=5, ge=0)
    polling_interval_seconds: int = Field(default=60, ge=0)
    max_retries: int = Field(default=5, ge=0)
    deadline_seconds: Optional[int] = Field(default=None, ge=0)


class PollResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcome: PollOutcome
    cycles: int
    retries: int
    message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is PollOutcome.CONVERGED


class PollDriver:
    def __init__(
        self,
        report: CheckReport,
        settings: PollSettings,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.report = report
        self.settings = settings
        self._sleep = sleep
        self._clock = clock
        self.state = PollState.INIT
        self.delays: list[int] = []

    def _fetch(self) -> None:
        self.state = PollState.FETCHING
        self.report.fill()
        self.state = PollState.DECIDING

    def run(self, run_attempt: int = 1) -> PollResult:
        started = self._clock()
        settings = self.settings

        if run_attempt > 1:
            log.info("This is the #%s attempt of the workflow, performing an initial check.", run_attempt)
            self._fetch()

        retry = 1
        while self.report.should_retry and retry <= settings.max_retries:
            delay = settings.initial_delay_seconds if retry == 1 else settings.polling_interval_seconds
            if settings.deadline_seconds is not None and self._clock() - started + delay > settings.deadline_seconds:
                return self._finish(
                    PollOutcome.DEADLINE,
                    retry - 1,
                    DEADLINE_MESSAGE.format(seconds=settings.deadline_seconds),
                )
            self.state = PollState.WAITING
            log.info("Waiting %ss (%s retries left).", delay, settings.max_retries - retry + 1)
            self.delays.append(delay)
            self._sleep(delay)
            self._fetch()
            retry += 1

        if self.report.contains_failure:
            return self._finish(PollOutcome.FAILED, retry - 1, CHECKS_FAILED_MESSAGE)
        if self.report.should_retry:
            if self.report.decision is not None and not self.report.decision.current_job_found:
                log.warning(
                    "The current job %r was never reported; check that the job name matches its check run.",
                    self.report.current_job_name,
                )
            return self._finish(PollOutcome.EXHAUSTED, retry - 1, RETRIES_EXHAUSTED_MESSAGE)
        return self._finish(PollOutcome.CONVERGED, retry - 1, None)

    def _finish(self, outcome: PollOutcome, retries: int, message: str | None) -> PollResult:
        self.state = PollState.TERMINAL
        return PollResult(outcome=outcome, cycles=self.report.cycles, retries=retries, message=message)
