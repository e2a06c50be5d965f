"""Fetch every check run and commit status of one commit."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ensure_ci.models.checks import CheckRun, CommitStatus
from ensure_ci.services.deduplicator import CheckRunIndex
from ensure_ci.services.github_client import GitHubClient

log = logging.getLogger(__name__)


@dataclass
class CollectedRecords:
    check_runs: list[CheckRun] = field(default_factory=list)
    statuses: list[CommitStatus] = field(default_factory=list)
    suite_count: int = 0
    duplicate_count: int = 0
    skipped_count: int = 0


class Collector:
    def __init__(self, client: GitHubClient, owner: str, repo: str, sha: str) -> None:
        self.client = client
        self.owner = owner
        self.repo = repo
        self.sha = sha

    def collect(self) -> CollectedRecords:
        suites = self.client.list_check_suites(self.owner, self.repo, self.sha)
        index = CheckRunIndex()

        for suite in suites:
            if suite.latest_check_runs_count == 0:
                log.debug("Check suite %s has no check runs (%s)", suite.id, suite.url)
                continue
            # Completed suites are listed too: a rerun may live in any of them.
            log.info(
                "Get %s runs for check suite %s (conclusion: %s)",
                suite.latest_check_runs_count,
                suite.url,
                suite.conclusion,
            )
            for run in self.client.iter_check_runs_for_suite(self.owner, self.repo, suite.id):
                duplicates, skipped = index.duplicates, index.skipped
                index.add(run)
                if index.skipped > skipped:
                    log.debug("Skipping check run with uninterpolated name %s", run.html_url or run.name)
                elif index.duplicates > duplicates:
                    log.debug("Duplicate check run %s", run.html_url or run.name)

        check_runs = index.runs()
        log.info("Found %s check runs", len(check_runs))

        statuses = self.client.list_commit_statuses(self.owner, self.repo, self.sha)
        log.info("Found %s commit statuses", len(statuses))

        return CollectedRecords(
            check_runs=check_runs,
            statuses=statuses,
            suite_count=len(suites),
            duplicate_count=index.duplicates,
            skipped_count=index.skipped,
        )
