"""Keep only the latest check run per (app id, name).

There is no API call for "latest check run of a ref": reruns add new runs to
new or existing suites, so the highest id wins.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ensure_ci.models.checks import CheckRun
from ensure_ci.services.classifier import has_unresolved_template

CheckRunKey = tuple[Optional[int], str]


def check_run_key(run: CheckRun) -> CheckRunKey:
    return (run.app_id, run.name)


class CheckRunIndex:
    """Single-pass map fed page by page, suite by suite."""

    def __init__(self) -> None:
        self._runs: dict[CheckRunKey, CheckRun] = {}
        self.duplicates = 0
        self.skipped = 0

    def add(self, run: CheckRun) -> bool:
        """Offer one run; return True when it is now the authoritative one for its key."""
        if has_unresolved_template(run.name):
            self.skipped += 1
            return False
        key = check_run_key(run)
        existing = self._runs.get(key)
        if existing is None:
            self._runs[key] = run
            return True
        self.duplicates += 1
        if run.id > existing.id:
            self._runs[key] = run
            return True
        return False

    def runs(self) -> list[CheckRun]:
        return list(self._runs.values())

    def __len__(self) -> int:
        return len(self._runs)

    def __contains__(self, key: object) -> bool:
        return key in self._runs


def latest_check_runs(runs: Iterable[CheckRun]) -> list[CheckRun]:
    index = CheckRunIndex()
    for run in runs:
        index.add(run)
    return index.runs()
