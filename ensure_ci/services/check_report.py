"""Per-invocation report: rows and flags rebuilt from scratch on every fill."""

from __future__ import annotations

import logging
from typing import Optional

from ensure_ci.models.checks import AggregateDecision, CheckRun, Interpretation, SummaryRow
from ensure_ci.services import aggregator, classifier
from ensure_ci.services.classifier import CompiledPatterns
from ensure_ci.services.collector import CollectedRecords, Collector

log = logging.getLogger(__name__)


class CheckReport:
    def __init__(
        self,
        collector: Collector,
        ignored_name_patterns: CompiledPatterns,
        current_job_name: str,
    ) -> None:
        self.collector = collector
        self.ignored_name_patterns = ignored_name_patterns
        self.current_job_name = current_job_name

        self.items: list[SummaryRow] = []
        self.decision: Optional[AggregateDecision] = None
        self.contains_failure = False
        self.still_running = False
        self.should_retry = True
        self.cycles = 0

    @property
    def owner(self) -> str:
        return self.collector.owner

    @property
    def repo(self) -> str:
        return self.collector.repo

    @property
    def sha(self) -> str:
        return self.collector.sha

    def fill(self) -> AggregateDecision:
        """Run one fetch-classify-aggregate cycle."""
        records = self.collector.collect()
        self.cycles += 1
        return self.apply(records)

    def apply(self, records: CollectedRecords) -> AggregateDecision:
        self.items = classifier.classify_all(
            records.check_runs,
            records.statuses,
            self.ignored_name_patterns,
            self.current_job_name,
        )
        failed_names = {row.name for row in self.items if row.interpreted is Interpretation.FAILURE}
        for record in [*records.check_runs, *records.statuses]:
            name = record.name if isinstance(record, CheckRun) else record.context
            if name not in failed_names:
                continue
            value = classifier.unrecognized_value(record)
            if value is not None:
                log.warning("Unrecognized result %r for %s, treating it as a failure", value, name)
        return self.compute()

    def compute(self) -> AggregateDecision:
        decision = aggregator.aggregate(self.items, self.current_job_name)
        self.decision = decision
        self.contains_failure = decision.contains_failure
        self.still_running = decision.still_running
        self.should_retry = decision.should_retry

        if decision.contains_failure:
            log.info("Some CI checks or statuses failed")
        elif not decision.still_running:
            log.info("All CI checks and statuses passed or were skipped.")
        else:
            log.info("Some checks are still running")
        return decision
