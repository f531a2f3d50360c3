"""Collects per-item outcomes into the final BatchReport."""

from collections import Counter
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from branchguard.domain.models.report import BatchReport, ReportSummary, RunMetadata
from branchguard.domain.models.work import ExecutionOutcome, OutcomeStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportAggregator:
    """Tallies outcomes and stamps the report. No side effects."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or _utcnow

    def collect(self, outcomes: Iterable[ExecutionOutcome], metadata: RunMetadata) -> BatchReport:
        """Builds the report, preserving the order of ``outcomes``.

        Args:
            outcomes: One outcome per work item, in input order.
            metadata: Description of the run (owner, dry-run flag, checks).

        Returns:
            The immutable report. Its summary always adds up to ``len(details)``.
        """
        details = tuple(outcomes)
        counts = Counter(outcome.status for outcome in details)
        summary = ReportSummary(
            updated=counts[OutcomeStatus.UPDATED],
            simulated=counts[OutcomeStatus.SIMULATED],
            skipped=counts[OutcomeStatus.SKIPPED],
            errored=counts[OutcomeStatus.ERRORED],
        )
        return BatchReport(
            generated_at=self._clock(),
            metadata=metadata,
            summary=summary,
            details=details,
        )
