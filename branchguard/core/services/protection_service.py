"""Core service that runs one bulk branch-protection change end to end.

Lists the work items, drives them through the BatchScheduler (each remote
call wrapped by the RetryPolicy), classifies every settled item and
aggregates the outcomes into a BatchReport, which is optionally persisted.
"""

import asyncio
import functools
import logging
from typing import Any, Callable, List, Optional, Sequence

from branchguard.core.services.batch_scheduler import BatchScheduler
from branchguard.core.services.outcome_classifier import OutcomeClassifier, target_label
from branchguard.core.services.report_aggregator import ReportAggregator
from branchguard.domain.errors import BranchGuardError, SourceUnavailableError
from branchguard.domain.interfaces.executor import MutationExecutor
from branchguard.domain.interfaces.report_sink import ReportSink
from branchguard.domain.interfaces.source import WorkItemSource
from branchguard.domain.models.common import DEFAULT_CHECKS, OwnerName
from branchguard.domain.models.report import BatchReport, RunMetadata
from branchguard.domain.models.work import ExecutionOutcome, MutationOptions, OutcomeStatus, WorkItem
from branchguard.infrastructure.resilience.retry_policy import RetryPolicy
from branchguard.infrastructure.resilience.sanitizer import summarize_error

DEFAULT_THROTTLE_DELAY_S = 1.0


class ProtectionService:
    """Orchestrates a single run over all work items of an owner."""

    def __init__(
        self,
        source: WorkItemSource,
        executor: MutationExecutor,
        scheduler: BatchScheduler,
        retry_policy: RetryPolicy,
        classifier: Optional[OutcomeClassifier] = None,
        aggregator: Optional[ReportAggregator] = None,
        report_sink: Optional[ReportSink] = None,
        throttle_delay: float = DEFAULT_THROTTLE_DELAY_S,
        sleep: Callable[[float], Any] = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        self.source = source
        self.executor = executor
        self.scheduler = scheduler
        self.retry_policy = retry_policy
        self.classifier = classifier or OutcomeClassifier()
        self.aggregator = aggregator or ReportAggregator()
        self.report_sink = report_sink
        self.throttle_delay = throttle_delay
        self._sleep = sleep
        self.logger = logger or logging.getLogger(__name__)

    async def run(
        self,
        metadata: RunMetadata,
        report_destination: Optional[str] = None,
    ) -> BatchReport:
        """Runs the change for ``metadata.owner`` and returns the report.

        Args:
            metadata: Owner, dry-run flag and custom checks of this run.
            report_destination: Where the report sink should write, if any.

        Returns:
            The complete report, even when every item errored.

        Raises:
            SourceUnavailableError: If the work items cannot be listed.
            InvalidConfigurationError: If the listed items are malformed.
        """
        items = await self.list_items(OwnerName(metadata.owner))
        outcomes = await self.process_items(items, metadata)
        report = self.aggregator.collect(outcomes, metadata)

        self.logger.info(
            f"Process completed. {report.success_count} of {report.total_items} item(s) processed successfully "
            f"({report.summary.updated} updated, {report.summary.simulated} simulated, "
            f"{report.summary.skipped} skipped, {report.summary.errored} errored)."
        )

        if report_destination and self.report_sink is not None:
            try:
                self.report_sink.persist(report, report_destination)
                self.logger.info(f"Report saved to {report_destination}")
            except OSError as e:
                # The run itself is complete; only the copy on disk is missing.
                self.logger.error(f"Failed to write report to {report_destination}: {summarize_error(e)}")
        return report

    async def list_items(self, owner: OwnerName) -> List[WorkItem]:
        try:
            items = await self.source.list(owner)
        except SourceUnavailableError:
            raise
        except BranchGuardError as e:
            raise SourceUnavailableError(f"Failed to list work items for {owner}: {summarize_error(e)}", status=e.status) from e
        if not items:
            self.logger.warning(f"No repositories to process for {owner}")
        else:
            self.logger.info(f"Retrieved {len(items)} item(s) to process for {owner}")
        return list(items)

    async def process_items(self, items: Sequence[WorkItem], metadata: RunMetadata) -> List[ExecutionOutcome]:
        options = MutationOptions(checks_to_remove=tuple(metadata.custom_checks or DEFAULT_CHECKS))
        dry_run = metadata.dry_run

        async def process(item: WorkItem, index: int, total: int) -> ExecutionOutcome:
            return await self.process_item(item, index, total, options, dry_run)

        return await self.scheduler.run(items, process)

    async def process_item(
        self,
        item: WorkItem,
        index: int,
        total: int,
        options: MutationOptions,
        dry_run: bool,
    ) -> ExecutionOutcome:
        """Processes one item; per-item errors are contained in the outcome."""
        if self.throttle_delay > 0:
            await self._sleep(self.throttle_delay)

        position = f"[{index + 1}/{total}]"
        where = f"{item.display_name}/{target_label(item)}"
        self.logger.debug(f"{position} Checking branch protection for {where}...")
        mutate = self.executor.simulate if dry_run else self.executor.apply
        operation = functools.partial(mutate, item, options)

        try:
            result = await self.retry_policy.execute(operation, name=where)
        except Exception as e:
            outcome = self.classifier.classify(item, dry_run=dry_run, error=e)
        else:
            if not dry_run and not result.applied:
                self.logger.debug(f"{position} Protection for {where} left unchanged")
            outcome = self.classifier.classify(item, dry_run=dry_run, result=result)

        self._log_outcome(position, item, outcome)
        return outcome

    def _log_outcome(self, position: str, item: WorkItem, outcome: ExecutionOutcome) -> None:
        where = f"{item.display_name}/{outcome.target_label}"
        if outcome.status is OutcomeStatus.SKIPPED:
            self.logger.info(f"{position} No branch protection found for {where}")
        elif outcome.status is OutcomeStatus.SIMULATED:
            if outcome.changes:
                self.logger.info(f"[DRY RUN] {position} Would remove {', '.join(outcome.changes)} from: {where}")
            else:
                self.logger.info(f"[DRY RUN] {position} No checks to remove from: {where}")
        elif outcome.status is OutcomeStatus.UPDATED:
            if outcome.changes:
                self.logger.info(f"{position} Removed {', '.join(outcome.changes)} from: {where}")
            else:
                self.logger.info(f"{position} No checks to remove from: {where}")
        else:
            self.logger.error(f"{position} Failed to update {where}: {outcome.error}")
