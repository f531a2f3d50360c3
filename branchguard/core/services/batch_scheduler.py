"""Bounded-concurrency batch scheduling of work items.

Items are cut into contiguous batches of ``concurrency``. All items of a batch
run concurrently; the next batch only starts once every item of the current
one has settled, so at most ``concurrency`` items are ever in flight. The
returned outcomes are in input order regardless of completion timing.
"""

import asyncio
import inspect
import logging
import math
from typing import Any, Callable, List, Optional, Sequence

from branchguard.domain.errors import InvalidConfigurationError, RunCancelledError
from branchguard.domain.events.batch_events import BatchCompleted, BatchStarted, RunCancelled
from branchguard.domain.models.work import ExecutionOutcome, OutcomeStatus, WorkItem
from branchguard.core.services.outcome_classifier import OutcomeClassifier
from branchguard.infrastructure.resilience.sanitizer import summarize_error

DEFAULT_INTER_BATCH_DELAY_S = 2.0

# (item, index, total) -> ExecutionOutcome, or an awaitable of one
ProcessFn = Callable[[WorkItem, int, int], Any]


class BatchScheduler:
    """Runs one bounded batch job to completion."""

    def __init__(
        self,
        concurrency: int,
        inter_batch_delay: float = DEFAULT_INTER_BATCH_DELAY_S,
        sleep: Callable[[float], Any] = asyncio.sleep,
        cancel_event: Optional[asyncio.Event] = None,
        classifier: Optional[OutcomeClassifier] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if not isinstance(concurrency, int) or isinstance(concurrency, bool) or concurrency < 1:
            raise InvalidConfigurationError(f"Concurrency must be a positive integer, got {concurrency!r}")
        if inter_batch_delay < 0:
            raise InvalidConfigurationError(f"Inter-batch delay must not be negative, got {inter_batch_delay!r}")
        self.concurrency = concurrency
        self.inter_batch_delay = inter_batch_delay
        self._sleep = sleep
        self.cancel_event = cancel_event
        self.classifier = classifier or OutcomeClassifier()
        self.logger = logger or logging.getLogger(__name__)

    def batch_count(self, item_count: int) -> int:
        return math.ceil(item_count / self.concurrency)

    async def run(self, items: Sequence[WorkItem], process: ProcessFn) -> List[ExecutionOutcome]:
        """Processes every item and returns one outcome per item, in input order.

        Args:
            items: Ordered work items.
            process: Called as ``process(item, index, total)``; sync or async.

        Returns:
            Outcomes where ``outcomes[i]`` belongs to ``items[i]``.

        Raises:
            InvalidConfigurationError: If an item is malformed. Raised before
                any batch is started.
        """
        items = list(items)
        self._validate(items)
        total = len(items)
        total_batches = self.batch_count(total)
        outcomes: List[ExecutionOutcome] = []

        for batch_index, start in enumerate(range(0, total, self.concurrency)):
            if self.cancel_event is not None and self.cancel_event.is_set():
                remaining = items[start:]
                self.logger.warning(f"Run cancelled. {len(remaining)} item(s) will not be processed.")
                self.logger.debug(f"EVENT: {RunCancelled(remaining_items=len(remaining))}")
                outcomes.extend(self._cancelled(item) for item in remaining)
                break

            batch = items[start:start + self.concurrency]
            batch_number = batch_index + 1
            self.logger.debug(f"EVENT: {BatchStarted(batch_number=batch_number, total_batches=total_batches, size=len(batch))}")

            settled = await asyncio.gather(
                *(self._run_one(process, item, start + offset, total) for offset, item in enumerate(batch))
            )
            outcomes.extend(settled)

            errored = sum(1 for outcome in settled if outcome.status is OutcomeStatus.ERRORED)
            self.logger.debug(f"EVENT: {BatchCompleted(batch_number=batch_number, total_batches=total_batches, errored=errored)}")

            if start + self.concurrency < total:
                self.logger.info(f"Batch {batch_number}/{total_batches} done. Waiting before processing next batch...")
                await self._sleep(self.inter_batch_delay)

        return outcomes

    async def _run_one(self, process: ProcessFn, item: WorkItem, index: int, total: int) -> ExecutionOutcome:
        """Runs one item; any exception is contained and becomes an errored outcome."""
        try:
            outcome = process(item, index, total)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except Exception as e:
            self.logger.error(f"Failed to process {item.display_name}: {summarize_error(e)}")
            return self.classifier.classify(item, dry_run=False, error=e)
        if not isinstance(outcome, ExecutionOutcome):
            error = TypeError(f"process() returned {type(outcome).__name__}, expected ExecutionOutcome")
            self.logger.error(f"Failed to process {item.display_name}: {error}")
            return self.classifier.classify(item, dry_run=False, error=error)
        return outcome

    def _cancelled(self, item: WorkItem) -> ExecutionOutcome:
        return self.classifier.classify(
            item, dry_run=False, error=RunCancelledError("Run cancelled before this item was processed")
        )

    @staticmethod
    def _validate(items: List[WorkItem]) -> None:
        seen = set()
        for position, item in enumerate(items):
            if not isinstance(item, WorkItem):
                raise InvalidConfigurationError(f"Item at position {position} is not a WorkItem: {item!r}")
            if not item.id:
                raise InvalidConfigurationError(f"Item at position {position} has an empty id")
            if item.id in seen:
                raise InvalidConfigurationError(f"Duplicate work item id: {item.id}")
            seen.add(item.id)
