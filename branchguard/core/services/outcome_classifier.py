"""Maps the settled result of one work item onto an ExecutionOutcome."""

from typing import Optional

from branchguard.domain.errors import ErrorKind, kind_of
from branchguard.domain.models.work import ExecutionOutcome, MutationResult, OutcomeStatus, WorkItem
from branchguard.infrastructure.resilience.sanitizer import redact, summarize_error

NO_PROTECTION_REASON = "No branch protection found"


class OutcomeClassifier:
    """Pure classifier: the same inputs always yield the same outcome kind.

    Rules, in priority order:
        1. NotFound error       -> skipped (nothing to mutate)
        2. result in dry-run    -> simulated
        3. result               -> updated
        4. anything else        -> errored, with a sanitized error summary
    """

    def classify(
        self,
        item: WorkItem,
        dry_run: bool,
        result: Optional[MutationResult] = None,
        error: Optional[BaseException] = None,
    ) -> ExecutionOutcome:
        label = target_label(item)

        if error is not None and kind_of(error) is ErrorKind.NOT_FOUND:
            return ExecutionOutcome(
                item_id=item.id,
                display_name=item.display_name,
                target_label=label,
                status=OutcomeStatus.SKIPPED,
                reason=redact(getattr(error, "message", None) or NO_PROTECTION_REASON),
            )

        if error is None and result is not None:
            return ExecutionOutcome(
                item_id=item.id,
                display_name=item.display_name,
                target_label=label,
                status=OutcomeStatus.SIMULATED if dry_run else OutcomeStatus.UPDATED,
                changes=tuple(result.changes),
                remaining=tuple(result.remaining),
            )

        if error is None:
            error = RuntimeError("Item produced neither a result nor an error")
        return ExecutionOutcome(
            item_id=item.id,
            display_name=item.display_name,
            target_label=label,
            status=OutcomeStatus.ERRORED,
            error=summarize_error(error),
            error_kind=kind_of(error),
        )


def target_label(item: WorkItem) -> str:
    """Printable label of the item's target, for targets without ``.label``."""
    return getattr(item.target, "label", None) or str(item.target)
