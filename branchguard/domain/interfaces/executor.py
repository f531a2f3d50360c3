"""Interface for the per-item mutation."""

import abc

from branchguard.domain.models.work import MutationOptions, MutationResult, WorkItem


class MutationExecutor(abc.ABC):
    """Applies (or simulates) the configuration change on one item.

    Implementations raise tagged errors from ``branchguard.domain.errors``;
    ``NotFoundError`` signals that the item has nothing to mutate.
    """

    @abc.abstractmethod
    async def apply(self, item: WorkItem, options: MutationOptions) -> MutationResult:
        """Applies the change and returns the checks removed and remaining."""
        pass

    @abc.abstractmethod
    async def simulate(self, item: WorkItem, options: MutationOptions) -> MutationResult:
        """Computes the change without any remote write."""
        pass
