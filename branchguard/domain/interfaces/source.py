"""Interface for listing the work items of a run."""

import abc
from typing import List

from branchguard.domain.models.common import OwnerName
from branchguard.domain.models.work import WorkItem


class WorkItemSource(abc.ABC):
    """Produces the ordered sequence of work items for an owner."""

    @abc.abstractmethod
    async def list(self, owner: OwnerName) -> List[WorkItem]:
        """Lists work items in a stable order.

        Args:
            owner: The organization or user whose resources are processed.

        Returns:
            The ordered work items.

        Raises:
            SourceUnavailableError: If the upstream listing call fails.
        """
        pass
