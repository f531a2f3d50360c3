"""Lists the branches to process as WorkItems (the WorkItemSource port)."""

import logging
from typing import List, Optional

from branchguard.domain.errors import BranchGuardError, NotFoundError, SourceUnavailableError
from branchguard.domain.interfaces.source import WorkItemSource
from branchguard.domain.models.common import BranchName, ItemId, OwnerName, RepositoryName
from branchguard.domain.models.work import BranchTarget, WorkItem
from branchguard.infrastructure.github.client import GitHubClient, Repository
from branchguard.infrastructure.resilience.retry_policy import RetryPolicy
from branchguard.infrastructure.resilience.sanitizer import summarize_error

logger = logging.getLogger(__name__)


class RepositorySource(WorkItemSource):
    """One work item per repository: its default branch, or ``branch`` if given."""

    def __init__(
        self,
        client: GitHubClient,
        repo: Optional[str] = None,
        branch: Optional[str] = None,
        include_archived: bool = True,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.client = client
        self.repo = repo
        self.branch = branch
        self.include_archived = include_archived
        self.retry_policy = retry_policy

    async def list(self, owner: OwnerName) -> List[WorkItem]:
        repos = await self._fetch(owner)
        items = []
        for repo in repos:
            if not repo.name or not (self.branch or repo.default_branch):
                logger.warning(f"Skipping repository with missing name or default branch: {repo}")
                continue
            if repo.archived and not self.include_archived:
                logger.info(f"Skipping archived repository {repo.name}")
                continue
            items.append(self._to_item(owner, repo))
        return items

    async def _fetch(self, owner: OwnerName) -> List[Repository]:
        if self.repo:
            try:
                repo = await self._call(self.client.get_repository, owner, self.repo)
            except NotFoundError:
                logger.warning(f"Repository {self.repo} not found.")
                return []
            except BranchGuardError as e:
                raise SourceUnavailableError(f"Failed to get repository {owner}/{self.repo}: {summarize_error(e)}", status=e.status) from e
            return [repo]
        try:
            return await self._call(self.client.list_repositories, owner)
        except BranchGuardError as e:
            raise SourceUnavailableError(f"Failed to list repositories for {owner}: {summarize_error(e)}", status=e.status) from e

    async def _call(self, func, *args):
        if self.retry_policy is None:
            return await func(*args)
        return await self.retry_policy.execute(lambda: func(*args), name=func.__name__)

    def _to_item(self, owner: OwnerName, repo: Repository) -> WorkItem:
        branch = BranchName(self.branch or repo.default_branch)
        return WorkItem(
            id=ItemId(f"{owner}/{repo.name}@{branch}"),
            display_name=repo.name,
            target=BranchTarget(owner=owner, repository=RepositoryName(repo.name), branch=branch),
        )
