"""Thin async client for the parts of the GitHub REST API the tool needs.

Hides the specifics of the HTTP layer and translates failures into tagged
domain errors (see ``errors.py``). No retries happen here; callers wrap
calls in the RetryPolicy.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from branchguard.domain.errors import BranchGuardError, NotFoundError, PermissionDeniedError, RateLimitedError
from branchguard.infrastructure.github.errors import error_from_response, error_from_transport
from branchguard.infrastructure.resilience.sanitizer import summarize_error

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.github.com"
DEFAULT_TIMEOUT_S = 30.0
API_VERSION = "2022-11-28"
PER_PAGE = 100


@dataclass(frozen=True)
class Repository:
    """The fields of a GitHub repository the tool cares about."""
    id: int
    name: str
    owner: str
    url: Optional[str] = None
    private: bool = False
    forked: bool = False
    archived: bool = False
    default_branch: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Repository":
        owner = data.get("owner") or {}
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            owner=owner.get("login"),
            url=data.get("html_url"),
            private=bool(data.get("private")),
            forked=bool(data.get("fork")),
            archived=bool(data.get("archived")),
            default_branch=data.get("default_branch"),
        )


class GitHubClient:
    """GitHub REST client built on ``httpx.AsyncClient``."""

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initializes the client.

        Args:
            token: GitHub personal access token.
            base_url: API root (GitHub Enterprise installs differ).
            timeout: Per-request timeout in seconds.
            transport: Optional custom transport (used by tests).
        """
        if not token:
            raise ValueError("GitHub token not provided.")
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
                "User-Agent": "branchguard",
            },
        )
        logger.debug(f"GitHubClient initialized for {base_url}")

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, context: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise error_from_transport(e, context) from e
        if response.is_error:
            raise error_from_response(response, context)
        return response

    async def validate_token(self) -> Dict[str, Any]:
        """Checks the token against ``GET /user``.

        Returns:
            ``{"valid": True, "user": login}`` or ``{"valid": False, "error": reason}``.
        """
        try:
            response = await self._request("GET", "/user", "validate token")
        except RateLimitedError:
            logger.warning("GitHub API rate limit exceeded")
            return {"valid": False, "error": "GitHub API rate limit exceeded"}
        except PermissionDeniedError as e:
            if e.status == 401:
                logger.warning("Invalid GitHub token provided")
                return {"valid": False, "error": "Invalid or expired GitHub token"}
            return {"valid": False, "error": f"Token validation failed: {summarize_error(e)}"}
        except BranchGuardError as e:
            logger.error(f"Error validating GitHub token: {summarize_error(e)}")
            return {"valid": False, "error": f"Token validation failed: {summarize_error(e)}"}

        login = response.json().get("login")
        logger.info(f"Token validated successfully for user: {login}")
        return {"valid": True, "user": login}

    async def get_repository(self, owner: str, repo: str) -> Repository:
        response = await self._request("GET", f"/repos/{_seg(owner)}/{_seg(repo)}", f"get repository {owner}/{repo}")
        logger.info(f"Retrieved repository {owner}/{repo}")
        return Repository.from_api(response.json())

    async def list_repositories(self, owner: str) -> List[Repository]:
        """Lists every repository of an organization, or of a user as a fallback.

        Follows ``Link: rel="next"`` pagination.
        """
        logger.info(f"Listing repositories for {owner}...")
        try:
            raw = await self._paginate(
                f"/orgs/{_seg(owner)}/repos",
                {"type": "all", "sort": "full_name", "direction": "asc", "per_page": PER_PAGE},
                f"list repositories for organization {owner}",
            )
        except NotFoundError:
            logger.debug(f"{owner} is not an organization, listing user repositories instead")
            raw = await self._paginate(
                f"/users/{_seg(owner)}/repos",
                {"type": "owner", "sort": "full_name", "direction": "asc", "per_page": PER_PAGE},
                f"list repositories for user {owner}",
            )
        repos = [Repository.from_api(item) for item in raw]
        logger.info(f"Found {len(repos)} repositories for {owner}")
        return repos

    async def _paginate(self, url: str, params: Dict[str, Any], context: str) -> List[Dict[str, Any]]:
        results: List[Dict[str, Any]] = []
        next_url: Optional[str] = url
        next_params: Optional[Dict[str, Any]] = params
        while next_url:
            response = await self._request("GET", next_url, context, params=next_params)
            page = response.json()
            if isinstance(page, list):
                results.extend(page)
            next_url = response.links.get("next", {}).get("url")
            next_params = None  # the next link already carries the query
        return results

    async def get_branch_protection(self, owner: str, repo: str, branch: str) -> Dict[str, Any]:
        """Returns the protection settings of a branch.

        Raises:
            NotFoundError: If the branch is not protected.
        """
        url = f"/repos/{_seg(owner)}/{_seg(repo)}/branches/{_seg(branch)}/protection"
        try:
            response = await self._request("GET", url, f"get branch protection for {repo}/{branch}")
        except NotFoundError as e:
            raise NotFoundError(f"Branch {branch} in {repo} is not protected", status=e.status) from e
        return response.json()

    async def update_branch_protection(self, owner: str, repo: str, branch: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"/repos/{_seg(owner)}/{_seg(repo)}/branches/{_seg(branch)}/protection"
        response = await self._request("PUT", url, f"update branch protection for {repo}/{branch}", json=payload)
        return response.json()


def _seg(value: str) -> str:
    """Quotes one URL path segment (branch names may contain slashes)."""
    return quote(value, safe="")
