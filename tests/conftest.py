import json
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote

import httpx
import pytest
from typer.testing import CliRunner

from branchguard.domain.models.common import BranchName, ItemId, OwnerName, RepositoryName
from branchguard.domain.models.work import BranchTarget, WorkItem
from branchguard.infrastructure.config import settings as settings_module
from branchguard.infrastructure.github.client import GitHubClient

VALID_TOKEN = "ghp_" + "a1B2c3D4e5" * 3 + "f6G7h8"  # ghp_ + 36 chars
FAKE_OWNER = "acme"

CONFIG_ENV_VARS = (
    "TOKEN", "OWNER", "CONCURRENCY", "VERBOSE", "INCLUDE_ARCHIVED",
    "THROTTLE_DELAY", "BATCH_DELAY", "RETRY_MAX_RETRIES", "RETRY_INITIAL_BACKOFF",
    "RETRY_RATE_LIMIT_BUFFER", "RETRY_MAX_RATE_LIMIT_WAIT", "LOGGING_FILE", "LOGGING_ERROR_FILE",
)


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def clean_configuration(monkeypatch, tmp_path):
    """Isolates every test from the developer's environment, .env and YAML config."""
    settings_module.reset_configuration()
    for var in CONFIG_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(settings_module, "DEFAULT_CONFIG_FILE", tmp_path / "no-such-config.yaml")
    monkeypatch.chdir(tmp_path)
    yield
    settings_module.reset_configuration()


def make_item(index: int, owner: str = FAKE_OWNER, branch: str = "main") -> WorkItem:
    name = f"repo-{index:02d}"
    return WorkItem(
        id=ItemId(f"{owner}/{name}@{branch}"),
        display_name=name,
        target=BranchTarget(owner=OwnerName(owner), repository=RepositoryName(name), branch=BranchName(branch)),
    )


@pytest.fixture
def make_items():
    """Factory for N distinct work items."""
    def _make(count: int) -> List[WorkItem]:
        return [make_item(i) for i in range(count)]
    return _make


def protection_doc(checks: List[str], strict: bool = True) -> Dict[str, Any]:
    """A branch protection document shaped like GitHub's GET response."""
    return {
        "url": "https://api.github.com/repos/acme/x/branches/main/protection",
        "required_status_checks": {
            "strict": strict,
            "contexts": list(checks),
            "checks": [{"context": check, "app_id": None} for check in checks],
        } if checks else None,
        "enforce_admins": {"enabled": True},
        "required_pull_request_reviews": {
            "dismiss_stale_reviews": True,
            "require_code_owner_reviews": False,
            "required_approving_review_count": 1,
        },
        "restrictions": None,
        "allow_force_pushes": {"enabled": False},
        "allow_deletions": {"enabled": False},
        "required_linear_history": {"enabled": True},
    }


class FakeGitHub:
    """In-memory stand-in for the handful of GitHub endpoints the tool calls.

    Plug ``handler`` into ``httpx.MockTransport``. ``script`` queues canned
    responses for a (method, path) pair that are served before the default
    behaviour.
    """

    def __init__(self, owner: str = FAKE_OWNER, is_org: bool = True, page_size: int = 100):
        self.owner = owner
        self.is_org = is_org
        self.page_size = page_size
        self.valid_token = True
        self.repos: List[Dict[str, Any]] = []
        self.protections: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.requests: List[Tuple[str, str]] = []
        self.updates: List[Tuple[str, str, Dict[str, Any]]] = []
        self.scripted: Dict[Tuple[str, str], List[httpx.Response]] = {}

    def add_repo(
        self,
        name: str,
        checks: Optional[List[str]] = None,
        default_branch: Optional[str] = "main",
        protected: bool = True,
        archived: bool = False,
    ) -> None:
        self.repos.append({
            "id": len(self.repos) + 1,
            "name": name,
            "html_url": f"https://github.com/{self.owner}/{name}",
            "private": False,
            "fork": False,
            "archived": archived,
            "owner": {"login": self.owner},
            "default_branch": default_branch,
        })
        if protected and default_branch:
            self.protections[(name, default_branch)] = protection_doc(checks or [])

    def script(self, method: str, path: str, *responses: httpx.Response) -> None:
        self.scripted.setdefault((method, path), []).extend(responses)

    def count(self, method: str, path: str) -> int:
        return sum(1 for request in self.requests if request == (method, path))

    def handler(self, request: httpx.Request) -> httpx.Response:
        # raw path keeps %2F inside branch names intact
        path = request.url.raw_path.decode("ascii").split("?", 1)[0]
        self.requests.append((request.method, path))
        queued = self.scripted.get((request.method, path))
        if queued:
            return queued.pop(0)

        if path == "/user":
            if not self.valid_token:
                return httpx.Response(401, json={"message": "Bad credentials"})
            return httpx.Response(200, json={"login": "octocat"})

        match = re.fullmatch(r"/(orgs|users)/([^/]+)/repos", path)
        if match:
            if match.group(1) == "orgs" and not self.is_org:
                return httpx.Response(404, json={"message": "Not Found"})
            return self._page(request, path)

        match = re.fullmatch(r"/repos/([^/]+)/([^/]+)", path)
        if match:
            for repo in self.repos:
                if repo["name"] == match.group(2):
                    return httpx.Response(200, json=repo)
            return httpx.Response(404, json={"message": "Not Found"})

        match = re.fullmatch(r"/repos/([^/]+)/([^/]+)/branches/([^/]+)/protection", path)
        if match:
            key = (unquote(match.group(2)), unquote(match.group(3)))
            if request.method == "GET":
                if key not in self.protections:
                    return httpx.Response(404, json={"message": "Branch not protected"})
                return httpx.Response(200, json=self.protections[key])
            if request.method == "PUT":
                payload = json.loads(request.content)
                self.updates.append((key[0], key[1], payload))
                doc = dict(self.protections.get(key) or {})
                checks = payload.get("required_status_checks") or {}
                remaining = [check["context"] for check in checks.get("checks") or []] or list(checks.get("contexts") or [])
                doc["required_status_checks"] = protection_doc(remaining)["required_status_checks"]
                self.protections[key] = doc
                return httpx.Response(200, json=doc)

        return httpx.Response(500, json={"message": f"Unhandled fake route {request.method} {path}"})

    def _page(self, request: httpx.Request, path: str) -> httpx.Response:
        page = int(request.url.params.get("page", "1"))
        start = (page - 1) * self.page_size
        chunk = self.repos[start:start + self.page_size]
        headers = {}
        if start + self.page_size < len(self.repos):
            headers["link"] = f'<https://api.github.com{path}?page={page + 1}>; rel="next"'
        return httpx.Response(200, json=chunk, headers=headers)


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def github_client(fake_github):
    """A real GitHubClient talking to the in-memory fake."""
    return GitHubClient(VALID_TOKEN, transport=httpx.MockTransport(fake_github.handler))


class RecordingSleep:
    """Async sleep replacement that records the requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
