import json

import httpx
import pytest

from branchguard.infrastructure.github.client import GitHubClient
from branchguard.main import app

from conftest import VALID_TOKEN, FakeGitHub


@pytest.fixture
def fake():
    github = FakeGitHub(owner="acme")
    github.add_repo("api", checks=["ci", "Khulnasoft Smart Policy", "Khulnasoft Insights"])
    github.add_repo("web", checks=["Khulnasoft Insights"])
    github.add_repo("docs", protected=False)
    return github


@pytest.fixture(autouse=True)
def offline_cli(mocker, monkeypatch, fake):
    """Points the CLI at the in-memory GitHub and removes every wait."""
    mocker.patch(
        "branchguard.main.GitHubClient",
        side_effect=lambda token: GitHubClient(token, transport=httpx.MockTransport(fake.handler)),
    )
    mocker.patch("branchguard.main.setup_logging")
    monkeypatch.setenv("THROTTLE_DELAY", "0")
    monkeypatch.setenv("BATCH_DELAY", "0")
    monkeypatch.setenv("RETRY_INITIAL_BACKOFF", "0")
    monkeypatch.setenv("RETRY_RATE_LIMIT_BUFFER", "0")


def test_dry_run_flow(runner, fake, tmp_path):
    """A dry run reports what would change and never writes."""
    report_path = tmp_path / "out" / "report.json"

    result = runner.invoke(app, ["run", "--token", VALID_TOKEN, "--owner", "acme", "--dry-run", "--report", str(report_path)])

    assert result.exit_code == 0, f"CLI command failed: {result.stdout}"
    assert fake.updates == []
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["dryRun"] is True
    assert report["summary"] == {"updated": 0, "simulated": 2, "skipped": 1, "errored": 0, "total": 3}
    by_repo = {detail["repository"]: detail for detail in report["details"]}
    assert by_repo["api"]["changes"] == ["Khulnasoft Smart Policy", "Khulnasoft Insights"]
    assert by_repo["api"]["checksRemaining"] == ["ci"]
    assert by_repo["docs"]["status"] == "skipped"
    assert "Simulated 3 out of 3 repositories successfully" in result.stdout


def test_apply_flow(runner, fake, tmp_path):
    report_path = tmp_path / "report.json"

    result = runner.invoke(app, ["run", "-t", VALID_TOKEN, "-o", "acme", "-n", "2", "-p", str(report_path)])

    assert result.exit_code == 0, f"CLI command failed: {result.stdout}"
    assert sorted(repo for repo, _, _ in fake.updates) == ["api", "web"]
    api_payload = next(payload for repo, _, payload in fake.updates if repo == "api")
    assert api_payload["required_status_checks"] == {"strict": True, "checks": [{"context": "ci"}]}
    web_payload = next(payload for repo, _, payload in fake.updates if repo == "web")
    assert web_payload["required_status_checks"] is None
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["summary"]["updated"] == 2
    assert report["summary"]["skipped"] == 1
    assert [detail["itemId"] for detail in report["details"]] == ["acme/api@main", "acme/web@main", "acme/docs@main"]


def test_custom_checks_and_single_repository(runner, fake, tmp_path):
    report_path = tmp_path / "report.json"

    result = runner.invoke(
        app,
        ["run", "-t", VALID_TOKEN, "-o", "acme", "-r", "api", "-c", "ci", "-c", "missing", "-p", str(report_path)],
    )

    assert result.exit_code == 0, f"CLI command failed: {result.stdout}"
    assert fake.count("GET", "/orgs/acme/repos") == 0
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["customChecksUsed"] == ["ci", "missing"]
    assert report["specificRepo"] == "api"
    assert report["details"][0]["changes"] == ["ci"]


def test_item_failures_do_not_fail_the_run(runner, fake, tmp_path):
    fake.script(
        "GET",
        "/repos/acme/web/branches/main/protection",
        httpx.Response(403, json={"message": "Upgrade to GitHub Pro or make this repository public to enable this feature."}),
    )
    report_path = tmp_path / "report.json"

    result = runner.invoke(app, ["run", "-t", VALID_TOKEN, "-o", "acme", "-p", str(report_path)])

    assert result.exit_code == 0, f"CLI command failed: {result.stdout}"
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["summary"]["errored"] == 1
    web = next(detail for detail in report["details"] if detail["repository"] == "web")
    assert web["status"] == "errored"
    assert web["errorKind"] == "permission_denied"
    assert VALID_TOKEN not in report_path.read_text(encoding="utf-8")


def test_transient_errors_are_retried(runner, fake, tmp_path):
    fake.script("GET", "/repos/acme/web/branches/main/protection", httpx.Response(502, text="Bad Gateway"), httpx.Response(503, text=""))
    report_path = tmp_path / "report.json"

    result = runner.invoke(app, ["run", "-t", VALID_TOKEN, "-o", "acme", "-p", str(report_path)])

    assert result.exit_code == 0, f"CLI command failed: {result.stdout}"
    assert fake.count("GET", "/repos/acme/web/branches/main/protection") == 3
    assert json.loads(report_path.read_text(encoding="utf-8"))["summary"]["updated"] == 2


def test_invalid_token_stops_before_listing(runner, fake):
    fake.valid_token = False

    result = runner.invoke(app, ["run", "-t", VALID_TOKEN, "-o", "acme"])

    assert result.exit_code == 1
    assert fake.count("GET", "/orgs/acme/repos") == 0
    assert fake.updates == []


def test_missing_token_is_rejected(runner, fake):
    result = runner.invoke(app, ["run", "-o", "acme"])

    assert result.exit_code == 1
    assert "Missing GitHub token" in result.stdout
    assert fake.requests == []


def test_malformed_numeric_setting_is_rejected(runner, fake, monkeypatch):
    monkeypatch.setenv("CONCURRENCY", "five")

    result = runner.invoke(app, ["run", "--token", VALID_TOKEN, "--owner", "acme", "--dry-run"])

    assert result.exit_code == 1
    assert "concurrency must be a number" in result.stdout
    assert not isinstance(result.exception, ValueError)
    assert fake.requests == []


def test_token_and_owner_from_environment(runner, fake, monkeypatch):
    monkeypatch.setenv("TOKEN", VALID_TOKEN)
    monkeypatch.setenv("OWNER", "acme")

    result = runner.invoke(app, ["run", "--dry-run"])

    assert result.exit_code == 0, f"CLI command failed: {result.stdout}"
    assert fake.count("GET", "/orgs/acme/repos") == 1


def test_listing_failure_is_fatal(runner, fake):
    fake.script("GET", "/orgs/acme/repos", httpx.Response(403, json={"message": "Resource not accessible by integration"}))

    result = runner.invoke(app, ["run", "-t", VALID_TOKEN, "-o", "acme"])

    assert result.exit_code == 1
    assert "Run aborted" in result.stdout


def test_validate_token_command(runner, fake):
    result = runner.invoke(app, ["validate-token", "-t", VALID_TOKEN])
    assert result.exit_code == 0, f"CLI command failed: {result.stdout}"
    assert "octocat" in result.stdout

    fake.valid_token = False
    result = runner.invoke(app, ["validate-token", "-t", VALID_TOKEN])
    assert result.exit_code == 1
