import pytest

from branchguard.domain.errors import NotFoundError
from branchguard.domain.models.common import DEFAULT_CHECKS
from branchguard.domain.models.work import MutationOptions, WorkItem
from branchguard.infrastructure.github.protection_manager import (
    BranchProtectionManager,
    build_update_payload,
    plan_removal,
    status_check_contexts,
)

from conftest import make_item, protection_doc

DEFAULTS = MutationOptions(checks_to_remove=DEFAULT_CHECKS)


@pytest.fixture
def manager(github_client):
    return BranchProtectionManager(github_client)


@pytest.mark.asyncio
async def test_simulate_reports_without_writing(fake_github, manager):
    fake_github.add_repo("repo-01", checks=["ci", "Khulnasoft Insights"])

    result = await manager.simulate(make_item(1), DEFAULTS)

    assert result.changes == ("Khulnasoft Insights",)
    assert result.remaining == ("ci",)
    assert result.applied is False
    assert fake_github.updates == []


@pytest.mark.asyncio
async def test_apply_removes_matching_checks(fake_github, manager):
    fake_github.add_repo("repo-01", checks=["ci", "Khulnasoft Smart Policy", "Khulnasoft Insights"])

    result = await manager.apply(make_item(1), DEFAULTS)

    assert result.applied is True
    assert result.changes == ("Khulnasoft Smart Policy", "Khulnasoft Insights")
    repo, branch, payload = fake_github.updates[0]
    assert (repo, branch) == ("repo-01", "main")
    assert payload["required_status_checks"] == {"strict": True, "checks": [{"context": "ci"}]}
    assert status_check_contexts(fake_github.protections[("repo-01", "main")]) == ["ci"]


@pytest.mark.asyncio
async def test_apply_without_matching_checks_skips_write(fake_github, manager):
    fake_github.add_repo("repo-01", checks=["ci"])

    result = await manager.apply(make_item(1), DEFAULTS)

    assert result.changes == ()
    assert result.remaining == ("ci",)
    assert result.applied is False
    assert fake_github.updates == []


@pytest.mark.asyncio
async def test_unprotected_branch_raises_not_found(fake_github, manager):
    fake_github.add_repo("repo-01", protected=False)
    with pytest.raises(NotFoundError):
        await manager.apply(make_item(1), DEFAULTS)


@pytest.mark.asyncio
async def test_rejects_non_branch_targets(manager):
    with pytest.raises(TypeError):
        await manager.simulate(WorkItem(id="x", display_name="x", target="main"), DEFAULTS)


def test_legacy_contexts_are_read():
    protection = {"required_status_checks": {"strict": False, "contexts": ["ci", "Khulnasoft Insights"]}}
    assert plan_removal(protection, DEFAULT_CHECKS) == (["Khulnasoft Insights"], ["ci"])
    assert build_update_payload(protection, DEFAULT_CHECKS)["required_status_checks"] == {"strict": False, "contexts": ["ci"]}


def test_no_status_checks():
    assert plan_removal({"required_status_checks": None}, DEFAULT_CHECKS) == ([], [])


def test_removing_last_check_drops_requirement():
    payload = build_update_payload(protection_doc(["Khulnasoft Insights"]), DEFAULT_CHECKS)
    assert payload["required_status_checks"] is None


def test_payload_carries_over_other_settings():
    protection = protection_doc(["ci"])
    protection["restrictions"] = {
        "users": [{"login": "alice"}],
        "teams": [{"slug": "core"}],
        "apps": [{"slug": "deploy-bot"}],
    }
    protection["required_pull_request_reviews"]["dismissal_restrictions"] = {"users": [{"login": "bob"}], "teams": []}
    protection["lock_branch"] = {"enabled": False}

    payload = build_update_payload(protection, DEFAULT_CHECKS)

    assert payload["enforce_admins"] is True
    assert payload["allow_force_pushes"] is False
    assert payload["allow_deletions"] is False
    assert payload["required_linear_history"] is True
    assert payload["lock_branch"] is False
    assert "block_creations" not in payload
    assert payload["restrictions"] == {"users": ["alice"], "teams": ["core"], "apps": ["deploy-bot"]}
    reviews = payload["required_pull_request_reviews"]
    assert reviews["required_approving_review_count"] == 1
    assert reviews["dismissal_restrictions"] == {"users": ["bob"], "teams": []}


def test_app_ids_are_kept():
    protection = {"required_status_checks": {"strict": True, "checks": [{"context": "ci", "app_id": 15368}, {"context": "Khulnasoft Insights", "app_id": None}]}}
    payload = build_update_payload(protection, DEFAULT_CHECKS)
    assert payload["required_status_checks"]["checks"] == [{"context": "ci", "app_id": 15368}]
