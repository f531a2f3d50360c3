"""Manages the required status checks of protected branches.

Implements the MutationExecutor port: ``simulate`` computes which checks
would be removed, ``apply`` writes the filtered protection back with a full
``PUT .../protection`` payload (GitHub replaces the whole policy, so every
setting we do not touch is carried over from the current one).
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from branchguard.domain.interfaces.executor import MutationExecutor
from branchguard.domain.models.work import BranchTarget, MutationOptions, MutationResult, WorkItem
from branchguard.infrastructure.github.client import GitHubClient

logger = logging.getLogger(__name__)

# Boolean toggles that GET returns as {"enabled": bool} and PUT takes as bool.
_PASSTHROUGH_TOGGLES = (
    "required_linear_history",
    "required_conversation_resolution",
    "block_creations",
    "lock_branch",
    "allow_fork_syncing",
)


class BranchProtectionManager(MutationExecutor):
    """Removes named required status checks from branch protection."""

    def __init__(self, client: GitHubClient):
        self.client = client

    async def simulate(self, item: WorkItem, options: MutationOptions) -> MutationResult:
        target = _branch_target(item)
        protection = await self.client.get_branch_protection(target.owner, target.repository, target.branch)
        removed, remaining = plan_removal(protection, options.checks_to_remove)
        return MutationResult(changes=tuple(removed), remaining=tuple(remaining), applied=False)

    async def apply(self, item: WorkItem, options: MutationOptions) -> MutationResult:
        target = _branch_target(item)
        protection = await self.client.get_branch_protection(target.owner, target.repository, target.branch)
        removed, remaining = plan_removal(protection, options.checks_to_remove)
        if not removed:
            logger.debug(f"Nothing to remove from {target.repository}/{target.branch}, skipping write")
            return MutationResult(changes=(), remaining=tuple(remaining), applied=False)

        payload = build_update_payload(protection, options.checks_to_remove)
        await self.client.update_branch_protection(target.owner, target.repository, target.branch, payload)
        logger.debug(f"Removed {', '.join(removed)} from branch protection for {target.repository}/{target.branch}")
        return MutationResult(changes=tuple(removed), remaining=tuple(remaining), applied=True)


def _branch_target(item: WorkItem) -> BranchTarget:
    if not isinstance(item.target, BranchTarget):
        raise TypeError(f"Work item {item.id} does not target a branch: {item.target!r}")
    return item.target


def status_check_contexts(protection: Dict[str, Any]) -> List[str]:
    """Names of the required status checks, from ``checks`` or legacy ``contexts``."""
    status_checks = protection.get("required_status_checks") or {}
    checks = status_checks.get("checks")
    if checks:
        return [check.get("context") for check in checks if check.get("context")]
    return list(status_checks.get("contexts") or [])


def plan_removal(protection: Dict[str, Any], checks_to_remove: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Splits the current checks into (removed, remaining)."""
    to_remove = set(checks_to_remove)
    contexts = status_check_contexts(protection)
    removed = [context for context in contexts if context in to_remove]
    remaining = [context for context in contexts if context not in to_remove]
    return removed, remaining


def build_update_payload(protection: Dict[str, Any], checks_to_remove: Sequence[str]) -> Dict[str, Any]:
    """Translates a GET protection document into a PUT body without the given checks."""
    payload: Dict[str, Any] = {
        "required_status_checks": _status_checks_payload(protection.get("required_status_checks"), set(checks_to_remove)),
        "enforce_admins": _enabled(protection, "enforce_admins"),
        "required_pull_request_reviews": _reviews_payload(protection.get("required_pull_request_reviews")),
        "restrictions": _restrictions_payload(protection.get("restrictions")),
        "allow_force_pushes": bool(_enabled(protection, "allow_force_pushes")),
        "allow_deletions": bool(_enabled(protection, "allow_deletions")),
    }
    for key in _PASSTHROUGH_TOGGLES:
        if key in protection:
            payload[key] = bool(_enabled(protection, key))
    return payload


def _enabled(protection: Dict[str, Any], key: str) -> Optional[bool]:
    value = protection.get(key)
    if isinstance(value, dict):
        return value.get("enabled")
    return value


def _status_checks_payload(status_checks: Optional[Dict[str, Any]], to_remove: set) -> Optional[Dict[str, Any]]:
    # No checks left means the whole requirement is dropped.
    if not status_checks:
        return None
    strict = bool(status_checks.get("strict"))
    checks = status_checks.get("checks")
    if checks:
        kept = []
        for check in checks:
            if check.get("context") in to_remove:
                continue
            entry = {"context": check.get("context")}
            if check.get("app_id") is not None:
                entry["app_id"] = check["app_id"]
            kept.append(entry)
        return {"strict": strict, "checks": kept} if kept else None
    contexts = [context for context in status_checks.get("contexts") or [] if context not in to_remove]
    return {"strict": strict, "contexts": contexts} if contexts else None


def _reviews_payload(reviews: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not reviews:
        return None
    payload = {
        key: reviews[key]
        for key in (
            "dismiss_stale_reviews",
            "require_code_owner_reviews",
            "required_approving_review_count",
            "require_last_push_approval",
        )
        if key in reviews
    }
    if reviews.get("dismissal_restrictions"):
        payload["dismissal_restrictions"] = _actors(reviews["dismissal_restrictions"])
    if reviews.get("bypass_pull_request_allowances"):
        payload["bypass_pull_request_allowances"] = _actors(reviews["bypass_pull_request_allowances"])
    return payload


def _restrictions_payload(restrictions: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not restrictions:
        return None
    return _actors(restrictions)


def _actors(section: Dict[str, Any]) -> Dict[str, List[str]]:
    """Users by login, teams and apps by slug."""
    actors = {
        "users": [user.get("login") for user in section.get("users") or []],
        "teams": [team.get("slug") for team in section.get("teams") or []],
    }
    if section.get("apps"):
        actors["apps"] = [app.get("slug") for app in section["apps"]]
    return actors
