import pytest

from branchguard.domain.errors import (
    ErrorKind,
    NotFoundError,
    RateLimitedError,
    RetriesExhaustedError,
    TransientUpstreamError,
    is_retryable,
    kind_of,
)
from branchguard.domain.models.work import BranchTarget, ExecutionOutcome, OutcomeStatus


@pytest.mark.parametrize(
    "error, kind, retryable",
    [
        (NotFoundError("missing"), ErrorKind.NOT_FOUND, False),
        (RateLimitedError("slow down", reset_at=1.0), ErrorKind.RATE_LIMITED, True),
        (TransientUpstreamError("bad gateway", status=502), ErrorKind.TRANSIENT_UPSTREAM, True),
        (ValueError("untagged"), ErrorKind.UNKNOWN, False),
    ],
)
def test_error_kinds(error, kind, retryable):
    assert kind_of(error) is kind
    assert is_retryable(error) is retryable


def test_retries_exhausted_keeps_last_error():
    last = TransientUpstreamError("Failed to get repository: Service Unavailable", status=503)
    error = RetriesExhaustedError(last, attempts=6)
    assert error.status == 503
    assert error.attempts == 6
    assert str(error) == "Retries exhausted after 6 attempts. Last error: Failed to get repository: Service Unavailable"


def test_branch_target_label_is_branch():
    assert BranchTarget(owner="acme", repository="api", branch="main").label == "main"


def test_skipped_outcome_serialization():
    outcome = ExecutionOutcome(
        item_id="acme/api@main",
        display_name="api",
        target_label="main",
        status=OutcomeStatus.SKIPPED,
        reason="Branch main in api is not protected",
    )
    assert outcome.to_dict() == {
        "itemId": "acme/api@main",
        "repository": "api",
        "branch": "main",
        "status": "skipped",
        "changes": [],
        "reason": "Branch main in api is not protected",
    }


def test_errored_outcome_defaults_kind_to_unknown():
    outcome = ExecutionOutcome(
        item_id="acme/api@main",
        display_name="api",
        target_label="main",
        status=OutcomeStatus.ERRORED,
        error="RuntimeError: boom",
    )
    data = outcome.to_dict()
    assert data["errorKind"] == "unknown"
    assert "checksRemaining" not in data
