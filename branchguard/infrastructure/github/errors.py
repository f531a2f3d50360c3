"""Maps HTTP responses and transport failures onto tagged errors."""

from typing import Optional

import httpx

from branchguard.domain.errors import (
    BranchGuardError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    TransientUpstreamError,
    UnknownUpstreamError,
)
from branchguard.infrastructure.github.rate_limit_signal import GitHubRateLimitSignal, response_message
from branchguard.infrastructure.resilience.sanitizer import redact

TRANSIENT_STATUSES = frozenset({500, 502, 503, 504})

_signal = GitHubRateLimitSignal()


def error_from_response(
    response: httpx.Response,
    context: str,
    signal: Optional[GitHubRateLimitSignal] = None,
) -> BranchGuardError:
    """Builds the tagged error for a failed response.

    Args:
        response: The non-2xx response.
        context: What was being attempted, e.g. "get branch protection for repo/main".
        signal: Rate-limit header reader (defaults to a module-level one).
    """
    status = response.status_code
    message = redact(f"Failed to {context}: {response_message(response) or response.reason_phrase}")

    rate_limit = (signal or _signal).from_response(response)
    if rate_limit.is_rate_limited:
        return RateLimitedError(message, status=status, reset_at=rate_limit.reset_at)
    if status == 404:
        return NotFoundError(message, status=status)
    if status in (401, 403):
        return PermissionDeniedError(message, status=status)
    if status in TRANSIENT_STATUSES:
        return TransientUpstreamError(message, status=status)
    return UnknownUpstreamError(message, status=status)


def error_from_transport(error: httpx.TransportError, context: str) -> BranchGuardError:
    """Network-level failures (timeouts, resets) are transient."""
    return TransientUpstreamError(redact(f"Failed to {context}: {error.__class__.__name__}: {error}"))
