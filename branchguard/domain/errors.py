"""Tagged error taxonomy shared by every layer.

Each error carries a discriminating ``kind`` that is assigned once, where the
failure is first observed (usually the HTTP boundary). Everything downstream
(retry policy, outcome classifier, report) matches on the kind instead of
inspecting status codes or message substrings.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Discriminator for every failure the engine knows how to handle."""
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    RATE_LIMITED = "rate_limited"
    TRANSIENT_UPSTREAM = "transient_upstream"
    RETRIES_EXHAUSTED = "retries_exhausted"
    INVALID_CONFIGURATION = "invalid_configuration"
    SOURCE_UNAVAILABLE = "source_unavailable"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class BranchGuardError(Exception):
    """Base class for all tagged errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    retryable: bool = False

    def __init__(self, message: str, status: Optional[int] = None):
        self.message = message
        self.status = status
        super().__init__(message)


class NotFoundError(BranchGuardError):
    """Target has no configuration to mutate (e.g. branch is not protected)."""
    kind = ErrorKind.NOT_FOUND


class PermissionDeniedError(BranchGuardError):
    """Caller lacks rights, or the plan must be upgraded."""
    kind = ErrorKind.PERMISSION_DENIED


class RateLimitedError(BranchGuardError):
    """Upstream refused the call because a rate limit was hit."""
    kind = ErrorKind.RATE_LIMITED
    retryable = True

    def __init__(self, message: str, status: Optional[int] = None, reset_at: Optional[float] = None):
        super().__init__(message, status=status)
        # Epoch seconds at which the limit resets, when the server told us.
        self.reset_at = reset_at


class TransientUpstreamError(BranchGuardError):
    """5xx-class or network failure expected to clear on its own."""
    kind = ErrorKind.TRANSIENT_UPSTREAM
    retryable = True


class UnknownUpstreamError(BranchGuardError):
    """Any other upstream failure. Never retried."""
    kind = ErrorKind.UNKNOWN


class RetriesExhaustedError(BranchGuardError):
    """Raised when the retry budget is spent on a retryable error."""
    kind = ErrorKind.RETRIES_EXHAUSTED

    def __init__(self, last_error: BaseException, attempts: int, reason: Optional[str] = None):
        self.last_error = last_error
        self.attempts = attempts
        detail = reason or f"Retries exhausted after {attempts} attempts"
        super().__init__(f"{detail}. Last error: {last_error}", status=getattr(last_error, "status", None))


class InvalidConfigurationError(BranchGuardError):
    """Run-fatal: bad settings or malformed work items."""
    kind = ErrorKind.INVALID_CONFIGURATION


class SourceUnavailableError(BranchGuardError):
    """Run-fatal: the work-item listing itself failed."""
    kind = ErrorKind.SOURCE_UNAVAILABLE


class RunCancelledError(BranchGuardError):
    """The run was cancelled before this item could finish."""
    kind = ErrorKind.CANCELLED


def kind_of(error: BaseException) -> ErrorKind:
    """Returns the kind of any exception; untagged exceptions are UNKNOWN."""
    if isinstance(error, BranchGuardError):
        return error.kind
    return ErrorKind.UNKNOWN


def is_retryable(error: BaseException) -> bool:
    return isinstance(error, BranchGuardError) and error.retryable
