"""Service for executing remote operations with automatic retries.

Implements exponential backoff for transient upstream errors (5xx, network)
and rate-limit aware waiting: when the server announces a reset time the
policy sleeps until then (plus a small buffer) instead of guessing.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from branchguard.domain.errors import (
    ErrorKind,
    InvalidConfigurationError,
    RateLimitedError,
    RetriesExhaustedError,
    RunCancelledError,
    is_retryable,
    kind_of,
)
from branchguard.domain.events.batch_events import RateLimitWait, RetryScheduled
from branchguard.domain.interfaces.rate_limit import RateLimitInfo, RateLimitSignal
from branchguard.domain.models.common import BackoffPolicy
from branchguard.domain.models.work import RetryState
from branchguard.infrastructure.resilience.sanitizer import summarize_error

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_INITIAL_DELAY_S = 1.0
DEFAULT_RATE_LIMIT_BUFFER_S = 1.0

Sleeper = Callable[[float], Awaitable[None]]


class TaggedRateLimitSignal(RateLimitSignal):
    """Reads rate-limit metadata from ``RateLimitedError`` instances."""

    def inspect(self, error: BaseException) -> RateLimitInfo:
        if isinstance(error, RateLimitedError):
            return RateLimitInfo(is_rate_limited=True, reset_at=error.reset_at)
        return RateLimitInfo(is_rate_limited=False)


class RetryPolicy:
    """Wraps a single fallible operation with bounded retries."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_delay: float = DEFAULT_INITIAL_DELAY_S,
        rate_limit_buffer: float = DEFAULT_RATE_LIMIT_BUFFER_S,
        max_rate_limit_wait: Optional[float] = None,
        rate_limit_signal: Optional[RateLimitSignal] = None,
        sleep: Sleeper = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        cancel_event: Optional[asyncio.Event] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initializes the RetryPolicy.

        Args:
            max_attempts: Maximum number of retries after the initial call.
            initial_delay: Delay in seconds before the first backoff retry;
                doubled for every following attempt.
            rate_limit_buffer: Seconds added on top of a known rate-limit reset.
            max_rate_limit_wait: Optional ceiling in seconds for a single
                rate-limit wait. Longer waits fail the operation instead.
            rate_limit_signal: Reads reset metadata off errors.
            sleep: Awaitable sleep function (injectable for tests).
            clock: Returns the current epoch time in seconds.
            cancel_event: When set, pending waits are abandoned.
            logger: Logger to report retries on.
        """
        if max_attempts < 0:
            raise InvalidConfigurationError(f"max_attempts must not be negative, got {max_attempts!r}")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.rate_limit_buffer = rate_limit_buffer
        self.max_rate_limit_wait = max_rate_limit_wait
        self.rate_limit_signal = rate_limit_signal or TaggedRateLimitSignal()
        self._sleep = sleep
        self._clock = clock
        self.cancel_event = cancel_event
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_backoff_policy(cls, policy: BackoffPolicy, **kwargs: Any) -> "RetryPolicy":
        """Builds a policy from configured backoff settings.

        Args:
            policy: Retry budget and delays, usually ``RunSettings.backoff_policy``.
            **kwargs: Collaborators passed through to ``__init__``.
        """
        return cls(
            max_attempts=policy["max_retries"],
            initial_delay=policy["initial_delay"],
            rate_limit_buffer=policy["rate_limit_buffer"],
            max_rate_limit_wait=policy["max_rate_limit_wait"],
            **kwargs,
        )

    def backoff_delay(self, attempt: int) -> float:
        """Pure exponential backoff: ``initial_delay * 2 ** attempt``."""
        return self.initial_delay * (2 ** attempt)

    def rate_limit_delay(self, reset_at: float) -> float:
        return max(reset_at - self._clock(), 0.0) + self.rate_limit_buffer

    async def execute(self, operation: Callable[[], Any], name: Optional[str] = None) -> Any:
        """Runs ``operation`` until it succeeds or the retry budget is spent.

        Args:
            operation: Zero-argument callable; may return an awaitable.
            name: Label used in log messages and events.

        Returns:
            Whatever the operation returns on its first successful call.

        Raises:
            RetriesExhaustedError: If a retryable error persists past max_attempts.
            RunCancelledError: If cancellation is requested before a wait.
            Exception: Any non-retryable error, unchanged.
        """
        op_name = name or getattr(operation, "__name__", "operation")
        state = RetryState()

        while True:
            try:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
                return result
            except Exception as e:
                if not is_retryable(e):
                    self.logger.debug(f"Non-retryable {kind_of(e).value} error in {op_name}: {summarize_error(e)}")
                    raise
                state.last_error = e

            if state.attempt >= self.max_attempts:
                self.logger.error(
                    f"Maximum retries ({self.max_attempts}) exceeded for {op_name} after waiting {sum(state.history):.1f}s: "
                    f"{summarize_error(state.last_error)}"
                )
                raise RetriesExhaustedError(state.last_error, attempts=state.attempt + 1) from state.last_error

            state.next_delay = self._next_delay(state, op_name)

            if self.cancel_event is not None and self.cancel_event.is_set():
                raise RunCancelledError(f"Run cancelled while {op_name} was waiting to retry") from state.last_error

            await self._sleep(state.next_delay)
            state.history.append(state.next_delay)
            state.attempt += 1

    def _next_delay(self, state: RetryState, op_name: str) -> float:
        error = state.last_error
        info = self.rate_limit_signal.inspect(error)

        if info.is_rate_limited and info.reset_at is not None:
            delay = self.rate_limit_delay(info.reset_at)
            if self.max_rate_limit_wait is not None and delay > self.max_rate_limit_wait:
                self.logger.error(
                    f"Rate limit reset for {op_name} is {delay:.0f}s away, "
                    f"over the {self.max_rate_limit_wait:.0f}s ceiling. Giving up."
                )
                raise RetriesExhaustedError(
                    error,
                    attempts=state.attempt + 1,
                    reason=f"Rate limit wait of {delay:.0f}s exceeds ceiling of {self.max_rate_limit_wait:.0f}s",
                ) from error
            reset_label = time.strftime("%H:%M:%S", time.localtime(info.reset_at))
            self.logger.warning(f"Rate limit hit in {op_name}. Waiting until reset at {reset_label} ({delay:.1f}s)")
            self.logger.debug(f"EVENT: {RateLimitWait(operation=op_name, attempt_number=state.attempt + 1, delay_seconds=delay, reset_at=info.reset_at)}")
            return delay

        delay = self.backoff_delay(state.attempt)
        if kind_of(error) is ErrorKind.RATE_LIMITED:
            self.logger.warning(f"Rate limit hit in {op_name}. Backing off for {delay:.1f}s")
        else:
            self.logger.warning(
                f"Transient error in {op_name} on attempt {state.attempt + 1}/{self.max_attempts + 1}: "
                f"{summarize_error(error)}. Backing off for {delay:.1f}s"
            )
        self.logger.debug(f"EVENT: {RetryScheduled(operation=op_name, attempt_number=state.attempt + 1, delay_seconds=delay, error_kind=kind_of(error).value)}")
        return delay
