"""Reads GitHub rate-limit headers.

GitHub signals rate limiting with 429, or with 403 plus
``x-ratelimit-remaining: 0`` (primary limit) or a "rate limit" message
(secondary limit). The reset time comes from ``x-ratelimit-reset`` (epoch
seconds) or ``retry-after`` (seconds from now).
"""

import logging
import time
from typing import Callable, Optional

import httpx

from branchguard.domain.errors import RateLimitedError
from branchguard.domain.interfaces.rate_limit import RateLimitInfo, RateLimitSignal

logger = logging.getLogger(__name__)


class GitHubRateLimitSignal(RateLimitSignal):

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock

    def inspect(self, error: BaseException) -> RateLimitInfo:
        if isinstance(error, RateLimitedError):
            return RateLimitInfo(is_rate_limited=True, reset_at=error.reset_at)
        if isinstance(error, httpx.HTTPStatusError):
            return self.from_response(error.response)
        return RateLimitInfo(is_rate_limited=False)

    def from_response(self, response: httpx.Response) -> RateLimitInfo:
        if response.status_code not in (403, 429):
            return RateLimitInfo(is_rate_limited=False)

        headers = response.headers
        reset_at = self._reset_at(headers)
        limited = (
            response.status_code == 429
            or headers.get("x-ratelimit-remaining") == "0"
            or "retry-after" in headers
            or "rate limit" in response_message(response).lower()
        )
        if not limited:
            return RateLimitInfo(is_rate_limited=False)
        return RateLimitInfo(is_rate_limited=True, reset_at=reset_at)

    def _reset_at(self, headers: httpx.Headers) -> Optional[float]:
        retry_after = headers.get("retry-after")
        if retry_after is not None:
            try:
                return self._clock() + float(retry_after)
            except ValueError:
                logger.debug(f"Ignoring unparseable retry-after header: {retry_after!r}")
        reset = headers.get("x-ratelimit-reset")
        if reset is not None:
            try:
                return float(reset)
            except ValueError:
                logger.debug(f"Ignoring unparseable x-ratelimit-reset header: {reset!r}")
        return None


def response_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or ""
    if isinstance(body, dict):
        return str(body.get("message", ""))
    return ""
