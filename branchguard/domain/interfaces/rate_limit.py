"""Interface for reading rate-limit metadata off an error."""

import abc
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RateLimitInfo:
    is_rate_limited: bool
    reset_at: Optional[float] = None  # epoch seconds


class RateLimitSignal(abc.ABC):
    """Tells the retry policy whether (and until when) it is rate limited."""

    @abc.abstractmethod
    def inspect(self, error: BaseException) -> RateLimitInfo:
        """Inspects an error raised by an operation.

        Args:
            error: The exception raised by the operation.

        Returns:
            Whether the error is a rate-limit signal and, if known, the reset time.
        """
        pass
