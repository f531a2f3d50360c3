"""Domain Events related to batches, retries and rate limiting.

Events are plain dataclasses. Components hand them to their injected logger;
nothing subscribes to them beyond that.
"""

from dataclasses import dataclass, field
import time
from typing import Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class RetryScheduled(DomainEvent):
    """A retryable failure occurred and a backoff wait was scheduled."""
    operation: str
    attempt_number: int
    delay_seconds: float
    error_kind: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class RateLimitWait(DomainEvent):
    """The operation is waiting for a server-announced rate-limit reset."""
    operation: str
    attempt_number: int
    delay_seconds: float
    reset_at: Optional[float] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class BatchStarted(DomainEvent):
    batch_number: int
    total_batches: int
    size: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class BatchCompleted(DomainEvent):
    batch_number: int
    total_batches: int
    errored: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class RunCancelled(DomainEvent):
    """Cancellation was observed at a batch boundary."""
    remaining_items: int
    timestamp: float = field(default_factory=time.time)
