"""Defines common Value Objects used across different domain contexts.

These objects represent simple values like owner names, check names and
backoff settings, ensuring consistency and type safety.
"""

from typing import NewType, TypedDict, Optional

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
ItemId = NewType("ItemId", str)                # Unique id of a work item
OwnerName = NewType("OwnerName", str)          # GitHub organization or user
RepositoryName = NewType("RepositoryName", str)
BranchName = NewType("BranchName", str)
CheckName = NewType("CheckName", str)          # Context of a required status check

# Checks removed when the caller does not name any.
DEFAULT_CHECKS = (
    CheckName("Khulnasoft Smart Policy"),
    CheckName("Khulnasoft Insights"),
)


class BackoffPolicy(TypedDict):
    """Value Object representing retry backoff configuration."""
    max_retries: int
    initial_delay: float
    rate_limit_buffer: float
    max_rate_limit_wait: Optional[float]
