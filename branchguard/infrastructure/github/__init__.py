"""GitHub REST adapters.

Implements the WorkItemSource, MutationExecutor and RateLimitSignal ports on
top of an httpx-based client. HTTP failures are turned into tagged errors
here, once, and nowhere else.
"""
