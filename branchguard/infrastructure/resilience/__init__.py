"""API Resilience Implementations.

Contains the retry policy (exponential backoff and rate-limit aware waits)
and the redaction helpers applied to every error that is logged or reported.
Bounded Context: API Resilience
"""
