"""Domain models (value objects and report aggregates)."""
