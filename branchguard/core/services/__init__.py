"""Core services of the batch orchestration engine."""
