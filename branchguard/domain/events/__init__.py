"""Domain Events emitted by the orchestration engine."""
