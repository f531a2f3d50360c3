"""Domain layer: value objects, tagged errors, collaborator interfaces and events."""
