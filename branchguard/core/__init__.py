"""Core Application Layer.

Contains the batch orchestration engine (scheduler, classifier, aggregator),
the service that runs one protection change end to end, and the command
handler the CLI delegates to.
"""
