"""Interface for presenting run progress and results.

The command handler only talks to this port, so the same run can be shown on
a rich console or reduced to plain log lines in CI.
"""

import abc
from typing import Any

from branchguard.domain.models.report import BatchReport


class UserInterface(abc.ABC):
    """Abstract Base Class for everything the CLI shows to the operator."""

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Shows a run-fatal problem (bad settings, invalid token, failed listing).

        Args:
            error_message: Already redacted message text.
            **kwargs: Implementation specific styling options.
        """
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Shows a non-fatal condition, e.g. items that errored."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_summary(self, report: BatchReport) -> None:
        """Renders the per-item outcomes and summary counts of a run.

        Args:
            report: The completed run report.
        """
        pass
