"""Interface for persisting a finished report."""

import abc

from branchguard.domain.models.report import BatchReport


class ReportSink(abc.ABC):

    @abc.abstractmethod
    def persist(self, report: BatchReport, destination: str) -> None:
        """Writes the report to durable storage.

        Args:
            report: The completed, immutable report.
            destination: Where to write it (e.g. a file path).
        """
        pass
