"""Writes a BatchReport to disk as indented JSON (the ReportSink port)."""

import json
import logging
from pathlib import Path

from branchguard.domain.interfaces.report_sink import ReportSink
from branchguard.domain.models.report import BatchReport
from branchguard.infrastructure.resilience.sanitizer import redact

logger = logging.getLogger(__name__)


class JsonReportSink(ReportSink):

    def __init__(self, indent: int = 2):
        self.indent = indent

    def persist(self, report: BatchReport, destination: str) -> None:
        """Writes the report, creating parent directories as needed."""
        path = Path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Outcome errors are already redacted; this covers metadata as well.
        text = redact(json.dumps(report.to_dict(), indent=self.indent, ensure_ascii=False))
        path.write_text(text + "\n", encoding="utf-8")
        logger.debug(f"Wrote report with {report.total_items} item(s) to {path}")
