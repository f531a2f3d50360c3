"""The BatchReport aggregate and its serialization.

The report is the only bit-exact external surface of the tool. Consumers are
expected to tolerate new fields being added.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from branchguard.domain.models.work import ExecutionOutcome


@dataclass(frozen=True)
class RunMetadata:
    """Describes the run a report belongs to."""
    owner: str
    dry_run: bool = False
    custom_checks: Optional[Tuple[str, ...]] = None
    specific_repo: Optional[str] = None
    specific_branch: Optional[str] = None


@dataclass(frozen=True)
class ReportSummary:
    updated: int = 0
    simulated: int = 0
    skipped: int = 0
    errored: int = 0

    @property
    def total(self) -> int:
        return self.updated + self.simulated + self.skipped + self.errored

    def to_dict(self) -> Dict[str, int]:
        return {
            "updated": self.updated,
            "simulated": self.simulated,
            "skipped": self.skipped,
            "errored": self.errored,
            "total": self.total,
        }


@dataclass(frozen=True)
class BatchReport:
    """Write-once report of a complete run."""
    generated_at: datetime
    metadata: RunMetadata
    summary: ReportSummary
    details: Tuple[ExecutionOutcome, ...]

    @property
    def total_items(self) -> int:
        return len(self.details)

    @property
    def success_count(self) -> int:
        """Items that did not error (updated, simulated or skipped)."""
        return self.total_items - self.summary.errored

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generatedAt": self.generated_at.isoformat(),
            "owner": self.metadata.owner,
            "specificRepo": self.metadata.specific_repo,
            "specificBranch": self.metadata.specific_branch,
            "dryRun": self.metadata.dry_run,
            "customChecksUsed": list(self.metadata.custom_checks) if self.metadata.custom_checks else None,
            "summary": self.summary.to_dict(),
            "details": [outcome.to_dict() for outcome in self.details],
        }
