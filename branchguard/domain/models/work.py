"""Work items, per-item outcomes and ephemeral retry state."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple

from branchguard.domain.errors import ErrorKind
from branchguard.domain.models.common import BranchName, CheckName, ItemId, OwnerName, RepositoryName


class TargetRef(Protocol):
    """What the engine needs to know about a target: a printable label."""

    @property
    def label(self) -> str:
        ...


@dataclass(frozen=True)
class BranchTarget:
    """A protected branch of a repository."""
    owner: OwnerName
    repository: RepositoryName
    branch: BranchName

    @property
    def label(self) -> str:
        return self.branch


@dataclass(frozen=True)
class WorkItem:
    """One unit of remote state to be inspected and possibly mutated."""
    id: ItemId
    display_name: str
    target: Any  # TargetRef; opaque to the engine apart from .label


class OutcomeStatus(str, Enum):
    SKIPPED = "skipped"
    SIMULATED = "simulated"
    UPDATED = "updated"
    ERRORED = "errored"


@dataclass(frozen=True)
class MutationOptions:
    """Options handed to the MutationExecutor for every item."""
    checks_to_remove: Tuple[CheckName, ...]


@dataclass(frozen=True)
class MutationResult:
    """Result of applying (or simulating) the change on one item.

    ``changes`` is always the explicit list of checks removed (or that would
    be removed); an empty list means there was nothing to do.
    """
    changes: Tuple[str, ...] = ()
    remaining: Tuple[str, ...] = ()
    applied: bool = False


@dataclass(frozen=True)
class ExecutionOutcome:
    """Classified result of processing exactly one WorkItem."""
    item_id: ItemId
    display_name: str
    target_label: str
    status: OutcomeStatus
    changes: Tuple[str, ...] = ()
    remaining: Tuple[str, ...] = ()
    reason: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serializes the outcome as one entry of the report's ``details``."""
        data: Dict[str, Any] = {
            "itemId": self.item_id,
            "repository": self.display_name,
            "branch": self.target_label,
            "status": self.status.value,
            "changes": list(self.changes),
        }
        if self.status in (OutcomeStatus.UPDATED, OutcomeStatus.SIMULATED):
            data["checksRemaining"] = list(self.remaining)
        if self.status is OutcomeStatus.SIMULATED:
            data["dryRun"] = True
        if self.reason is not None:
            data["reason"] = self.reason
        if self.error is not None:
            data["error"] = self.error
            data["errorKind"] = (self.error_kind or ErrorKind.UNKNOWN).value
        return data


@dataclass
class RetryState:
    """Per-invocation retry bookkeeping. Never persisted."""
    attempt: int = 0
    last_error: Optional[BaseException] = None
    next_delay: float = 0.0
    history: List[float] = field(default_factory=list)  # delays slept so far
