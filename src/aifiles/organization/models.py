"""Organization transaction state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from aifiles.classification.models import ClassificationResult
from aifiles.templates.engine import PathResolution
from aifiles.templates.models import Template

from .errors import InvalidTransitionError


class OrganizeStage(str, Enum):
    """Stages a file passes through while being organized."""

    DISCOVERED = "discovered"
    CLASSIFIED = "classified"
    PATH_RESOLVED = "path_resolved"
    CONFIRMED = "confirmed"
    MOVED = "moved"
    RECORDED = "recorded"
    ANNOTATED = "annotated"
    ABORTED = "aborted"


_NEXT_STAGE = {
    OrganizeStage.DISCOVERED: OrganizeStage.CLASSIFIED,
    OrganizeStage.CLASSIFIED: OrganizeStage.PATH_RESOLVED,
    OrganizeStage.PATH_RESOLVED: OrganizeStage.CONFIRMED,
    OrganizeStage.CONFIRMED: OrganizeStage.MOVED,
    OrganizeStage.MOVED: OrganizeStage.RECORDED,
    OrganizeStage.RECORDED: OrganizeStage.ANNOTATED,
}
TERMINAL_STAGES = frozenset({OrganizeStage.ANNOTATED, OrganizeStage.ABORTED})


@dataclass(slots=True)
class StageChange:
    """One entry in a transaction history."""

    stage: OrganizeStage
    at: datetime
    note: Optional[str] = None


@dataclass(slots=True)
class MoveResult:
    """Outcome of a backup followed by a move or copy.

    Attributes:
        source: File that was organized.
        destination: Final location; may differ from the requested path when a
            collision suffix was appended.
        backup_path: Backup written before the operation.
        operation: ``"move"`` or ``"copy"``.
    """

    source: Path
    destination: Path
    backup_path: Optional[Path]
    operation: str


@dataclass(slots=True)
class ReconcileReport:
    """Counts produced by :meth:`FileManager.reconcile`."""

    indexed: int = 0
    organized: int = 0
    unorganized: int = 0
    pruned_discovered: int = 0
    pruned_records: int = 0
    skipped_templates: list[str] = field(default_factory=list)


@dataclass
class OrganizeTransaction:
    """Progress of a single file through the organization pipeline.

    Stages only advance one step at a time, and ``ABORTED`` is reachable from
    every stage that is not terminal. Every change is kept in :attr:`history`.
    """

    source: Path
    stage: OrganizeStage = OrganizeStage.DISCOVERED
    template: Optional[Template] = None
    classification: Optional[ClassificationResult] = None
    resolution: Optional[PathResolution] = None
    destination: Optional[Path] = None
    move: Optional[MoveResult] = None
    record_id: Optional[str] = None
    abort_reason: Optional[str] = None
    history: list[StageChange] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append(StageChange(self.stage, datetime.now(timezone.utc)))

    @property
    def is_terminal(self) -> bool:
        """Return whether no further transitions are possible."""
        return self.stage in TERMINAL_STAGES

    @property
    def aborted(self) -> bool:
        """Return whether the transaction was aborted."""
        return self.stage is OrganizeStage.ABORTED

    def can_advance(self, stage: OrganizeStage) -> bool:
        """Return whether ``stage`` is reachable from the current stage."""
        if self.is_terminal:
            return False
        if stage is OrganizeStage.ABORTED:
            return True
        return _NEXT_STAGE.get(self.stage) is stage

    def advance(self, stage: OrganizeStage, note: Optional[str] = None) -> None:
        """Move to ``stage``.

        Raises:
            InvalidTransitionError: If ``stage`` is not reachable.
        """
        if not self.can_advance(stage):
            raise InvalidTransitionError(
                f"Cannot move from {self.stage.value} to {stage.value} for {self.source}"
            )
        self.stage = stage
        self.history.append(StageChange(stage, datetime.now(timezone.utc), note))

    def abort(self, reason: str) -> None:
        """Abort the transaction, recording ``reason``."""
        self.abort_reason = reason
        self.advance(OrganizeStage.ABORTED, reason)

    def stages(self) -> list[OrganizeStage]:
        """Return the stages visited so far, in order."""
        return [change.stage for change in self.history]


__all__ = [
    "MoveResult",
    "OrganizeStage",
    "OrganizeTransaction",
    "ReconcileReport",
    "StageChange",
    "TERMINAL_STAGES",
]
