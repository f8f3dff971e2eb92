"""Organization pipeline: transactions, execution, and orchestration."""

from .errors import InvalidTransitionError, OrganizationError
from .executor import OperationExecutor, unique_destination
from .file_manager import FileManager
from .models import (
    MoveResult,
    OrganizeStage,
    OrganizeTransaction,
    ReconcileReport,
    StageChange,
)
from .orchestrator import Orchestrator
from .review import AutoReviewer, ReviewDecision, Reviewer

__all__ = [
    "AutoReviewer",
    "FileManager",
    "InvalidTransitionError",
    "MoveResult",
    "OperationExecutor",
    "Orchestrator",
    "OrganizationError",
    "OrganizeStage",
    "OrganizeTransaction",
    "ReconcileReport",
    "ReviewDecision",
    "Reviewer",
    "StageChange",
    "unique_destination",
]
