"""Interaction points of the manual organization flow."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

from aifiles.classification.errors import ClassificationError


class ReviewDecision(str, Enum):
    """Answer to a proposed destination."""

    ACCEPT = "accept"
    EDIT = "edit"
    CANCEL = "cancel"


class Reviewer(Protocol):
    """Person (or script) reviewing a manual organization."""

    def retry_after_error(self, error: ClassificationError) -> bool:
        """Return ``True`` to classify again after ``error``."""
        ...

    def ask_revision(self, proposal: Path) -> Optional[str]:
        """Return a revision label for ``proposal`` or ``None`` to skip."""
        ...

    def ask_context(self, proposal: Path) -> Optional[str]:
        """Return a context prefix for ``proposal`` or ``None`` to skip."""
        ...

    def confirm(self, source: Path, proposal: Path) -> ReviewDecision:
        """Decide whether ``source`` should go to ``proposal``."""
        ...

    def edit_path(self, proposal: Path) -> Path:
        """Return a replacement destination for ``proposal``."""
        ...


class AutoReviewer:
    """Reviewer that accepts every proposal and never retries."""

    def retry_after_error(self, error: ClassificationError) -> bool:
        return False

    def ask_revision(self, proposal: Path) -> Optional[str]:
        return None

    def ask_context(self, proposal: Path) -> Optional[str]:
        return None

    def confirm(self, source: Path, proposal: Path) -> ReviewDecision:
        return ReviewDecision.ACCEPT

    def edit_path(self, proposal: Path) -> Path:
        return proposal


__all__ = ["AutoReviewer", "ReviewDecision", "Reviewer"]
