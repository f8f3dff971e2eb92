"""Organization errors."""

from __future__ import annotations

from aifiles.errors import AIFilesError


class OrganizationError(AIFilesError):
    """Raised when a file cannot be backed up, moved, or copied.

    The source file is left where it was; a backup may already exist.
    """


class InvalidTransitionError(AIFilesError):
    """Raised when a transaction is asked to move to an unreachable stage."""


__all__ = ["InvalidTransitionError", "OrganizationError"]
