"""Provenance store errors."""

from __future__ import annotations

from aifiles.errors import AIFilesError


class StorageError(AIFilesError):
    """Raised when the provenance database cannot be opened or updated."""

    hint = "Check that ~/.aifiles/database.sqlite is readable and not locked."


class RecordNotFoundError(StorageError):
    """Raised when a record id or discovered path is unknown."""

    hint = "Run `aifiles history list` to see known records."


__all__ = ["RecordNotFoundError", "StorageError"]
