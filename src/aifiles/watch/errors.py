"""Watcher errors."""

from __future__ import annotations

from aifiles.errors import AIFilesError


class PathUnavailableError(AIFilesError):
    """Raised when a template base path is not an accessible directory."""

    hint = "Create the directory or fix the template's base path."


__all__ = ["PathUnavailableError"]
