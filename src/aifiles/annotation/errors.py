"""Annotation errors."""

from __future__ import annotations

from aifiles.errors import AIFilesError


class AnnotationError(AIFilesError):
    """Raised when tags or comments cannot be written to a file."""


class AnnotationUnsupportedError(AnnotationError):
    """Raised on platforms or filesystems without tag/comment support."""

    hint = "Disable annotations with `aifiles config set organization.add_tags --value false`."


__all__ = ["AnnotationError", "AnnotationUnsupportedError"]
