"""Classification errors."""

from __future__ import annotations

from aifiles.errors import AIFilesError


class ClassificationError(AIFilesError):
    """Raised when a classifier fails or returns unusable output."""

    hint = "Check the `llm` section of ~/.aifiles/config.yaml or retry."


__all__ = ["ClassificationError"]
