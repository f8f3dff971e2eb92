"""Base exception hierarchy shared by AIFiles components."""

from __future__ import annotations


class AIFilesError(Exception):
    """Base class for errors surfaced to AIFiles callers.

    Attributes:
        hint: Optional remedy text shown alongside the error message.
    """

    hint: str | None = None

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        if hint is not None:
            self.hint = hint


__all__ = ["AIFilesError"]
