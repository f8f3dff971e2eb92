"""Template-related errors."""

from __future__ import annotations

from aifiles.errors import AIFilesError


class TemplateError(AIFilesError):
    """Raised when templates cannot be loaded, saved, or modified."""

    hint = "Check ~/.aifiles/templates.json or run `aifiles templates list`."


class TemplateNotFoundError(TemplateError):
    """Raised when a template id does not exist."""


class FolderValidationError(AIFilesError):
    """Describes a classifier-chosen folder outside a template whitelist.

    The engine records this instead of raising it: placement falls back to the
    first whitelisted folder.

    Attributes:
        suggested: Folder proposed by the classifier, if any.
        allowed: Whitelisted folders for the template.
        fallback: Folder that was used instead.
    """

    def __init__(self, suggested: str | None, allowed: list[str], fallback: str) -> None:
        self.suggested = suggested
        self.allowed = list(allowed)
        self.fallback = fallback
        if suggested:
            message = f"Classifier selected invalid folder '{suggested}' not in template structure"
        else:
            message = "Template has predefined folders but classifier provided no folder selection"
        super().__init__(message)

    def details(self) -> dict[str, object]:
        """Return a structured payload suitable for logging."""
        return {
            "suggested": self.suggested,
            "allowed": self.allowed,
            "fallback": self.fallback,
        }


__all__ = ["TemplateError", "TemplateNotFoundError", "FolderValidationError"]
