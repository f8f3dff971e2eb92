"""Offline classifier driven by MIME type and filename."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional, Sequence

from aifiles.templates.models import Template

from .models import ClassificationRequest, ClassificationResult

LOGGER = logging.getLogger(__name__)

_ARCHIVE_SUFFIXES = {".zip", ".tar", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".rar"}
_INSTALLER_SUFFIXES = {".dmg", ".pkg", ".exe", ".msi", ".deb", ".rpm", ".appimage"}
_SPREADSHEET_SUFFIXES = {".csv", ".tsv", ".xls", ".xlsx", ".ods"}
_DOCUMENT_MIMES = {
    "application/pdf",
    "application/msword",
    "application/rtf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
_PROMPT_HINTS = {"finance": "Finance", "legal": "Legal", "invoice": "Invoices"}
_TITLE_SEPARATORS_RE = re.compile(r"[\s_\-.]+")


class HeuristicClassifier:
    """Classify files without a model.

    Categories come from the MIME type and extension, titles from the filename.
    When a candidate template whitelists a folder named like the category, that
    folder is suggested.
    """

    provider = "heuristic"

    def __init__(self, model: str = "builtin") -> None:
        self.model = model

    def classify(self, request: ClassificationRequest) -> ClassificationResult:
        """Classify ``request`` using filename and MIME heuristics."""
        mime = request.mime_type.lower()
        path = request.path
        category = self._category_from_mime(mime, path)
        title = self._title_from_name(path)

        subcategories: list[str] = []
        if request.prompt:
            lowered = request.prompt.lower()
            for keyword, label in _PROMPT_HINTS.items():
                if keyword in lowered and label != category and label not in subcategories:
                    subcategories.append(label)

        tags = [category]
        suffix = path.suffix.lower().lstrip(".")
        if suffix and suffix not in (tag.lower() for tag in tags):
            tags.append(suffix)

        summary = f"{category} file {request.file_name} ({mime})"
        template_id, folder = self._match_folder(category, request.templates)
        LOGGER.debug("Heuristic classification of %s: %s / %s", path, category, title)
        return ClassificationResult(
            category=category,
            title=title,
            tags=tags,
            summary=summary,
            subcategories=subcategories,
            selected_template_id=template_id,
            selected_folder_path=folder,
        )

    def _category_from_mime(self, mime: str, path: Path) -> str:
        """Derive a category from MIME type or extension."""
        suffix = path.suffix.lower()
        if suffix in _ARCHIVE_SUFFIXES:
            return "Archives"
        if suffix in _INSTALLER_SUFFIXES:
            return "Installers"
        if suffix in _SPREADSHEET_SUFFIXES:
            return "Spreadsheets"
        if mime.startswith("image/"):
            return "Images"
        if mime.startswith("audio/"):
            return "Audio"
        if mime.startswith("video/"):
            return "Videos"
        if mime in _DOCUMENT_MIMES or mime.startswith("text/"):
            return "Documents"
        return "General"

    def _title_from_name(self, path: Path) -> str:
        title = _TITLE_SEPARATORS_RE.sub(" ", path.stem).strip()
        return title or "untitled"

    def _match_folder(
        self, category: str, templates: Sequence[Template]
    ) -> tuple[Optional[str], Optional[str]]:
        wanted = category.lower()
        for template in templates:
            for folder in template.folder_whitelist or []:
                if folder.rsplit("/", 1)[-1].lower() == wanted:
                    return template.id, folder
        return None, None


__all__ = ["HeuristicClassifier"]
