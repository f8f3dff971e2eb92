"""Data models exchanged with classification providers."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from aifiles.templates.models import Template


class ClassificationRequest(BaseModel):
    """Input handed to a classifier.

    Attributes:
        path: Absolute path of the file being classified.
        file_name: Base name of the file.
        content_sample: Leading text content, empty for binary files.
        mime_type: Detected MIME type.
        templates: Candidate templates the classifier may choose from.
        prompt: Optional user instruction.
    """

    path: Path
    file_name: str
    content_sample: str = ""
    mime_type: str = "application/octet-stream"
    templates: List[Template] = Field(default_factory=list)
    prompt: Optional[str] = None


class ClassificationResult(BaseModel):
    """Structured classifier output.

    Attributes:
        category: Primary category.
        title: Short descriptive title used for the filename.
        tags: Keywords describing the file.
        summary: Short description, written as the file comment.
        subcategories: Secondary categories, most specific last.
        selected_template_id: Template chosen by the classifier, if any.
        selected_folder_path: Folder chosen by the classifier, if any.
        extra: Additional facts available to naming patterns.
        raw_output: Provider output the result was parsed from.
    """

    category: str
    title: str
    tags: List[str] = Field(default_factory=list)
    summary: str = ""
    subcategories: List[str] = Field(default_factory=list)
    selected_template_id: Optional[str] = None
    selected_folder_path: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)
    raw_output: Optional[str] = None


__all__ = ["ClassificationRequest", "ClassificationResult"]
