"""Classifier interface and request construction."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Optional, Protocol, Sequence, runtime_checkable

from aifiles.templates.models import Template

from .models import ClassificationRequest, ClassificationResult

LOGGER = logging.getLogger(__name__)

_TEXT_MIME_PREFIXES = ("text/",)
_TEXT_MIME_TYPES = {
    "application/json",
    "application/xml",
    "application/x-yaml",
    "application/yaml",
    "application/javascript",
    "application/x-sh",
}


@runtime_checkable
class Classifier(Protocol):
    """Provider turning a file description into a classification."""

    provider: str
    model: str

    def classify(self, request: ClassificationRequest) -> ClassificationResult:
        """Classify one file.

        Raises:
            ClassificationError: If the provider fails or its output is unusable.
        """
        ...


def detect_mime_type(path: Path) -> str:
    """Guess a MIME type from the filename, defaulting to octet-stream."""
    mime, _ = mimetypes.guess_type(path.name)
    return mime or "application/octet-stream"


def read_content_sample(path: Path, mime_type: str, size_kb: int = 16) -> str:
    """Return up to ``size_kb`` kilobytes of text from ``path``.

    Binary files yield an empty string; unreadable files are logged and also
    yield an empty string.
    """
    if not (mime_type.startswith(_TEXT_MIME_PREFIXES) or mime_type in _TEXT_MIME_TYPES):
        return ""
    try:
        with path.open("rb") as handle:
            data = handle.read(max(0, size_kb) * 1024)
    except OSError as exc:
        LOGGER.warning("Unable to read %s for classification: %s", path, exc)
        return ""
    return data.decode("utf-8", errors="replace")


def build_request(
    path: Path,
    templates: Sequence[Template] = (),
    *,
    prompt: Optional[str] = None,
    sample_size_kb: int = 16,
) -> ClassificationRequest:
    """Describe ``path`` for a classifier.

    Args:
        path: File to classify.
        templates: Candidate templates offered to the classifier.
        prompt: Optional user instruction.
        sample_size_kb: Size of the content sample in kilobytes.

    Returns:
        ClassificationRequest: Request ready for :meth:`Classifier.classify`.
    """
    mime_type = detect_mime_type(path)
    return ClassificationRequest(
        path=path,
        file_name=path.name,
        content_sample=read_content_sample(path, mime_type, sample_size_kb),
        mime_type=mime_type,
        templates=list(templates),
        prompt=prompt,
    )


__all__ = ["Classifier", "build_request", "detect_mime_type", "read_content_sample"]
