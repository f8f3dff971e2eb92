"""Path generation from naming patterns, case styles, and folder whitelists."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence

from .errors import FolderValidationError
from .models import CaseStyle, Template, normalize_folder

if TYPE_CHECKING:
    from aifiles.classification.models import ClassificationResult

LOGGER = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\{([^{}]+)\}")
_DISALLOWED_RE = re.compile(r"[^A-Za-z0-9\s\-_]")
_SEPARATOR_RE = re.compile(r"[\s\-_]+")
_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z0-9]+|[A-Z]+")
_LEADING_NON_WORD_RE = re.compile(r"^\W+")
_CATEGORY_SLOTS = 3


@dataclass(slots=True)
class FolderValidation:
    """Outcome of checking a suggested folder against a whitelist.

    Attributes:
        folder: Folder to place the file under, or ``None`` to keep the
            directories produced by the naming pattern.
        accepted: Whether the suggestion was used as given.
        error: Validation failure recorded when a fallback was applied.
    """

    folder: Optional[str]
    accepted: bool
    error: Optional[FolderValidationError] = None

    @property
    def reason(self) -> Optional[str]:
        """Return the validation failure message, if any."""
        return str(self.error) if self.error is not None else None


@dataclass(slots=True)
class PathResolution:
    """Destination computed for a file.

    Attributes:
        path: Absolute destination path including the extension.
        folder: Whitelisted or suggested folder used, if any.
        validation: Folder validation outcome.
    """

    path: Path
    folder: Optional[str]
    validation: FolderValidation


def expand_path(value: str | Path) -> Path:
    """Return ``value`` as an absolute path with ``~`` expanded."""
    return Path(os.path.abspath(os.path.expanduser(str(value))))


def _split_words(text: str) -> list[str]:
    words: list[str] = []
    for chunk in _SEPARATOR_RE.split(text):
        if not chunk:
            continue
        if chunk.upper() == chunk or chunk.lower() == chunk:
            words.append(chunk)
        else:
            words.extend(_WORD_RE.findall(chunk))
    return words


def _capitalize(word: str) -> str:
    if word.upper() == word:
        return word
    return word[:1].upper() + word[1:].lower()


def change_case(text: str, style: CaseStyle | str | None) -> str:
    """Convert ``text`` to the given case style.

    Characters outside ``[A-Za-z0-9 -_]`` are removed first. Text is split on
    whitespace, ``-`` and ``_``. Chunks mixing upper and lower case are split
    again on case transitions; digits stay attached to the letters before them.
    Words are then re-joined:

    * ``snake``: ``_`` separator, word case preserved
    * ``kebab``: ``-`` separator, lower case
    * ``camel`` / ``pascal``: no separator, capitalized words; all-caps words
      such as acronyms keep their case
    * ``upper_snake`` / ``lower_snake``: ``_`` separator, upper/lower case

    An unrecognized style returns the cleaned text untouched. Applying the same
    style twice gives the same result as applying it once.
    """
    cleaned = _DISALLOWED_RE.sub("", text)
    try:
        case = CaseStyle(style) if style is not None else CaseStyle.SNAKE
    except ValueError:
        return cleaned

    words = _split_words(cleaned)
    if case is CaseStyle.SNAKE:
        return "_".join(words)
    if case is CaseStyle.KEBAB:
        return "-".join(word.lower() for word in words)
    if case is CaseStyle.UPPER_SNAKE:
        return "_".join(word.upper() for word in words)
    if case is CaseStyle.LOWER_SNAKE:
        return "_".join(word.lower() for word in words)
    if case is CaseStyle.PASCAL:
        return "".join(_capitalize(word) for word in words)

    # camel lowers every word up to and including the first one holding a letter
    head: list[str] = []
    for index, word in enumerate(words):
        head.append(word.lower())
        if word.upper() != word.lower():
            return "".join(head) + "".join(_capitalize(rest) for rest in words[index + 1 :])
    return "".join(head)


def substitute(pattern: str, facts: Mapping[str, Any]) -> str:
    """Replace ``{key}`` tokens found in ``facts``; unknown tokens stay literal."""

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in facts:
            return match.group(0)
        value = facts[key]
        if value is None:
            return ""
        if isinstance(value, (list, tuple, set)):
            return ", ".join(str(item) for item in value)
        return str(value)

    return _TOKEN_RE.sub(_replace, pattern)


def normalize_extension(extension: str | None) -> str:
    """Return ``extension`` with exactly one leading dot, or ``""``."""
    if not extension:
        return ""
    return "." + extension.lstrip(".")


def render(
    pattern: str,
    facts: Mapping[str, Any],
    base_dir: str | Path,
    extension: str | None,
    case_style: CaseStyle | str | None = CaseStyle.SNAKE,
) -> Path:
    """Expand ``pattern`` under ``base_dir`` into an absolute file path.

    Args:
        pattern: Naming pattern, e.g. ``"{category}/{title}"``.
        facts: Values substituted into the pattern.
        base_dir: Directory the pattern is relative to; ``~`` is expanded.
        extension: File extension with or without the leading dot.
        case_style: Case style applied to the final segment.

    Returns:
        Path: Absolute destination path.
    """
    relative = substitute(pattern, facts).replace("\\", "/")
    segments = [segment for segment in relative.split("/") if segment not in ("", ".", "..")]
    name = segments.pop() if segments else ""
    name = change_case(_LEADING_NON_WORD_RE.sub("", name), case_style) or "untitled"
    folder = expand_path(base_dir).joinpath(*segments)
    return folder / f"{name}{normalize_extension(extension)}"


def validate_folder(
    suggestion: Optional[str],
    whitelist: Optional[Sequence[str]],
) -> FolderValidation:
    """Check a classifier-suggested folder against a template whitelist.

    With a non-empty whitelist only an exact (normalized) match is accepted; any
    other suggestion, or none at all, falls back to the first whitelist entry
    and logs the validation error. Without a whitelist the suggestion is taken
    as-is, except that paths climbing out of the base directory are dropped.
    """
    normalized = normalize_folder(suggestion) if suggestion else ""
    allowed = [normalize_folder(entry) for entry in whitelist or [] if normalize_folder(entry)]

    if allowed:
        if normalized and normalized in allowed:
            return FolderValidation(folder=normalized, accepted=True)
        error = FolderValidationError(suggestion or None, allowed, allowed[0])
        LOGGER.error("Folder validation failed: %s %s", error, error.details())
        return FolderValidation(folder=allowed[0], accepted=False, error=error)

    if not normalized:
        return FolderValidation(folder=None, accepted=True)
    if ".." in normalized.split("/"):
        LOGGER.warning("Ignoring suggested folder outside the base directory: %s", suggestion)
        return FolderValidation(folder=None, accepted=False)
    return FolderValidation(folder=normalized, accepted=True)


def resolve_destination(
    template: Template,
    facts: Mapping[str, Any],
    extension: str | None,
    suggested_folder: Optional[str] = None,
) -> PathResolution:
    """Compute where a file should land for ``template``.

    The naming pattern always produces the filename. When a folder is in play
    (the template has a whitelist, or the classifier suggested one) it replaces
    the directories produced by the pattern.
    """
    rendered = render(
        template.naming_pattern,
        facts,
        template.base_path,
        extension,
        template.case_style,
    )
    validation = validate_folder(suggested_folder, template.folder_whitelist)
    if validation.folder is None:
        return PathResolution(path=rendered, folder=None, validation=validation)

    destination = expand_path(template.base_path).joinpath(*validation.folder.split("/"))
    return PathResolution(
        path=destination / rendered.name,
        folder=validation.folder,
        validation=validation,
    )


def build_facts(
    result: "ClassificationResult",
    source: Path,
    *,
    today: Optional[date] = None,
) -> dict[str, Any]:
    """Build the substitution map for a classified file.

    Both short keys (``category``, ``title``) and the ``file_*`` keys used by
    the bundled templates are provided. Keys from ``result.extra`` are included
    but never override the classifier's named fields.
    """
    facts: dict[str, Any] = dict(result.extra)
    tags = ", ".join(result.tags)
    facts.update(
        {
            "category": result.category,
            "title": result.title,
            "summary": result.summary,
            "tags": tags,
            "file_category": result.category,
            "file_category_1": result.category,
            "file_title": result.title,
            "file_summary": result.summary,
            "file_tags": tags,
            "file_date_created": (today or date.today()).isoformat(),
            "original_name": source.stem,
        }
    )
    for slot in range(2, _CATEGORY_SLOTS + 1):
        facts.setdefault(f"file_category_{slot}", "")
    for index, subcategory in enumerate(result.subcategories, start=1):
        facts[f"subcategory_{index}"] = subcategory
        facts[f"file_category_{index + 1}"] = subcategory
    return facts


def apply_revision(path: Path, revision: str) -> Path:
    """Append ``-v<revision>`` to the filename stem."""
    return path.with_name(f"{path.stem}-v{revision}{path.suffix}")


def apply_context(path: Path, context: str) -> Path:
    """Prefix the filename with ``<context>-``."""
    return path.with_name(f"{context}-{path.stem}{path.suffix}")


__all__ = [
    "FolderValidation",
    "PathResolution",
    "apply_context",
    "apply_revision",
    "build_facts",
    "change_case",
    "expand_path",
    "normalize_extension",
    "render",
    "resolve_destination",
    "substitute",
    "validate_folder",
]
