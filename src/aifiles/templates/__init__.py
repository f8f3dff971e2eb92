"""Templates, path generation, and template persistence."""

from .defaults import default_templates
from .engine import (
    FolderValidation,
    PathResolution,
    apply_context,
    apply_revision,
    build_facts,
    change_case,
    expand_path,
    normalize_extension,
    render,
    resolve_destination,
    substitute,
    validate_folder,
)
from .errors import FolderValidationError, TemplateError, TemplateNotFoundError
from .models import CaseStyle, Template, normalize_folder
from .store import TEMPLATES_FILENAME, TemplateStore, parse_folder_structure

__all__ = [
    "CaseStyle",
    "FolderValidation",
    "FolderValidationError",
    "PathResolution",
    "TEMPLATES_FILENAME",
    "Template",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateStore",
    "apply_context",
    "apply_revision",
    "build_facts",
    "change_case",
    "default_templates",
    "expand_path",
    "normalize_extension",
    "normalize_folder",
    "parse_folder_structure",
    "render",
    "resolve_destination",
    "substitute",
    "validate_folder",
]
