"""Tag and comment annotation of organized files."""

from .annotators import Annotator, NullAnnotator, SystemAnnotator, clean_comment
from .errors import AnnotationError, AnnotationUnsupportedError

__all__ = [
    "AnnotationError",
    "AnnotationUnsupportedError",
    "Annotator",
    "NullAnnotator",
    "SystemAnnotator",
    "clean_comment",
]
