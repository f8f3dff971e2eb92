"""Classifier boundary: request/response models and providers."""

from .base import Classifier, build_request, detect_mime_type, read_content_sample
from .errors import ClassificationError
from .heuristic import HeuristicClassifier
from .models import ClassificationRequest, ClassificationResult
from .parsing import parse_classifier_output
from .providers import CommandClassifier, TimeoutClassifier, create_classifier

__all__ = [
    "ClassificationError",
    "ClassificationRequest",
    "ClassificationResult",
    "Classifier",
    "CommandClassifier",
    "HeuristicClassifier",
    "TimeoutClassifier",
    "build_request",
    "create_classifier",
    "detect_mime_type",
    "parse_classifier_output",
    "read_content_sample",
]
