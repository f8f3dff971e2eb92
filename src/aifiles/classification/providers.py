"""Classifier providers and the factory selecting one from configuration."""

from __future__ import annotations

import logging
import shlex
import subprocess
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from aifiles.config.models import LLMSettings

from .base import Classifier
from .errors import ClassificationError
from .heuristic import HeuristicClassifier
from .models import ClassificationRequest, ClassificationResult
from .parsing import parse_classifier_output

LOGGER = logging.getLogger(__name__)


class CommandClassifier:
    """Delegate classification to an external program.

    The program receives the request as JSON on stdin and must print a JSON
    object with at least ``title`` and ``category`` on stdout.
    """

    provider = "command"

    def __init__(self, command: str, model: str = "default") -> None:
        self._argv = shlex.split(command)
        if not self._argv:
            raise ClassificationError(
                "The command provider needs a command",
                hint="Set it with `aifiles config set llm.command --value '<program>'`.",
            )
        self.model = model

    def classify(self, request: ClassificationRequest) -> ClassificationResult:
        """Run the command for ``request`` and parse its output."""
        try:
            completed = subprocess.run(
                self._argv,
                input=request.model_dump_json(),
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise ClassificationError(f"Unable to run classifier command: {exc}") from exc
        if completed.returncode != 0:
            detail = completed.stderr.strip() or f"exit status {completed.returncode}"
            raise ClassificationError(f"Classifier command failed: {detail}")
        return parse_classifier_output(completed.stdout)


class TimeoutClassifier:
    """Bound another classifier's calls by a wall-clock timeout."""

    def __init__(self, inner: Classifier, timeout_seconds: float) -> None:
        self._inner = inner
        self._timeout = timeout_seconds
        self.provider = inner.provider
        self.model = inner.model

    def classify(self, request: ClassificationRequest) -> ClassificationResult:
        """Classify ``request`` or raise :class:`ClassificationError` on timeout."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="aifiles-classify")
        try:
            future = executor.submit(self._inner.classify, request)
            try:
                return future.result(timeout=self._timeout)
            except FutureTimeoutError as exc:
                raise ClassificationError(
                    f"Classification of {request.file_name} timed out after {self._timeout:g}s"
                ) from exc
        finally:
            executor.shutdown(wait=False)


def create_classifier(settings: LLMSettings) -> Classifier:
    """Build the classifier described by the ``llm`` configuration section.

    Raises:
        ClassificationError: If the provider is unknown or misconfigured.
    """
    provider = settings.provider.lower()
    classifier: Classifier
    if provider == "heuristic":
        classifier = HeuristicClassifier(model=settings.model)
    elif provider == "command":
        classifier = CommandClassifier(settings.command or "", model=settings.model)
    else:
        raise ClassificationError(
            f"Unknown classifier provider '{settings.provider}'",
            hint="Supported providers: heuristic, command.",
        )

    if settings.timeout_seconds:
        LOGGER.debug("Bounding classification calls to %ss", settings.timeout_seconds)
        classifier = TimeoutClassifier(classifier, settings.timeout_seconds)
    return classifier


__all__ = ["CommandClassifier", "TimeoutClassifier", "create_classifier"]
