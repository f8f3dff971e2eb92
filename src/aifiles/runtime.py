"""Assemble the organization pipeline from configuration."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from aifiles.annotation import Annotator, NullAnnotator, SystemAnnotator
from aifiles.classification import Classifier, create_classifier
from aifiles.config.models import AIFilesConfig
from aifiles.organization import FileManager, OperationExecutor, Orchestrator
from aifiles.provenance import DATABASE_FILENAME, ProvenanceStore
from aifiles.templates import TemplateStore

BACKUP_DIRNAME = "backups"


def backup_dir(config: AIFilesConfig, home: Path) -> Path:
    """Return the configured backup directory, defaulting to ``<home>/backups``."""
    configured = config.organization.backup_dir
    if configured:
        return Path(configured).expanduser()
    return home / BACKUP_DIRNAME


@dataclass
class Runtime:
    """Collaborators shared by one CLI invocation or daemon run."""

    home: Path
    config: AIFilesConfig
    templates: TemplateStore
    store: ProvenanceStore
    orchestrator: Orchestrator
    file_manager: FileManager

    def close(self) -> None:
        """Release database connections."""
        self.store.close()


def build_runtime(
    config: AIFilesConfig,
    home: Path,
    *,
    dry_run: bool = False,
    classifier: Optional[Classifier] = None,
    annotator: Optional[Annotator] = None,
) -> Runtime:
    """Create stores, classifier, annotator and orchestrator for ``config``.

    Args:
        config: Resolved configuration.
        home: Configuration directory holding templates and the database.
        dry_run: Whether the orchestrator should stop before touching files.
        classifier: Classifier to use instead of the configured provider.
        annotator: Annotator to use instead of the platform annotator.

    Returns:
        Runtime: Assembled collaborators.
    """
    home.mkdir(parents=True, exist_ok=True)
    templates = TemplateStore(home)
    store = ProvenanceStore(home / DATABASE_FILENAME)
    options = config.organization
    if annotator is None:
        annotator = (
            SystemAnnotator() if options.add_tags or options.add_comments else NullAnnotator()
        )
    orchestrator = Orchestrator(
        config=config,
        templates=templates,
        store=store,
        classifier=classifier or create_classifier(config.llm),
        annotator=annotator,
        executor=OperationExecutor(backup_dir(config, home), options.operation),
        dry_run=dry_run,
    )
    return Runtime(
        home=home,
        config=config,
        templates=templates,
        store=store,
        orchestrator=orchestrator,
        file_manager=FileManager(store, templates),
    )


__all__ = ["BACKUP_DIRNAME", "Runtime", "backup_dir", "build_runtime"]
