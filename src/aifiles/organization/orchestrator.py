"""Drive files from discovery to an annotated, recorded location."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from aifiles.annotation import Annotator
from aifiles.classification import (
    ClassificationError,
    ClassificationResult,
    Classifier,
    build_request,
)
from aifiles.config.models import AIFilesConfig
from aifiles.errors import AIFilesError
from aifiles.provenance import DiscoveryStatus, NewOrganization, ProvenanceStore
from aifiles.templates import (
    PathResolution,
    Template,
    TemplateNotFoundError,
    TemplateStore,
    apply_context,
    apply_revision,
    build_facts,
    expand_path,
    resolve_destination,
)
from aifiles.watch.events import FileAppeared

from .errors import OrganizationError
from .executor import OperationExecutor
from .models import OrganizeStage, OrganizeTransaction
from .review import ReviewDecision, Reviewer

LOGGER = logging.getLogger(__name__)


class Orchestrator:
    """Compose classification, path resolution, relocation and provenance.

    The manual flow (:meth:`organize_interactive`) asks a :class:`Reviewer`
    before anything is moved; the daemon flow (:meth:`handle_event`) moves
    files only for templates with ``auto_organize`` enabled.
    """

    def __init__(
        self,
        *,
        config: AIFilesConfig,
        templates: TemplateStore,
        store: ProvenanceStore,
        classifier: Classifier,
        annotator: Annotator,
        executor: OperationExecutor,
        dry_run: bool = False,
    ) -> None:
        """Wire the orchestrator to its collaborators.

        Args:
            config: Loaded configuration.
            templates: Template store used for selection.
            store: Provenance database.
            classifier: Classification provider.
            annotator: Tag and comment sink.
            executor: Backup and relocation executor.
            dry_run: Stop after confirmation without touching files.
        """
        self._config = config
        self._templates = templates
        self._store = store
        self._classifier = classifier
        self._annotator = annotator
        self._executor = executor
        self._dry_run = dry_run

    @property
    def dry_run(self) -> bool:
        """Return whether files are left untouched."""
        return self._dry_run

    def classify(self, path: Path, templates: Sequence[Template]) -> ClassificationResult:
        """Classify ``path`` with the configured provider.

        Raises:
            ClassificationError: If the provider fails or returns unusable output.
        """
        request = build_request(
            path,
            templates,
            prompt=self._config.llm.prompt,
            sample_size_kb=self._config.llm.sample_size_kb,
        )
        try:
            return self._classifier.classify(request)
        except ClassificationError:
            raise
        except Exception as exc:
            raise ClassificationError(
                f"Classifier {self._classifier.provider} failed for {path.name}: {exc}"
            ) from exc

    def select_template(
        self,
        result: ClassificationResult,
        template_id: Optional[str] = None,
    ) -> Template:
        """Pick the template for a manual organization.

        An explicit ``template_id`` wins, then the classifier's choice, then
        ``organization.default_template``.

        Raises:
            TemplateNotFoundError: If no candidate names a known template.
        """
        if template_id:
            return self._templates.require(template_id)
        if result.selected_template_id:
            selected = self._templates.get(result.selected_template_id)
            if selected is not None:
                return selected
            LOGGER.warning(
                "Classifier selected unknown template '%s'", result.selected_template_id
            )
        default_id = self._config.organization.default_template
        if default_id:
            default = self._templates.get(default_id)
            if default is not None:
                return default
        raise TemplateNotFoundError(
            "No template selected for this file",
            hint="Pass --template or set organization.default_template.",
        )

    def propose(self, txn: OrganizeTransaction, template: Template) -> PathResolution:
        """Resolve the destination of a classified transaction."""
        if txn.classification is None:
            raise OrganizationError(f"{txn.source} has not been classified")
        result = txn.classification
        facts = build_facts(result, txn.source)
        resolution = resolve_destination(
            template,
            facts,
            txn.source.suffix,
            result.selected_folder_path,
        )
        txn.template = template
        txn.resolution = resolution
        txn.destination = resolution.path
        txn.advance(OrganizeStage.PATH_RESOLVED)
        return resolution

    def organize_interactive(
        self,
        path: Path,
        reviewer: Reviewer,
        template_id: Optional[str] = None,
    ) -> OrganizeTransaction:
        """Organize one file with a reviewer in the loop.

        Args:
            path: File to organize.
            reviewer: Answers retry, revision, context and confirmation prompts.
            template_id: Template to use instead of letting the classifier pick.

        Returns:
            OrganizeTransaction: Final state; ``ABORTED`` when the reviewer gave
            up, ``CONFIRMED`` in dry-run mode, ``ANNOTATED`` otherwise.

        Raises:
            TemplateNotFoundError: If no template can be selected.
            OrganizationError: If the file cannot be backed up or relocated.
        """
        source = expand_path(path)
        if not source.is_file():
            raise OrganizationError(f"File not found: {source}")

        explicit = self._templates.require(template_id) if template_id else None
        candidates = [explicit] if explicit is not None else self._templates.all()
        txn = OrganizeTransaction(source=source)

        while True:
            try:
                result = self.classify(source, candidates)
                break
            except ClassificationError as exc:
                LOGGER.warning("Classification failed for %s: %s", source, exc)
                if not reviewer.retry_after_error(exc):
                    txn.abort(f"classification failed: {exc}")
                    return txn

        txn.classification = result
        txn.advance(OrganizeStage.CLASSIFIED)
        template = self.select_template(result, template_id)
        destination = self.propose(txn, template).path
        options = self._config.organization
        if options.prompt_for_revision:
            revision = reviewer.ask_revision(destination)
            if revision:
                destination = apply_revision(destination, revision.strip())
        if options.prompt_for_context:
            context = reviewer.ask_context(destination)
            if context:
                destination = apply_context(destination, context.strip())

        while True:
            decision = reviewer.confirm(source, destination)
            if decision is ReviewDecision.ACCEPT:
                break
            if decision is ReviewDecision.EDIT:
                destination = expand_path(reviewer.edit_path(destination))
                continue
            txn.abort("cancelled by user")
            return txn

        txn.destination = destination
        txn.advance(OrganizeStage.CONFIRMED)
        if self._dry_run:
            return txn
        return self.commit(txn)

    def handle_event(self, event: FileAppeared) -> OrganizeTransaction:
        """Process a file reported by the watcher.

        Errors affecting this file are logged and reflected in the returned
        transaction; they are never raised.
        """
        template = event.template
        txn = OrganizeTransaction(source=event.path)
        known = self._store.get_discovered(event.path)
        if known is not None and known.status is DiscoveryStatus.ORGANIZED:
            LOGGER.debug("Ignoring %s: already organized", event.path)
            txn.abort("already organized")
            return txn
        try:
            result = self.classify(event.path, [template])
        except ClassificationError as exc:
            LOGGER.error("Skipping %s: %s", event.path, exc)
            txn.abort(f"classification failed: {exc}")
            return txn

        txn.classification = result
        txn.advance(OrganizeStage.CLASSIFIED)
        self.propose(txn, template)

        if not template.auto_organize:
            LOGGER.info("Leaving %s for review (template %s)", event.path, template.id)
            if not self._dry_run:
                self._record_discovered(event.path, DiscoveryStatus.UNORGANIZED, template.id)
            return txn

        txn.advance(OrganizeStage.CONFIRMED)
        if self._dry_run:
            return txn
        try:
            return self.commit(txn)
        except AIFilesError as exc:
            LOGGER.error("Unable to organize %s: %s", event.path, exc)
            return txn

    def commit(self, txn: OrganizeTransaction) -> OrganizeTransaction:
        """Move, record and annotate a confirmed transaction.

        Raises:
            OrganizationError: If backup or relocation fails; the transaction is
                aborted and nothing is recorded.
        """
        if txn.destination is None or txn.classification is None:
            raise OrganizationError(f"{txn.source} has no confirmed destination")

        try:
            move = self._executor.execute(txn.source, txn.destination)
        except OrganizationError as exc:
            txn.abort(str(exc))
            raise
        txn.move = move
        txn.destination = move.destination
        txn.advance(OrganizeStage.MOVED)

        result = txn.classification
        template = txn.template
        try:
            txn.record_id = self._store.record_organization(
                NewOrganization(
                    original_path=str(txn.source),
                    current_path=str(move.destination),
                    backup_path=str(move.backup_path) if move.backup_path else None,
                    original_name=txn.source.name,
                    current_name=move.destination.name,
                    template_id=template.id if template else None,
                    template_name=template.name if template else None,
                    category=result.category,
                    title=result.title,
                    tags=result.tags,
                    summary=result.summary,
                    classifier_provider=self._classifier.provider,
                    classifier_model=self._classifier.model,
                    classifier_prompt=self._config.llm.prompt,
                    raw_classifier_output=result.raw_output or result.model_dump_json(),
                )
            )
        except AIFilesError as exc:
            txn.abort(str(exc))
            raise
        txn.advance(OrganizeStage.RECORDED)

        try:
            self._record_discovered(
                move.destination,
                DiscoveryStatus.ORGANIZED,
                template.id if template else None,
            )
            if move.operation == "move" and move.destination != txn.source:
                self._store.remove_discovered(txn.source)
        except AIFilesError as exc:
            LOGGER.warning("Could not update discovered files for %s: %s", move.destination, exc)

        self._annotate(move.destination, result)
        txn.advance(OrganizeStage.ANNOTATED)
        return txn

    def _annotate(self, path: Path, result: ClassificationResult) -> None:
        options = self._config.organization
        if options.add_tags and result.tags:
            try:
                self._annotator.add_tags(path, result.tags)
            except AIFilesError as exc:
                LOGGER.warning("Could not tag %s: %s", path, exc)
        if options.add_comments and result.summary:
            try:
                self._annotator.add_comment(path, result.summary)
            except AIFilesError as exc:
                LOGGER.warning("Could not comment %s: %s", path, exc)

    def _record_discovered(
        self,
        path: Path,
        status: DiscoveryStatus,
        template_id: Optional[str],
    ) -> None:
        size: Optional[int] = None
        modified: Optional[datetime] = None
        try:
            stat = path.stat()
        except OSError as exc:
            LOGGER.debug("Could not stat %s: %s", path, exc)
        else:
            size = stat.st_size
            modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        self._store.record_discovered(
            path,
            status=status,
            file_size=size,
            file_modified_at=modified,
            template_id=template_id,
        )


__all__ = ["Orchestrator"]
