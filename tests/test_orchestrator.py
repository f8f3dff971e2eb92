"""End-to-end tests for the organization pipeline."""

import logging
from pathlib import Path
from typing import Callable, Optional, Union

import pytest

from aifiles.annotation import AnnotationError, NullAnnotator
from aifiles.classification import (
    ClassificationError,
    ClassificationRequest,
    ClassificationResult,
)
from aifiles.config import AIFilesConfig
from aifiles.organization import (
    AutoReviewer,
    OperationExecutor,
    Orchestrator,
    OrganizationError,
    OrganizeStage,
    ReviewDecision,
)
from aifiles.provenance import DiscoveryStatus, ProvenanceStore, StorageError
from aifiles.templates import CaseStyle, Template, TemplateNotFoundError, TemplateStore
from aifiles.watch import FileAppeared

Outcome = Union[ClassificationResult, Exception]


class StubClassifier:
    provider = "stub"
    model = "test"

    def __init__(self, *outcomes: Outcome) -> None:
        self._outcomes = list(outcomes)
        self.requests: list[ClassificationRequest] = []

    def classify(self, request: ClassificationRequest) -> ClassificationResult:
        self.requests.append(request)
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class ScriptedReviewer(AutoReviewer):
    def __init__(
        self,
        *decisions: ReviewDecision,
        retry: bool = False,
        revision: Optional[str] = None,
        context: Optional[str] = None,
        edit_to: Optional[Path] = None,
    ) -> None:
        self.decisions = list(decisions) or [ReviewDecision.ACCEPT]
        self.retry = retry
        self.revision = revision
        self.context = context
        self.edit_to = edit_to
        self.proposals: list[Path] = []
        self.errors: list[ClassificationError] = []

    def retry_after_error(self, error: ClassificationError) -> bool:
        self.errors.append(error)
        return self.retry

    def ask_revision(self, proposal: Path) -> Optional[str]:
        return self.revision

    def ask_context(self, proposal: Path) -> Optional[str]:
        return self.context

    def confirm(self, source: Path, proposal: Path) -> ReviewDecision:
        self.proposals.append(proposal)
        return self.decisions.pop(0)

    def edit_path(self, proposal: Path) -> Path:
        assert self.edit_to is not None
        return self.edit_to


class RejectingAnnotator(NullAnnotator):
    def add_tags(self, path, tags) -> None:
        raise AnnotationError("tags unavailable")


def _agreement(folder: Optional[str] = "Legal/Misc", **overrides) -> ClassificationResult:
    fields = {
        "category": "Legal",
        "title": "Service Agreement",
        "tags": ["legal", "contract"],
        "summary": "Signed agreement",
        "selected_folder_path": folder,
    }
    fields.update(overrides)
    return ClassificationResult(**fields)


@pytest.fixture()
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "inbox").mkdir()
    return tmp_path


@pytest.fixture()
def source(workspace: Path) -> Path:
    path = workspace / "inbox" / "scan_0042.pdf"
    path.write_bytes(b"%PDF-1.4 agreement")
    return path


@pytest.fixture()
def store():
    provenance = ProvenanceStore(":memory:")
    yield provenance
    provenance.close()


@pytest.fixture()
def templates(workspace: Path) -> TemplateStore:
    store = TemplateStore(workspace / "config")
    store.replace_all(
        [
            Template(
                id="docs",
                name="Docs",
                base_path=str(workspace / "docs"),
                naming_pattern="{category}/{title}",
                case_style=CaseStyle.KEBAB,
                folder_whitelist=["Contracts", "Invoices"],
            ),
            Template(
                id="inbox",
                name="Inbox",
                base_path=str(workspace / "inbox"),
                naming_pattern="{category}/{title}",
                case_style=CaseStyle.SNAKE,
                watch=True,
            ),
        ]
    )
    return store


OrchestratorFactory = Callable[..., Orchestrator]


@pytest.fixture()
def make_orchestrator(
    workspace: Path, templates: TemplateStore, store: ProvenanceStore
) -> OrchestratorFactory:
    def _make(
        classifier: StubClassifier,
        *,
        annotator: Optional[NullAnnotator] = None,
        operation: str = "move",
        dry_run: bool = False,
        **organization: object,
    ) -> Orchestrator:
        config = AIFilesConfig.model_validate({"organization": organization})
        return Orchestrator(
            config=config,
            templates=templates,
            store=store,
            classifier=classifier,
            annotator=annotator if annotator is not None else NullAnnotator(),
            executor=OperationExecutor(workspace / "backups", operation),
            dry_run=dry_run,
        )

    return _make


def test_invalid_folder_falls_back_to_first_whitelist_entry(
    make_orchestrator: OrchestratorFactory,
    store: ProvenanceStore,
    source: Path,
    workspace: Path,
) -> None:
    annotator = NullAnnotator()
    orchestrator = make_orchestrator(StubClassifier(_agreement()), annotator=annotator)

    txn = orchestrator.organize_interactive(source, AutoReviewer(), "docs")

    expected = workspace / "docs" / "Contracts" / "service-agreement.pdf"
    assert txn.stage is OrganizeStage.ANNOTATED
    assert txn.destination == expected
    assert txn.resolution.validation.error is not None
    assert expected.read_bytes() == b"%PDF-1.4 agreement"
    assert not source.exists()

    record = store.get(txn.record_id)
    assert record.current_path == str(expected)
    assert record.original_path == str(source)
    assert record.template_id == "docs"
    assert record.classifier_provider == "stub"
    assert record.backup_path and Path(record.backup_path).exists()
    assert store.get_discovered(expected).status is DiscoveryStatus.ORGANIZED

    assert annotator.tags[expected] == ["legal", "contract"]
    assert annotator.comments[expected] == "Signed agreement"
    assert txn.stages() == [
        OrganizeStage.DISCOVERED,
        OrganizeStage.CLASSIFIED,
        OrganizeStage.PATH_RESOLVED,
        OrganizeStage.CONFIRMED,
        OrganizeStage.MOVED,
        OrganizeStage.RECORDED,
        OrganizeStage.ANNOTATED,
    ]


def test_whitelisted_folder_is_used(
    make_orchestrator: OrchestratorFactory, source: Path, workspace: Path
) -> None:
    orchestrator = make_orchestrator(StubClassifier(_agreement("Invoices")))

    txn = orchestrator.organize_interactive(source, AutoReviewer(), "docs")

    assert txn.destination == workspace / "docs" / "Invoices" / "service-agreement.pdf"
    assert txn.resolution.validation.accepted


def test_classifier_choice_selects_template(
    make_orchestrator: OrchestratorFactory, source: Path, workspace: Path
) -> None:
    classifier = StubClassifier(_agreement(None, selected_template_id="inbox"))
    orchestrator = make_orchestrator(classifier)

    txn = orchestrator.organize_interactive(source, AutoReviewer())

    assert txn.template.id == "inbox"
    assert txn.destination == workspace / "inbox" / "Legal" / "Service_Agreement.pdf"
    assert [template.id for template in classifier.requests[0].templates] == ["docs", "inbox"]


def test_missing_template_raises(make_orchestrator: OrchestratorFactory, source: Path) -> None:
    orchestrator = make_orchestrator(
        StubClassifier(_agreement(selected_template_id="ghost")), default_template=None
    )

    with pytest.raises(TemplateNotFoundError):
        orchestrator.organize_interactive(source, AutoReviewer())
    assert source.exists()


def test_retry_after_classification_error(
    make_orchestrator: OrchestratorFactory, source: Path
) -> None:
    classifier = StubClassifier(ClassificationError("bad output"), _agreement())
    reviewer = ScriptedReviewer(retry=True)
    orchestrator = make_orchestrator(classifier)

    txn = orchestrator.organize_interactive(source, reviewer, "docs")

    assert txn.stage is OrganizeStage.ANNOTATED
    assert len(classifier.requests) == 2
    assert [str(error) for error in reviewer.errors] == ["bad output"]


def test_declined_retry_aborts(
    make_orchestrator: OrchestratorFactory, store: ProvenanceStore, source: Path
) -> None:
    classifier = StubClassifier(RuntimeError("provider crashed"))
    orchestrator = make_orchestrator(classifier)

    txn = orchestrator.organize_interactive(source, ScriptedReviewer(retry=False), "docs")

    assert txn.aborted
    assert "provider crashed" in txn.abort_reason
    assert source.exists()
    assert store.list_records() == []


def test_edit_does_not_reclassify(
    make_orchestrator: OrchestratorFactory, source: Path, workspace: Path
) -> None:
    custom = workspace / "custom" / "agreement.pdf"
    classifier = StubClassifier(_agreement())
    reviewer = ScriptedReviewer(ReviewDecision.EDIT, ReviewDecision.ACCEPT, edit_to=custom)

    txn = make_orchestrator(classifier).organize_interactive(source, reviewer, "docs")

    assert txn.destination == custom
    assert custom.exists()
    assert reviewer.proposals[-1] == custom
    assert len(classifier.requests) == 1


def test_cancel_aborts_without_touching_file(
    make_orchestrator: OrchestratorFactory, store: ProvenanceStore, source: Path
) -> None:
    reviewer = ScriptedReviewer(ReviewDecision.CANCEL)

    txn = make_orchestrator(StubClassifier(_agreement())).organize_interactive(
        source, reviewer, "docs"
    )

    assert txn.aborted
    assert txn.abort_reason == "cancelled by user"
    assert source.exists()
    assert store.list_records() == []


def test_revision_and_context_are_applied(
    make_orchestrator: OrchestratorFactory, source: Path
) -> None:
    orchestrator = make_orchestrator(
        StubClassifier(_agreement("Invoices")),
        prompt_for_revision=True,
        prompt_for_context=True,
    )
    reviewer = ScriptedReviewer(revision="2", context="acme")

    txn = orchestrator.organize_interactive(source, reviewer, "docs")

    assert txn.destination.name == "acme-service-agreement-v2.pdf"
    assert reviewer.proposals == [txn.destination]


def test_dry_run_stops_after_confirmation(
    make_orchestrator: OrchestratorFactory, store: ProvenanceStore, source: Path, workspace: Path
) -> None:
    orchestrator = make_orchestrator(StubClassifier(_agreement()), dry_run=True)

    txn = orchestrator.organize_interactive(source, AutoReviewer(), "docs")

    assert txn.stage is OrganizeStage.CONFIRMED
    assert source.exists()
    assert not (workspace / "docs").exists()
    assert store.list_records() == []


def test_failed_relocation_keeps_source_and_writes_no_record(
    make_orchestrator: OrchestratorFactory, store: ProvenanceStore, source: Path, workspace: Path
) -> None:
    (workspace / "docs").write_text("a file where the base directory should be", encoding="utf-8")
    orchestrator = make_orchestrator(StubClassifier(_agreement()))

    with pytest.raises(OrganizationError):
        orchestrator.organize_interactive(source, AutoReviewer(), "docs")

    assert source.read_bytes() == b"%PDF-1.4 agreement"
    assert len(list((workspace / "backups").iterdir())) == 1
    assert store.list_records() == []


def test_copy_keeps_source(
    make_orchestrator: OrchestratorFactory, store: ProvenanceStore, source: Path
) -> None:
    orchestrator = make_orchestrator(StubClassifier(_agreement()), operation="copy")

    txn = orchestrator.organize_interactive(source, AutoReviewer(), "docs")

    assert source.exists()
    assert txn.destination.exists()
    assert txn.move.operation == "copy"


def test_discovered_upsert_failure_keeps_record(
    make_orchestrator: OrchestratorFactory,
    store: ProvenanceStore,
    source: Path,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    def _fail(*args, **kwargs):
        raise StorageError("database is locked")

    monkeypatch.setattr(store, "record_discovered", _fail)
    orchestrator = make_orchestrator(StubClassifier(_agreement()))

    with caplog.at_level(logging.WARNING, logger="aifiles.organization.orchestrator"):
        txn = orchestrator.organize_interactive(source, AutoReviewer(), "docs")

    assert txn.stage is OrganizeStage.ANNOTATED
    assert OrganizeStage.RECORDED in txn.stages()
    assert store.get(txn.record_id) is not None
    assert "Could not update discovered files" in caplog.text


def test_annotation_failure_is_only_a_warning(
    make_orchestrator: OrchestratorFactory, source: Path
) -> None:
    orchestrator = make_orchestrator(StubClassifier(_agreement()), annotator=RejectingAnnotator())

    txn = orchestrator.organize_interactive(source, AutoReviewer(), "docs")

    assert txn.stage is OrganizeStage.ANNOTATED


def _appeared(path: Path, template: Template) -> FileAppeared:
    return FileAppeared(path=path, file_name=path.name, template=template)


def test_daemon_leaves_file_when_auto_organize_is_off(
    make_orchestrator: OrchestratorFactory,
    templates: TemplateStore,
    store: ProvenanceStore,
    source: Path,
) -> None:
    orchestrator = make_orchestrator(StubClassifier(_agreement(None)))

    txn = orchestrator.handle_event(_appeared(source, templates.require("inbox")))

    assert txn.stage is OrganizeStage.PATH_RESOLVED
    assert source.exists()
    entry = store.get_discovered(source)
    assert entry.status is DiscoveryStatus.UNORGANIZED
    assert entry.template_id == "inbox"
    assert store.list_records() == []


def test_daemon_organizes_when_auto_organize_is_on(
    make_orchestrator: OrchestratorFactory,
    templates: TemplateStore,
    store: ProvenanceStore,
    source: Path,
    workspace: Path,
) -> None:
    template = templates.update("inbox", {"auto_organize": True})
    orchestrator = make_orchestrator(StubClassifier(_agreement(None)))

    txn = orchestrator.handle_event(_appeared(source, template))

    destination = workspace / "inbox" / "Legal" / "Service_Agreement.pdf"
    assert txn.stage is OrganizeStage.ANNOTATED
    assert destination.exists()
    assert store.get_discovered(destination).status is DiscoveryStatus.ORGANIZED

    again = orchestrator.handle_event(_appeared(destination, template))
    assert again.aborted
    assert again.abort_reason == "already organized"
    assert destination.exists()


def test_daemon_skips_unclassifiable_file(
    make_orchestrator: OrchestratorFactory, templates: TemplateStore, source: Path
) -> None:
    orchestrator = make_orchestrator(StubClassifier(ClassificationError("unreadable")))

    txn = orchestrator.handle_event(_appeared(source, templates.require("inbox")))

    assert txn.aborted
    assert source.exists()


def test_daemon_dry_run_records_nothing(
    make_orchestrator: OrchestratorFactory,
    templates: TemplateStore,
    store: ProvenanceStore,
    source: Path,
) -> None:
    template = templates.update("inbox", {"auto_organize": True})
    orchestrator = make_orchestrator(StubClassifier(_agreement(None)), dry_run=True)

    txn = orchestrator.handle_event(_appeared(source, template))

    assert txn.stage is OrganizeStage.CONFIRMED
    assert source.exists()
    assert store.get_discovered(source) is None
