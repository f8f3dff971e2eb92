"""CLI tests driven through click's test runner."""

import json
import os
import time
from pathlib import Path

import pytest
from click.testing import CliRunner

from aifiles.cli import cli
from aifiles.config import ConfigManager
from aifiles.locking import LockMode
from aifiles.provenance import (
    DATABASE_FILENAME,
    DiscoveryStatus,
    OrganizationUpdate,
    ProvenanceStore,
)
from aifiles.templates import CaseStyle, Template, TemplateStore


@pytest.fixture(autouse=True)
def cli_env(aifiles_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COLUMNS", "250")
    monkeypatch.setenv("AIFILES__ORGANIZATION__ADD_TAGS", "false")
    monkeypatch.setenv("AIFILES__ORGANIZATION__ADD_COMMENTS", "false")
    monkeypatch.setenv("AIFILES__WATCH__USE_POLLING", "true")


@pytest.fixture()
def docs_root(tmp_path: Path, aifiles_home: Path) -> Path:
    root = tmp_path / "docs"
    TemplateStore(aifiles_home).replace_all(
        [
            Template(
                id="docs",
                name="Docs",
                base_path=str(root),
                naming_pattern="{category}/{title}",
                case_style=CaseStyle.KEBAB,
                folder_whitelist=["Contracts", "Documents"],
            )
        ]
    )
    return root


@pytest.fixture()
def agreement(tmp_path: Path) -> Path:
    inbox = tmp_path / "inbox"
    inbox.mkdir()
    path = inbox / "service_agreement.pdf"
    path.write_bytes(b"%PDF-1.4")
    return path


def _first_record_id(home: Path) -> str:
    store = ProvenanceStore(home / DATABASE_FILENAME)
    try:
        return store.list_records()[0].id
    finally:
        store.close()


def test_organize_moves_file(
    docs_root: Path, agreement: Path, aifiles_home: Path
) -> None:
    result = CliRunner().invoke(cli, ["organize", str(agreement), "--yes"])

    destination = docs_root / "Documents" / "service-agreement.pdf"
    assert result.exit_code == 0, result.output
    assert "Moved" in result.output
    assert destination.exists()
    assert not agreement.exists()
    assert not (aifiles_home / LockMode.NORMAL.filename).exists()
    assert list((aifiles_home / "backups").iterdir())


def test_organize_dry_run_leaves_file(docs_root: Path, agreement: Path) -> None:
    result = CliRunner().invoke(cli, ["organize", str(agreement), "--yes", "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "Would move" in result.output
    assert agreement.exists()
    assert not docs_root.exists()


def test_organize_cancel_exits_with_one(docs_root: Path, agreement: Path) -> None:
    result = CliRunner().invoke(cli, ["organize", str(agreement)], input="c\n")

    assert result.exit_code == 1
    assert "cancelled" in result.output
    assert agreement.exists()


def test_organize_edit_then_accept(docs_root: Path, agreement: Path, tmp_path: Path) -> None:
    custom = tmp_path / "elsewhere" / "contract.pdf"

    result = CliRunner().invoke(
        cli, ["organize", str(agreement), "--template", "docs"], input=f"e\n{custom}\na\n"
    )

    assert result.exit_code == 0, result.output
    assert custom.exists()


def test_organize_unknown_template(docs_root: Path, agreement: Path) -> None:
    result = CliRunner().invoke(cli, ["organize", str(agreement), "--template", "ghost", "-y"])

    assert result.exit_code == 1
    assert "Template 'ghost' not found" in result.output
    assert agreement.exists()


def test_organize_refuses_while_locked(
    docs_root: Path, agreement: Path, aifiles_home: Path
) -> None:
    aifiles_home.mkdir(parents=True, exist_ok=True)
    lock_path = aifiles_home / LockMode.NORMAL.filename
    lock_path.write_text(
        json.dumps(
            {"pid": os.getppid(), "startTime": int(time.time() * 1000), "command": "aifiles organize"}
        ),
        encoding="utf-8",
    )

    result = CliRunner().invoke(cli, ["organize", str(agreement), "--yes"])

    assert result.exit_code == 1
    assert "Another instance of AIFiles is already running!" in result.output
    assert f"kill {os.getppid()}" in result.output
    assert lock_path.exists()
    assert agreement.exists()


def test_history_commands(docs_root: Path, agreement: Path, aifiles_home: Path) -> None:
    runner = CliRunner()
    empty = runner.invoke(cli, ["history", "list"])
    assert empty.exit_code == 0
    assert "No organized files recorded yet." in empty.output

    runner.invoke(cli, ["organize", str(agreement), "--yes"])
    record_id = _first_record_id(aifiles_home)

    listing = runner.invoke(cli, ["history", "list"])
    assert listing.exit_code == 0
    assert record_id in listing.output

    found = runner.invoke(cli, ["history", "search", "AGREEMENT"])
    assert record_id in found.output
    missing = runner.invoke(cli, ["history", "search", "zebra"])
    assert "No records match 'zebra'." in missing.output

    shown = runner.invoke(cli, ["history", "show", record_id])
    assert shown.exit_code == 0
    assert "service agreement" in shown.output

    versions = runner.invoke(cli, ["history", "versions", record_id])
    assert versions.exit_code == 0
    assert "service-agreement.pdf" in versions.output

    deleted = runner.invoke(cli, ["history", "delete", record_id, "--yes"])
    assert deleted.exit_code == 0
    assert runner.invoke(cli, ["history", "show", record_id]).exit_code == 1
    assert runner.invoke(cli, ["history", "delete", record_id, "--yes"]).exit_code == 1


def test_history_restore_and_revert(
    docs_root: Path, agreement: Path, aifiles_home: Path
) -> None:
    runner = CliRunner()
    runner.invoke(cli, ["organize", str(agreement), "--yes"])
    record_id = _first_record_id(aifiles_home)

    restored = runner.invoke(cli, ["history", "restore", record_id, "--yes"])

    assert restored.exit_code == 0, restored.output
    assert "Restored" in restored.output
    assert agreement.read_bytes() == b"%PDF-1.4"
    assert not (aifiles_home / LockMode.FILEMANAGER.filename).exists()

    store = ProvenanceStore(aifiles_home / DATABASE_FILENAME)
    try:
        assert store.get(record_id).current_path == str(agreement)
        store.update_organization(record_id, OrganizationUpdate(title="Wrong"))
    finally:
        store.close()

    reverted = runner.invoke(cli, ["history", "revert", record_id, "1", "--yes"])
    assert reverted.exit_code == 0, reverted.output
    assert "now version 4" in reverted.output

    store = ProvenanceStore(aifiles_home / DATABASE_FILENAME)
    try:
        record = store.get(record_id)
    finally:
        store.close()
    assert record.title == "service agreement"
    assert record.current_path == str(agreement)

    unknown = runner.invoke(cli, ["history", "revert", record_id, "9", "--yes"])
    assert unknown.exit_code == 1
    assert "has no version 9" in unknown.output


def test_history_restore_can_be_declined(
    docs_root: Path, agreement: Path, aifiles_home: Path
) -> None:
    runner = CliRunner()
    runner.invoke(cli, ["organize", str(agreement), "--yes"])
    record_id = _first_record_id(aifiles_home)

    result = runner.invoke(cli, ["history", "restore", record_id], input="n\n")

    assert result.exit_code == 1
    assert not agreement.exists()


def test_scan_indexes_and_prunes(docs_root: Path, agreement: Path, aifiles_home: Path) -> None:
    runner = CliRunner()
    runner.invoke(cli, ["organize", str(agreement), "--yes"])
    organized = docs_root / "Documents" / "service-agreement.pdf"
    (docs_root / "notes.txt").write_text("loose", encoding="utf-8")

    scanned = runner.invoke(cli, ["scan"])

    assert scanned.exit_code == 0, scanned.output
    assert "Indexed 2 files (1 organized, 1 unorganized)" in scanned.output
    assert not (aifiles_home / LockMode.FILEMANAGER.filename).exists()

    organized.unlink()
    pruned = runner.invoke(cli, ["scan", "--template", "docs", "--prune-records"])

    assert pruned.exit_code == 0, pruned.output
    assert "removed 1 missing discovered files and 1 records" in pruned.output
    store = ProvenanceStore(aifiles_home / DATABASE_FILENAME)
    try:
        assert store.list_records() == []
        assert store.get_discovered(docs_root / "notes.txt").status is DiscoveryStatus.UNORGANIZED
    finally:
        store.close()


def test_scan_refuses_while_file_manager_runs(docs_root: Path, aifiles_home: Path) -> None:
    aifiles_home.mkdir(parents=True, exist_ok=True)
    lock_path = aifiles_home / LockMode.FILEMANAGER.filename
    lock_path.write_text(
        json.dumps(
            {"pid": os.getppid(), "startTime": int(time.time() * 1000), "command": "aifiles scan"}
        ),
        encoding="utf-8",
    )

    result = CliRunner().invoke(cli, ["scan"])

    assert result.exit_code == 1
    assert "Another instance of File Manager is already running!" in result.output
    assert lock_path.exists()


def test_scan_unknown_template(docs_root: Path, aifiles_home: Path) -> None:
    result = CliRunner().invoke(cli, ["scan", "--template", "ghost"])

    assert result.exit_code == 1
    assert "Template 'ghost' not found" in result.output
    assert not (aifiles_home / LockMode.FILEMANAGER.filename).exists()


def test_templates_commands(docs_root: Path, aifiles_home: Path, tmp_path: Path) -> None:
    runner = CliRunner()

    listing = runner.invoke(cli, ["templates", "list"])
    assert listing.exit_code == 0
    assert "docs" in listing.output

    enabled = runner.invoke(cli, ["templates", "enable", "docs", "--auto"])
    assert enabled.exit_code == 0
    template = TemplateStore(aifiles_home).require("docs")
    assert template.watch and template.auto_organize

    runner.invoke(cli, ["templates", "disable", "docs"])
    assert TemplateStore(aifiles_home).require("docs").watch is False

    shown = runner.invoke(cli, ["templates", "show", "docs"])
    assert '"naming_pattern": "{category}/{title}"' in shown.output

    created = runner.invoke(cli, ["templates", "create-folders", "docs"])
    assert created.exit_code == 0
    assert (docs_root / "Contracts").is_dir()

    structure = tmp_path / "folders.txt"
    structure.write_text("Letters\nForms\n", encoding="utf-8")
    imported = runner.invoke(cli, ["templates", "import-folders", "docs", str(structure)])
    assert "Imported 2 folder(s)" in imported.output

    exported = tmp_path / "docs.json"
    runner.invoke(cli, ["templates", "export", "docs", str(exported)])
    assert json.loads(exported.read_text(encoding="utf-8"))["id"] == "docs"

    removed = runner.invoke(cli, ["templates", "remove", "docs", "--yes"])
    assert removed.exit_code == 0
    assert runner.invoke(cli, ["templates", "show", "docs"]).exit_code == 1

    restored = runner.invoke(cli, ["templates", "import", str(exported)])
    assert restored.exit_code == 0
    assert TemplateStore(aifiles_home).require("docs").folder_whitelist == ["Letters", "Forms"]


def test_watch_without_templates_fails(docs_root: Path) -> None:
    result = CliRunner().invoke(cli, ["watch"])

    assert result.exit_code == 1
    assert "No watchable templates." in result.output


def test_watch_stops_on_interrupt(
    docs_root: Path, aifiles_home: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    docs_root.mkdir()

    def _interrupt(self, poll_timeout: float = 0.5) -> None:
        raise KeyboardInterrupt

    monkeypatch.setattr("aifiles.cli.WatchDaemon.run", _interrupt)

    result = CliRunner().invoke(cli, ["watch", "--template", "docs"])

    assert result.exit_code == 0, result.output
    assert "Watching docs" in result.output
    assert "Watch stopped by user request." in result.output
    assert not (aifiles_home / LockMode.WATCH.filename).exists()


def test_status_reports_counts(docs_root: Path) -> None:
    result = CliRunner().invoke(cli, ["status"])

    assert result.exit_code == 0
    assert "Instances" in result.output
    assert "Organized records: 0" in result.output


def test_config_view_and_set(aifiles_home: Path) -> None:
    runner = CliRunner()

    viewed = runner.invoke(cli, ["config", "view"])
    assert viewed.exit_code == 0
    assert "llm:" in viewed.output

    updated = runner.invoke(cli, ["config", "set", "organization.operation", "--value", "copy"])
    assert updated.exit_code == 0
    assert "Updated organization.operation." in updated.output
    assert ConfigManager().load(include_env=False).organization.operation == "copy"

    unchanged = runner.invoke(cli, ["config", "set", "organization.operation", "--value", "copy"])
    assert "No changes applied" in unchanged.output

    rejected = runner.invoke(cli, ["config", "set", "organization.operation", "--value", "shred"])
    assert rejected.exit_code == 1
