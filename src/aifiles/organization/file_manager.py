"""Restore, revert and reconcile organized files after the fact."""

from __future__ import annotations

import logging
import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from aifiles.provenance import (
    DiscoveryStatus,
    OrganizationUpdate,
    OrganizedFileRecord,
    ProvenanceStore,
    RecordNotFoundError,
)
from aifiles.templates import Template, TemplateStore, expand_path

from .errors import OrganizationError
from .executor import unique_destination
from .models import ReconcileReport

LOGGER = logging.getLogger(__name__)


def _stat_facts(path: Path) -> tuple[Optional[int], Optional[datetime]]:
    try:
        stat = path.stat()
    except OSError as exc:
        LOGGER.debug("Could not stat %s: %s", path, exc)
        return None, None
    return stat.st_size, datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)


class FileManager:
    """Maintenance operations over provenance records and discovered files.

    Nothing here classifies files; every operation works from what the
    provenance database already knows.
    """

    def __init__(self, store: ProvenanceStore, templates: TemplateStore) -> None:
        self._store = store
        self._templates = templates

    def restore(self, record_id: str) -> OrganizedFileRecord:
        """Copy the backup of ``record_id`` back to its original location.

        The organized copy stays where it is. When a file already occupies the
        original path the restored copy gets a ``-N`` suffix. The record then
        points at the restored file, which is marked unorganized.

        Raises:
            RecordNotFoundError: If ``record_id`` is unknown.
            OrganizationError: If there is no usable backup or the copy fails.
        """
        record = self._store.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record '{record_id}' not found")
        if not record.backup_path:
            raise OrganizationError(f"Record '{record_id}' has no backup to restore")
        backup = Path(record.backup_path)
        if not backup.is_file():
            raise OrganizationError(
                f"Backup file is missing: {backup}",
                hint="Backups live in organization.backup_dir; it may have been cleaned up.",
            )

        original = Path(record.original_path)
        try:
            original.parent.mkdir(parents=True, exist_ok=True)
            target = unique_destination(original)
            shutil.copy2(backup, target)
        except OSError as exc:
            raise OrganizationError(f"Unable to restore {backup} to {original}: {exc}") from exc
        LOGGER.info("Restored %s -> %s", backup, target)

        updated = self._store.update_organization(
            record_id,
            OrganizationUpdate(current_path=str(target), current_name=target.name),
        )
        size, modified = _stat_facts(target)
        self._store.record_discovered(
            target,
            status=DiscoveryStatus.UNORGANIZED,
            file_size=size,
            file_modified_at=modified,
            template_id=record.template_id,
        )
        return updated

    def revert(self, record_id: str, version: int) -> OrganizedFileRecord:
        """Bring back the title, category, summary and tags of ``version``.

        Raises:
            RecordNotFoundError: If the record or the version is unknown.
        """
        return self._store.revert_to_version(record_id, version)

    def reconcile(
        self,
        templates: Optional[Sequence[Template]] = None,
        *,
        prune_records: bool = False,
    ) -> ReconcileReport:
        """Bring discovered files and records in line with the file system.

        Every non-hidden file under each template base path is indexed as
        organized when a record points at it, unorganized otherwise. Discovered
        entries whose file is gone are dropped.

        Args:
            templates: Templates to index; every template when omitted.
            prune_records: Also delete records whose current file is gone.

        Returns:
            ReconcileReport: What was indexed and removed.
        """
        report = ReconcileReport()
        for template in templates if templates is not None else self._templates.all():
            root = expand_path(template.base_path)
            if not root.is_dir():
                LOGGER.warning("Skipping template %s: %s is not a directory", template.id, root)
                report.skipped_templates.append(template.id)
                continue
            for path in _visible_files(root):
                self._index(path, template, report)

        for file_path in self._store.discovered_paths():
            if not Path(file_path).exists():
                self._store.remove_discovered(file_path)
                report.pruned_discovered += 1
                LOGGER.debug("Dropped missing discovered file %s", file_path)

        if prune_records:
            for record_id, current_path in self._store.record_locations():
                if not Path(current_path).exists():
                    self._store.delete_record(record_id)
                    report.pruned_records += 1
                    LOGGER.info("Deleted record %s: %s no longer exists", record_id, current_path)
        return report

    def _index(self, path: Path, template: Template, report: ReconcileReport) -> None:
        record = self._store.get_by_path(path)
        if record is not None:
            status = DiscoveryStatus.ORGANIZED
            template_id = record.template_id
            report.organized += 1
        else:
            status = DiscoveryStatus.UNORGANIZED
            template_id = template.id
            report.unorganized += 1
        size, modified = _stat_facts(path)
        self._store.record_discovered(
            path,
            status=status,
            file_size=size,
            file_modified_at=modified,
            template_id=template_id,
        )
        report.indexed += 1


def _visible_files(root: Path) -> list[Path]:
    files: list[Path] = []
    for directory, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if not name.startswith("."))
        for name in sorted(filenames):
            if not name.startswith("."):
                files.append(Path(directory) / name)
    return files


__all__ = ["FileManager"]
