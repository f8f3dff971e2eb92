"""Versioned provenance records stored in SQLite."""

from __future__ import annotations

import logging
import threading
import uuid
from collections import Counter
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .errors import RecordNotFoundError, StorageError
from .migrations import add_missing_columns
from .models import (
    DiscoveredFileEntry,
    DiscoveredStats,
    DiscoveryStatus,
    FileVersionSnapshot,
    NewOrganization,
    OrganizationUpdate,
    OrganizedFileRecord,
    ProvenanceStats,
)
from .schema import DiscoveredFileRow, FileRecordRow, FileVersionRow, ProvenanceBase

LOGGER = logging.getLogger(__name__)

DATABASE_FILENAME = "database.sqlite"
_SEARCH_ESCAPE = "\\"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def _set_sqlite_pragma(dbapi_conn, _connection_record) -> None:
    """Enable WAL and foreign keys on every new connection."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def _like_pattern(query: str) -> str:
    escaped = (
        query.replace(_SEARCH_ESCAPE, _SEARCH_ESCAPE * 2)
        .replace("%", f"{_SEARCH_ESCAPE}%")
        .replace("_", f"{_SEARCH_ESCAPE}_")
    )
    return f"%{escaped}%"


def _snapshot_of(row: FileRecordRow, created_at: datetime) -> FileVersionRow:
    return FileVersionRow(
        id=_new_id(),
        record_id=row.id,
        version=row.version,
        path=row.current_path,
        name=row.current_name,
        category=row.category or "",
        title=row.title or "",
        tags=list(row.tags or []),
        summary=row.summary or "",
        raw_output=row.raw_classifier_output,
        created_at=created_at,
    )


class ProvenanceStore:
    """Record where organized files came from and how they changed.

    Every public method runs in its own transaction; a crash mid-operation
    leaves the database at the previous committed state. Access from multiple
    threads is serialized by a single lock around one engine.
    """

    def __init__(self, database_path: Path | str) -> None:
        """Open (and create or upgrade) the database.

        Args:
            database_path: SQLite file location, or ``":memory:"``.

        Raises:
            StorageError: If the database cannot be opened or initialized.
        """
        self._lock = threading.RLock()
        self._path = str(database_path)
        try:
            if self._path == ":memory:":
                self._engine = create_engine(
                    "sqlite://",
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                )
            else:
                path = Path(self._path).expanduser()
                path.parent.mkdir(parents=True, exist_ok=True)
                self._engine = create_engine(
                    f"sqlite:///{path}",
                    connect_args={"check_same_thread": False},
                )
            event.listen(self._engine, "connect", _set_sqlite_pragma)
            ProvenanceBase.metadata.create_all(self._engine)
            add_missing_columns(self._engine, ProvenanceBase.metadata)
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(f"Unable to open provenance database {self._path}: {exc}") from exc
        self._sessions = sessionmaker(bind=self._engine, expire_on_commit=False)

    @property
    def path(self) -> str:
        """Return the database location."""
        return self._path

    def close(self) -> None:
        """Dispose of pooled connections."""
        self._engine.dispose()

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        with self._lock:
            try:
                with self._sessions.begin() as session:
                    yield session
            except SQLAlchemyError as exc:
                raise StorageError(f"Provenance database operation failed: {exc}") from exc

    # Organized records -------------------------------------------------

    def record_organization(self, entry: NewOrganization) -> str:
        """Insert a record at version 1 together with its first snapshot.

        Returns:
            str: Identifier of the new record.
        """
        now = _now()
        row = FileRecordRow(
            id=_new_id(),
            created_at=now,
            updated_at=now,
            version=1,
            **entry.model_dump(),
        )
        with self._transaction() as session:
            session.add(row)
            session.add(_snapshot_of(row, now))
        LOGGER.debug("Recorded organization %s -> %s", entry.original_path, entry.current_path)
        return row.id

    def update_organization(
        self, record_id: str, update: OrganizationUpdate
    ) -> OrganizedFileRecord:
        """Apply ``update`` and bump the record version.

        The pre-update state is snapshotted under the current version if that
        snapshot is missing, and the post-update state under the new version.

        Raises:
            RecordNotFoundError: If ``record_id`` is unknown.
        """
        with self._transaction() as session:
            row = session.get(FileRecordRow, record_id)
            if row is None:
                raise RecordNotFoundError(f"Record '{record_id}' not found")

            now = _now()
            existing = session.scalar(
                select(FileVersionRow.id).where(
                    FileVersionRow.record_id == record_id,
                    FileVersionRow.version == row.version,
                )
            )
            if existing is None:
                session.add(_snapshot_of(row, now))

            for field, value in update.changes().items():
                if field == "tags" and value is not None:
                    value = list(value)
                setattr(row, field, value)
            row.version += 1
            row.updated_at = now
            session.add(_snapshot_of(row, now))
            session.flush()
            return OrganizedFileRecord.model_validate(row)

    def delete_record(self, record_id: str) -> None:
        """Delete a record and all of its snapshots.

        Raises:
            RecordNotFoundError: If ``record_id`` is unknown.
        """
        with self._transaction() as session:
            row = session.get(FileRecordRow, record_id)
            if row is None:
                raise RecordNotFoundError(f"Record '{record_id}' not found")
            session.delete(row)

    def get(self, record_id: str) -> Optional[OrganizedFileRecord]:
        """Return the record with ``record_id`` or ``None``."""
        with self._transaction() as session:
            row = session.get(FileRecordRow, record_id)
            return OrganizedFileRecord.model_validate(row) if row is not None else None

    def get_by_path(self, current_path: str | Path) -> Optional[OrganizedFileRecord]:
        """Return the most recently updated record currently at ``current_path``."""
        with self._transaction() as session:
            row = session.scalars(
                select(FileRecordRow)
                .where(FileRecordRow.current_path == str(current_path))
                .order_by(FileRecordRow.updated_at.desc())
                .limit(1)
            ).first()
            return OrganizedFileRecord.model_validate(row) if row is not None else None

    def list_records(self, limit: int = 50, offset: int = 0) -> list[OrganizedFileRecord]:
        """Return records, most recently updated first."""
        with self._transaction() as session:
            rows = session.scalars(
                select(FileRecordRow)
                .order_by(FileRecordRow.updated_at.desc(), FileRecordRow.created_at.desc())
                .limit(limit)
                .offset(offset)
            ).all()
            return [OrganizedFileRecord.model_validate(row) for row in rows]

    def versions(self, record_id: str) -> list[FileVersionSnapshot]:
        """Return the snapshots of ``record_id`` in version order."""
        with self._transaction() as session:
            rows = session.scalars(
                select(FileVersionRow)
                .where(FileVersionRow.record_id == record_id)
                .order_by(FileVersionRow.version)
            ).all()
            return [FileVersionSnapshot.model_validate(row) for row in rows]

    def revert_to_version(self, record_id: str, version: int) -> OrganizedFileRecord:
        """Restore the classification fields of ``version`` as a new version.

        Title, category, summary, tags and raw classifier output come from the
        snapshot; the file location is left as it is now.

        Raises:
            RecordNotFoundError: If the record or the version is unknown.
        """
        with self._transaction() as session:
            snapshot = session.scalars(
                select(FileVersionRow).where(
                    FileVersionRow.record_id == record_id,
                    FileVersionRow.version == version,
                )
            ).first()
            if snapshot is None:
                raise RecordNotFoundError(f"Record '{record_id}' has no version {version}")
            update = OrganizationUpdate(
                title=snapshot.title or "",
                category=snapshot.category or "",
                summary=snapshot.summary or "",
                tags=list(snapshot.tags or []),
                raw_classifier_output=snapshot.raw_output,
            )
        LOGGER.info("Reverting record %s to version %d", record_id, version)
        return self.update_organization(record_id, update)

    def record_locations(self) -> list[tuple[str, str]]:
        """Return ``(record_id, current_path)`` for every record."""
        with self._transaction() as session:
            rows = session.execute(select(FileRecordRow.id, FileRecordRow.current_path)).all()
        return [(record_id, path) for record_id, path in rows]

    def search(self, query: str, limit: int = 20) -> list[OrganizedFileRecord]:
        """Case-insensitive substring search over title, summary, category and name.

        ``%`` and ``_`` in ``query`` match literally.
        """
        pattern = _like_pattern(query)
        columns = (
            FileRecordRow.title,
            FileRecordRow.summary,
            FileRecordRow.category,
            FileRecordRow.current_name,
        )
        with self._transaction() as session:
            rows = session.scalars(
                select(FileRecordRow)
                .where(or_(*(column.ilike(pattern, escape=_SEARCH_ESCAPE) for column in columns)))
                .order_by(FileRecordRow.updated_at.desc())
                .limit(limit)
            ).all()
            return [OrganizedFileRecord.model_validate(row) for row in rows]

    def stats(self) -> ProvenanceStats:
        """Return aggregate counts over organized records."""
        with self._transaction() as session:
            total_versions = session.scalar(select(func.count()).select_from(FileVersionRow))
            pairs = session.execute(
                select(FileRecordRow.template_id, FileRecordRow.category)
            ).all()
        by_template = Counter(template_id or "none" for template_id, _ in pairs)
        by_category = Counter(category or "uncategorized" for _, category in pairs)
        return ProvenanceStats(
            total_records=len(pairs),
            total_versions=total_versions or 0,
            by_template=dict(by_template),
            by_category=dict(by_category),
        )

    # Discovered files --------------------------------------------------

    def record_discovered(
        self,
        file_path: str | Path,
        *,
        status: DiscoveryStatus | str,
        file_size: Optional[int] = None,
        file_modified_at: Optional[datetime] = None,
        template_id: Optional[str] = None,
    ) -> DiscoveredFileEntry:
        """Insert or refresh the entry for ``file_path``.

        Re-discovering a known path keeps its id and ``discovered_at`` and
        updates status, size, modification time, template and
        ``last_checked_at``.
        """
        path = str(file_path)
        status_value = DiscoveryStatus(status).value
        now = _now()
        with self._transaction() as session:
            row = session.scalars(
                select(DiscoveredFileRow).where(DiscoveredFileRow.file_path == path)
            ).first()
            if row is None:
                row = DiscoveredFileRow(
                    id=_new_id(),
                    file_path=path,
                    file_name=Path(path).name,
                    discovered_at=now,
                )
                session.add(row)
            row.status = status_value
            row.last_checked_at = now
            row.file_size = file_size
            row.file_modified_at = file_modified_at
            row.template_id = template_id
            session.flush()
            return DiscoveredFileEntry.model_validate(row)

    def get_discovered(self, file_path: str | Path) -> Optional[DiscoveredFileEntry]:
        """Return the entry for ``file_path`` or ``None``."""
        with self._transaction() as session:
            row = session.scalars(
                select(DiscoveredFileRow).where(DiscoveredFileRow.file_path == str(file_path))
            ).first()
            return DiscoveredFileEntry.model_validate(row) if row is not None else None

    def discovered_by_status(
        self, status: DiscoveryStatus | str, limit: int = 100
    ) -> list[DiscoveredFileEntry]:
        """Return entries with ``status``, most recently checked first."""
        with self._transaction() as session:
            rows = session.scalars(
                select(DiscoveredFileRow)
                .where(DiscoveredFileRow.status == DiscoveryStatus(status).value)
                .order_by(DiscoveredFileRow.last_checked_at.desc())
                .limit(limit)
            ).all()
            return [DiscoveredFileEntry.model_validate(row) for row in rows]

    def discovered_paths(self) -> list[str]:
        """Return the path of every discovered entry."""
        with self._transaction() as session:
            return list(session.scalars(select(DiscoveredFileRow.file_path)).all())

    def update_discovered_status(
        self, file_path: str | Path, status: DiscoveryStatus | str
    ) -> DiscoveredFileEntry:
        """Change the status of a known entry.

        Raises:
            RecordNotFoundError: If ``file_path`` was never discovered.
        """
        with self._transaction() as session:
            row = session.scalars(
                select(DiscoveredFileRow).where(DiscoveredFileRow.file_path == str(file_path))
            ).first()
            if row is None:
                raise RecordNotFoundError(f"No discovered file at {file_path}")
            row.status = DiscoveryStatus(status).value
            row.last_checked_at = _now()
            session.flush()
            return DiscoveredFileEntry.model_validate(row)

    def remove_discovered(self, file_path: str | Path) -> bool:
        """Delete the entry for ``file_path``; return whether one existed."""
        with self._transaction() as session:
            row = session.scalars(
                select(DiscoveredFileRow).where(DiscoveredFileRow.file_path == str(file_path))
            ).first()
            if row is None:
                return False
            session.delete(row)
            return True

    def discovered_stats(self) -> DiscoveredStats:
        """Return counts of discovered files by status."""
        with self._transaction() as session:
            counts = dict(
                session.execute(
                    select(DiscoveredFileRow.status, func.count()).group_by(
                        DiscoveredFileRow.status
                    )
                ).all()
            )
        organized = counts.get(DiscoveryStatus.ORGANIZED.value, 0)
        unorganized = counts.get(DiscoveryStatus.UNORGANIZED.value, 0)
        return DiscoveredStats(
            total=organized + unorganized,
            organized=organized,
            unorganized=unorganized,
        )


__all__ = ["DATABASE_FILENAME", "ProvenanceStore"]
