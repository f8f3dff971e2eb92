"""SQLAlchemy tables backing the provenance database.

Records and their version snapshots are kept in separate tables. Snapshots are
owned by their record and are removed with it.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class ProvenanceBase(DeclarativeBase):
    pass


class FileRecordRow(ProvenanceBase):
    """Current state of an organized file."""

    __tablename__ = "file_records"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    original_path: Mapped[str] = mapped_column(Text)
    current_path: Mapped[str] = mapped_column(Text, index=True)
    backup_path: Mapped[Optional[str]] = mapped_column(Text)
    original_name: Mapped[str] = mapped_column(Text)
    current_name: Mapped[str] = mapped_column(Text)
    template_id: Mapped[Optional[str]] = mapped_column(String(255))
    template_name: Mapped[Optional[str]] = mapped_column(String(255))
    category: Mapped[str] = mapped_column(Text, default="")
    title: Mapped[str] = mapped_column(Text, default="")
    tags: Mapped[Optional[list]] = mapped_column(JSON)
    summary: Mapped[Optional[str]] = mapped_column(Text)
    classifier_provider: Mapped[Optional[str]] = mapped_column(String(255))
    classifier_model: Mapped[Optional[str]] = mapped_column(String(255))
    classifier_prompt: Mapped[Optional[str]] = mapped_column(Text)
    raw_classifier_output: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    version: Mapped[int] = mapped_column(Integer, default=1)

    versions: Mapped[List["FileVersionRow"]] = relationship(
        back_populates="record",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="FileVersionRow.version",
    )


class FileVersionRow(ProvenanceBase):
    """Immutable snapshot of a record at one version."""

    __tablename__ = "file_versions"
    __table_args__ = (
        UniqueConstraint("record_id", "version", name="uq_file_versions_record_version"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    record_id: Mapped[str] = mapped_column(
        ForeignKey("file_records.id", ondelete="CASCADE"), index=True
    )
    version: Mapped[int] = mapped_column(Integer)
    path: Mapped[str] = mapped_column(Text)
    name: Mapped[str] = mapped_column(Text)
    category: Mapped[str] = mapped_column(Text, default="")
    title: Mapped[str] = mapped_column(Text, default="")
    tags: Mapped[Optional[list]] = mapped_column(JSON)
    summary: Mapped[Optional[str]] = mapped_column(Text)
    raw_output: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime)

    record: Mapped["FileRecordRow"] = relationship(back_populates="versions")


class DiscoveredFileRow(ProvenanceBase):
    """File seen by the watcher or the CLI, organized or not."""

    __tablename__ = "discovered_files"
    __table_args__ = (Index("ix_discovered_files_status", "status"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    file_path: Mapped[str] = mapped_column(Text, unique=True)
    file_name: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(32))
    discovered_at: Mapped[datetime] = mapped_column(DateTime)
    last_checked_at: Mapped[datetime] = mapped_column(DateTime)
    file_size: Mapped[Optional[int]] = mapped_column(Integer)
    file_modified_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    template_id: Mapped[Optional[str]] = mapped_column(String(255))


__all__ = ["DiscoveredFileRow", "FileRecordRow", "FileVersionRow", "ProvenanceBase"]
