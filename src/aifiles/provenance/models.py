"""Provenance domain models returned by :class:`ProvenanceStore`."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class DiscoveryStatus(str, Enum):
    """Whether a discovered file has been organized."""

    ORGANIZED = "organized"
    UNORGANIZED = "unorganized"


class NewOrganization(BaseModel):
    """Fields describing a completed organization, as written by the orchestrator."""

    original_path: str
    current_path: str
    backup_path: Optional[str] = None
    original_name: str
    current_name: str
    template_id: Optional[str] = None
    template_name: Optional[str] = None
    category: str = ""
    title: str = ""
    tags: List[str] = Field(default_factory=list)
    summary: str = ""
    classifier_provider: Optional[str] = None
    classifier_model: Optional[str] = None
    classifier_prompt: Optional[str] = None
    raw_classifier_output: Optional[str] = None


class OrganizationUpdate(BaseModel):
    """Partial update to a record; only fields explicitly set are applied."""

    current_path: Optional[str] = None
    current_name: Optional[str] = None
    backup_path: Optional[str] = None
    template_id: Optional[str] = None
    template_name: Optional[str] = None
    category: Optional[str] = None
    title: Optional[str] = None
    tags: Optional[List[str]] = None
    summary: Optional[str] = None
    classifier_provider: Optional[str] = None
    classifier_model: Optional[str] = None
    classifier_prompt: Optional[str] = None
    raw_classifier_output: Optional[str] = None

    def changes(self) -> Dict[str, object]:
        """Return the fields set on this update."""
        return self.model_dump(exclude_unset=True)


class OrganizedFileRecord(BaseModel):
    """Current provenance state of an organized file."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    original_path: str
    current_path: str
    backup_path: Optional[str] = None
    original_name: str
    current_name: str
    template_id: Optional[str] = None
    template_name: Optional[str] = None
    category: str = ""
    title: str = ""
    tags: List[str] = Field(default_factory=list)
    summary: str = ""
    classifier_provider: Optional[str] = None
    classifier_model: Optional[str] = None
    classifier_prompt: Optional[str] = None
    raw_classifier_output: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    version: int = Field(default=1, ge=1)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("category", "title", "summary", mode="before")
    @classmethod
    def _text(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class FileVersionSnapshot(BaseModel):
    """Immutable state of a record at a given version."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    record_id: str
    version: int
    path: str
    name: str
    category: str = ""
    title: str = ""
    tags: List[str] = Field(default_factory=list)
    summary: str = ""
    raw_output: Optional[str] = None
    created_at: datetime

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("category", "title", "summary", mode="before")
    @classmethod
    def _text(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class DiscoveredFileEntry(BaseModel):
    """A file seen by the watcher or CLI."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    file_path: str
    file_name: str
    status: DiscoveryStatus
    discovered_at: datetime
    last_checked_at: datetime
    file_size: Optional[int] = None
    file_modified_at: Optional[datetime] = None
    template_id: Optional[str] = None

    @field_validator("discovered_at", "last_checked_at", "file_modified_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class ProvenanceStats(BaseModel):
    """Aggregate counts over organized records."""

    total_records: int = 0
    total_versions: int = 0
    by_template: Dict[str, int] = Field(default_factory=dict)
    by_category: Dict[str, int] = Field(default_factory=dict)


class DiscoveredStats(BaseModel):
    """Aggregate counts over discovered files."""

    total: int = 0
    organized: int = 0
    unorganized: int = 0


__all__ = [
    "DiscoveredFileEntry",
    "DiscoveredStats",
    "DiscoveryStatus",
    "FileVersionSnapshot",
    "NewOrganization",
    "OrganizationUpdate",
    "OrganizedFileRecord",
    "ProvenanceStats",
]
