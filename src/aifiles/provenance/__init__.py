"""Versioned provenance records for organized and discovered files."""

from .errors import RecordNotFoundError, StorageError
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
from .store import DATABASE_FILENAME, ProvenanceStore

__all__ = [
    "DATABASE_FILENAME",
    "DiscoveredFileEntry",
    "DiscoveredStats",
    "DiscoveryStatus",
    "FileVersionSnapshot",
    "NewOrganization",
    "OrganizationUpdate",
    "OrganizedFileRecord",
    "ProvenanceStats",
    "ProvenanceStore",
    "RecordNotFoundError",
    "StorageError",
]
