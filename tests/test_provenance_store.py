"""Tests for the SQLite provenance store."""

import sqlite3
from pathlib import Path

import pytest

from aifiles.provenance import (
    DiscoveryStatus,
    NewOrganization,
    OrganizationUpdate,
    ProvenanceStore,
    RecordNotFoundError,
)


@pytest.fixture()
def store(tmp_path: Path):
    provenance = ProvenanceStore(tmp_path / "database.sqlite")
    yield provenance
    provenance.close()


def _organization(name: str = "agreement.pdf", **overrides) -> NewOrganization:
    fields = {
        "original_path": f"/inbox/{name}",
        "current_path": f"/docs/Contracts/{name}",
        "original_name": name,
        "current_name": name,
        "template_id": "documents",
        "template_name": "Documents",
        "category": "Legal",
        "title": "Service Agreement",
        "tags": ["legal", "contract"],
        "summary": "Signed service agreement",
        "classifier_provider": "heuristic",
        "classifier_model": "builtin",
    }
    fields.update(overrides)
    return NewOrganization(**fields)


def test_record_organization_creates_version_one(store: ProvenanceStore) -> None:
    record_id = store.record_organization(_organization())

    record = store.get(record_id)
    assert record is not None
    assert record.version == 1
    assert record.tags == ["legal", "contract"]
    assert record.backup_path is None
    assert record.created_at.tzinfo is not None

    snapshots = store.versions(record_id)
    assert [snapshot.version for snapshot in snapshots] == [1]
    assert snapshots[0].path == "/docs/Contracts/agreement.pdf"


def test_updates_snapshot_before_and_after(store: ProvenanceStore) -> None:
    record_id = store.record_organization(_organization())

    store.update_organization(record_id, OrganizationUpdate(title="Master Agreement"))
    updated = store.update_organization(
        record_id,
        OrganizationUpdate(current_path="/docs/Archive/agreement.pdf", tags=["archived"]),
    )

    assert updated.version == 3
    assert updated.title == "Master Agreement"
    assert updated.current_path == "/docs/Archive/agreement.pdf"
    assert updated.tags == ["archived"]
    assert updated.category == "Legal"

    snapshots = store.versions(record_id)
    assert [snapshot.version for snapshot in snapshots] == [1, 2, 3]
    assert snapshots[0].title == "Service Agreement"
    assert snapshots[1].title == "Master Agreement"
    assert snapshots[2].path == "/docs/Archive/agreement.pdf"


def test_update_leaves_unset_fields_alone(store: ProvenanceStore) -> None:
    record_id = store.record_organization(_organization())

    store.update_organization(record_id, OrganizationUpdate(summary=None))

    record = store.get(record_id)
    assert record.summary == ""
    assert record.title == "Service Agreement"
    assert OrganizationUpdate(title="x").changes() == {"title": "x"}


def test_update_unknown_record_raises(store: ProvenanceStore) -> None:
    with pytest.raises(RecordNotFoundError):
        store.update_organization("missing", OrganizationUpdate(title="x"))


def test_delete_cascades_to_versions(store: ProvenanceStore) -> None:
    record_id = store.record_organization(_organization())
    store.update_organization(record_id, OrganizationUpdate(title="Renamed"))

    store.delete_record(record_id)

    assert store.get(record_id) is None
    assert store.versions(record_id) == []
    assert store.stats().total_versions == 0
    with pytest.raises(RecordNotFoundError):
        store.delete_record(record_id)


def test_get_by_path_and_list(store: ProvenanceStore) -> None:
    first = store.record_organization(_organization("a.pdf"))
    second = store.record_organization(_organization("b.pdf"))

    assert store.get_by_path("/docs/Contracts/a.pdf").id == first
    assert store.get_by_path("/nowhere") is None
    assert {record.id for record in store.list_records()} == {first, second}
    assert len(store.list_records(limit=1)) == 1
    assert len(store.list_records(limit=10, offset=1)) == 1


def test_search_is_case_insensitive_substring(store: ProvenanceStore) -> None:
    agreement = store.record_organization(_organization())
    invoice = store.record_organization(
        _organization("march.pdf", category="Finance", title="March Invoice", summary="Utilities")
    )

    assert [record.id for record in store.search("AGREEMENT")] == [agreement]
    assert [record.id for record in store.search("utilit")] == [invoice]
    assert [record.id for record in store.search("march.pdf")] == [invoice]
    assert store.search("nothing-like-this") == []


def test_search_treats_wildcards_literally(store: ProvenanceStore) -> None:
    literal = store.record_organization(_organization("report.pdf", title="100% done"))
    store.record_organization(_organization("other.pdf", title="1000 items"))
    underscore = store.record_organization(_organization("a_b.txt", title="x", summary=""))
    store.record_organization(_organization("axb.txt", title="y", summary=""))

    assert [record.id for record in store.search("100%")] == [literal]
    assert [record.id for record in store.search("a_b")] == [underscore]


def test_stats_aggregate_records(store: ProvenanceStore) -> None:
    record_id = store.record_organization(_organization())
    store.record_organization(_organization("x.pdf", category="Finance", template_id=None))
    store.update_organization(record_id, OrganizationUpdate(title="t"))

    stats = store.stats()

    assert stats.total_records == 2
    assert stats.total_versions == 3
    assert stats.by_category == {"Legal": 1, "Finance": 1}
    assert stats.by_template == {"documents": 1, "none": 1}


def test_record_discovered_upserts_in_place(store: ProvenanceStore) -> None:
    first = store.record_discovered(
        "/inbox/a.pdf", status=DiscoveryStatus.UNORGANIZED, file_size=10, template_id="downloads"
    )
    second = store.record_discovered("/inbox/a.pdf", status="organized", file_size=12)

    assert second.id == first.id
    assert second.discovered_at == first.discovered_at
    assert second.last_checked_at >= first.last_checked_at
    assert second.status is DiscoveryStatus.ORGANIZED
    assert second.file_size == 12
    assert second.file_name == "a.pdf"
    assert store.discovered_stats().total == 1


def test_discovered_queries(store: ProvenanceStore) -> None:
    store.record_discovered("/inbox/a.pdf", status=DiscoveryStatus.UNORGANIZED)
    store.record_discovered("/inbox/b.pdf", status=DiscoveryStatus.UNORGANIZED)
    store.record_discovered("/docs/c.pdf", status=DiscoveryStatus.ORGANIZED)

    unorganized = store.discovered_by_status(DiscoveryStatus.UNORGANIZED)
    assert {entry.file_path for entry in unorganized} == {"/inbox/a.pdf", "/inbox/b.pdf"}

    changed = store.update_discovered_status("/inbox/a.pdf", DiscoveryStatus.ORGANIZED)
    assert changed.status is DiscoveryStatus.ORGANIZED

    assert store.remove_discovered("/inbox/b.pdf") is True
    assert store.remove_discovered("/inbox/b.pdf") is False
    assert store.get_discovered("/inbox/b.pdf") is None

    stats = store.discovered_stats()
    assert (stats.total, stats.organized, stats.unorganized) == (2, 2, 0)

    with pytest.raises(RecordNotFoundError):
        store.update_discovered_status("/missing", DiscoveryStatus.ORGANIZED)


def test_revert_to_version_restores_classification(store: ProvenanceStore) -> None:
    record_id = store.record_organization(_organization(raw_classifier_output='{"v": 1}'))
    store.update_organization(
        record_id,
        OrganizationUpdate(
            title="Master Agreement",
            category="Archive",
            tags=["old"],
            current_path="/docs/Archive/agreement.pdf",
            raw_classifier_output='{"v": 2}',
        ),
    )

    reverted = store.revert_to_version(record_id, 1)

    assert reverted.version == 3
    assert reverted.title == "Service Agreement"
    assert reverted.category == "Legal"
    assert reverted.tags == ["legal", "contract"]
    assert reverted.raw_classifier_output == '{"v": 1}'
    assert reverted.current_path == "/docs/Archive/agreement.pdf"
    assert [snapshot.version for snapshot in store.versions(record_id)] == [1, 2, 3]


def test_revert_to_unknown_version_raises(store: ProvenanceStore) -> None:
    record_id = store.record_organization(_organization())

    with pytest.raises(RecordNotFoundError, match="has no version 4"):
        store.revert_to_version(record_id, 4)
    with pytest.raises(RecordNotFoundError):
        store.revert_to_version("missing", 1)
    assert store.get(record_id).version == 1


def test_locations_and_discovered_paths(store: ProvenanceStore) -> None:
    first = store.record_organization(_organization("a.pdf"))
    store.record_discovered("/inbox/x.pdf", status=DiscoveryStatus.UNORGANIZED)
    store.record_discovered("/docs/y.pdf", status=DiscoveryStatus.ORGANIZED)

    assert store.record_locations() == [(first, "/docs/Contracts/a.pdf")]
    assert sorted(store.discovered_paths()) == ["/docs/y.pdf", "/inbox/x.pdf"]


def test_in_memory_store(tmp_path: Path) -> None:
    store = ProvenanceStore(":memory:")
    record_id = store.record_organization(_organization())

    assert store.get(record_id).title == "Service Agreement"
    store.close()


def test_opens_database_missing_new_columns(tmp_path: Path) -> None:
    database = tmp_path / "database.sqlite"
    connection = sqlite3.connect(database)
    connection.execute(
        """
        CREATE TABLE file_records (
            id VARCHAR(32) PRIMARY KEY,
            original_path TEXT,
            current_path TEXT,
            original_name TEXT,
            current_name TEXT,
            category TEXT,
            title TEXT,
            tags JSON,
            summary TEXT,
            created_at DATETIME,
            updated_at DATETIME,
            version INTEGER
        )
        """
    )
    connection.execute(
        "INSERT INTO file_records VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            "legacy",
            "/inbox/old.pdf",
            "/docs/old.pdf",
            "old.pdf",
            "old.pdf",
            "Legal",
            "Old",
            '["legal"]',
            "Legacy row",
            "2023-01-01 10:00:00.000000",
            "2023-01-01 10:00:00.000000",
            1,
        ),
    )
    connection.commit()
    connection.close()

    store = ProvenanceStore(database)
    try:
        record = store.get("legacy")
        assert record is not None
        assert record.backup_path is None
        assert record.template_id is None
        assert record.classifier_provider is None
        assert record.tags == ["legal"]

        updated = store.update_organization("legacy", OrganizationUpdate(backup_path="/b/old"))
        assert updated.backup_path == "/b/old"
        assert [snapshot.version for snapshot in store.versions("legacy")] == [1, 2]
    finally:
        store.close()
