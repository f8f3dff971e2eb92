"""Additive schema upgrades for databases created by older releases."""

from __future__ import annotations

import logging

from sqlalchemy import MetaData, inspect, text
from sqlalchemy.engine import Engine

LOGGER = logging.getLogger(__name__)


def add_missing_columns(engine: Engine, metadata: MetaData) -> list[str]:
    """Add mapped columns that an existing table does not have yet.

    ``create_all`` never alters existing tables, so columns introduced after a
    database was created are appended with ``ALTER TABLE ... ADD COLUMN``. New
    columns are always nullable; rows written earlier read them as ``NULL``.

    Args:
        engine: Engine bound to the database to upgrade.
        metadata: Metadata describing the expected schema.

    Returns:
        list[str]: ``table.column`` names that were added.
    """
    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())
    preparer = engine.dialect.identifier_preparer
    added: list[str] = []

    with engine.begin() as connection:
        for table in metadata.sorted_tables:
            if table.name not in existing_tables:
                continue
            present = {column["name"] for column in inspector.get_columns(table.name)}
            for column in table.columns:
                if column.name in present:
                    continue
                column_type = column.type.compile(dialect=engine.dialect)
                connection.execute(
                    text(
                        f"ALTER TABLE {preparer.quote(table.name)} "
                        f"ADD COLUMN {preparer.quote(column.name)} {column_type}"
                    )
                )
                added.append(f"{table.name}.{column.name}")

    if added:
        LOGGER.info("Upgraded provenance schema: added %s", ", ".join(added))
    return added


__all__ = ["add_missing_columns"]
