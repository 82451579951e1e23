"""Build a Metadata catalog from a DuckDB database."""

from __future__ import annotations

import logging
from pathlib import Path

import duckdb

from questionkit.metadata.models import Database, Field, Metadata, Table

logger = logging.getLogger(__name__)

# DuckDB type prefix -> MBQL base type
_BASE_TYPES = [
    ("timestamp", "type/DateTime"),
    ("date", "type/Date"),
    ("time", "type/Time"),
    ("bool", "type/Boolean"),
    ("decimal", "type/Decimal"),
    ("double", "type/Float"),
    ("float", "type/Float"),
    ("real", "type/Float"),
    ("interval", "type/*"),
    ("hugeint", "type/BigInteger"),
    ("bigint", "type/BigInteger"),
    ("int", "type/Integer"),
    ("smallint", "type/Integer"),
    ("tinyint", "type/Integer"),
    ("varchar", "type/Text"),
    ("text", "type/Text"),
    ("char", "type/Text"),
]


def duckdb_base_type(column_type: str) -> str:
    """Map a DuckDB column type name to a base type."""
    lower_type = column_type.lower()
    for prefix, base_type in _BASE_TYPES:
        if lower_type.startswith(prefix):
            return base_type
    return "type/*"


def _special_type(table_name: str, column_name: str, base_type: str) -> str | None:
    col = column_name.lower()
    table = table_name.lower()
    singular = table[:-1] if table.endswith("s") else table
    if col == "id" or col in {f"{table}_id", f"{singular}_id"}:
        return "type/PK"
    if col.endswith("_id"):
        return "type/FK"
    if base_type in {"type/Date", "type/DateTime"}:
        return None
    if col in {"created_at", "updated_at"}:
        return "type/DateTime"
    return None


def introspect_duckdb(
    db: duckdb.DuckDBPyConnection | Path | str,
    database_id: int = 1,
    database_name: str | None = None,
) -> Metadata:
    """
    Read tables and columns from DuckDB's information_schema.

    Ids are assigned sequentially, tables ordered by schema and name and
    fields by ordinal position, so the same database always yields the
    same ids.

    Args:
        db: Open DuckDB connection or path to a database file
        database_id: Id assigned to the database
        database_name: Display name (defaults to the file stem)

    Returns:
        Metadata catalog for the database
    """
    owns_conn = not isinstance(db, duckdb.DuckDBPyConnection)
    if owns_conn:
        path = Path(db)
        conn = duckdb.connect(str(path), read_only=True)
        name = database_name or path.stem
    else:
        conn = db
        name = database_name or "duckdb"

    try:
        table_rows = conn.execute(
            """
            SELECT table_schema, table_name
            FROM information_schema.tables
            WHERE table_type = 'BASE TABLE'
            ORDER BY table_schema, table_name
            """
        ).fetchall()

        tables: list[Table] = []
        fields: list[Field] = []
        next_field_id = 1
        for table_id, (schema_name, table_name) in enumerate(table_rows, start=1):
            tables.append(
                Table(
                    id=table_id,
                    db_id=database_id,
                    name=table_name,
                    display_name=table_name.replace("_", " ").title(),
                    schema_name=schema_name if schema_name != "main" else None,
                )
            )
            column_rows = conn.execute(
                """
                SELECT column_name, data_type
                FROM information_schema.columns
                WHERE table_schema = ? AND table_name = ?
                ORDER BY ordinal_position
                """,
                [schema_name, table_name],
            ).fetchall()
            for column_name, data_type in column_rows:
                base_type = duckdb_base_type(data_type)
                fields.append(
                    Field(
                        id=next_field_id,
                        table_id=table_id,
                        name=column_name,
                        display_name=column_name.replace("_", " ").title(),
                        base_type=base_type,
                        special_type=_special_type(table_name, column_name, base_type),
                    )
                )
                next_field_id += 1
    finally:
        if owns_conn:
            conn.close()

    logger.info("Introspected %d tables and %d fields from %s", len(tables), len(fields), name)
    return Metadata.from_lists(
        databases=[Database(id=database_id, name=name)],
        tables=tables,
        fields=fields,
    )
