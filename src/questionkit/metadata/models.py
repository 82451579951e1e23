"""Metadata schema definitions using Pydantic."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, PrivateAttr
from pydantic import Field as PydanticField

DATE_TYPES = {"type/Date", "type/DateTime", "type/Time"}


class Database(BaseModel):
    """A database known to the catalog."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    engine: str = "duckdb"


class Field(BaseModel):
    """A column of a table, with its semantic type annotations."""

    model_config = ConfigDict(frozen=True)

    id: int
    table_id: int
    name: str
    display_name: str | None = None
    base_type: str = "type/*"
    special_type: str | None = None

    def is_date(self) -> bool:
        return self.base_type in DATE_TYPES or self.special_type in DATE_TYPES

    def is_pk(self) -> bool:
        return self.special_type == "type/PK"

    def reference(self) -> list:
        """MBQL field reference for this field."""
        return ["field-id", self.id]


class Table(BaseModel):
    """A table of a database."""

    model_config = ConfigDict(frozen=True)

    id: int
    db_id: int
    name: str
    display_name: str | None = None
    schema_name: str | None = None

    def qualified_name(self) -> str:
        if self.schema_name:
            return f'"{self.schema_name}"."{self.name}"'
        return f'"{self.name}"'


class Metadata(BaseModel):
    """Catalog accessor keyed by id.

    Lookups return ``None`` on a miss; the catalog is never mutated by
    questions or queries.
    """

    model_config = ConfigDict(frozen=True)

    databases: dict[int, Database] = PydanticField(default_factory=dict)
    tables: dict[int, Table] = PydanticField(default_factory=dict)
    fields: dict[int, Field] = PydanticField(default_factory=dict)

    _fields_by_table: dict[int, list[Field]] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context) -> None:
        by_table: dict[int, list[Field]] = {}
        for field in sorted(self.fields.values(), key=lambda f: f.id):
            by_table.setdefault(field.table_id, []).append(field)
        self._fields_by_table = by_table

    @classmethod
    def from_lists(
        cls,
        databases: list[Database] = (),
        tables: list[Table] = (),
        fields: list[Field] = (),
    ) -> Metadata:
        return cls(
            databases={d.id: d for d in databases},
            tables={t.id: t for t in tables},
            fields={f.id: f for f in fields},
        )

    def database(self, database_id) -> Database | None:
        return self.databases.get(database_id)

    def table(self, table_id) -> Table | None:
        return self.tables.get(table_id)

    def field(self, field_id) -> Field | None:
        return self.fields.get(field_id)

    def fields_for_table(self, table_id) -> list[Field]:
        return list(self._fields_by_table.get(table_id, []))

    def pk_field(self, table_id) -> Field | None:
        for field in self._fields_by_table.get(table_id, []):
            if field.is_pk():
                return field
        return None

    def table_metadata(self, table_id) -> TableMetadata | None:
        table = self.table(table_id)
        if table is None:
            return None
        return TableMetadata(table=table, fields=self.fields_for_table(table_id))


class TableMetadata(BaseModel):
    """A table together with its fields, as consumed by query actions."""

    model_config = ConfigDict(frozen=True)

    table: Table
    fields: list[Field] = PydanticField(default_factory=list)

    @property
    def id(self) -> int:
        return self.table.id

    @property
    def db_id(self) -> int:
        return self.table.db_id

    def field(self, field_id) -> Field | None:
        for field in self.fields:
            if field.id == field_id:
                return field
        return None

    def pk_field(self) -> Field | None:
        for field in self.fields:
            if field.is_pk():
                return field
        return None
