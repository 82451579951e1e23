"""Read-only catalog of databases, tables and fields."""

from questionkit.metadata.introspect import introspect_duckdb
from questionkit.metadata.models import Database, Field, Metadata, Table, TableMetadata

__all__ = ["Database", "Field", "Metadata", "Table", "TableMetadata", "introspect_duckdb"]
