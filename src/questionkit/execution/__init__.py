"""Execution collaborators: SQL compilation and DuckDB-backed APIs."""

from questionkit.execution.compile import CompileError, compile_dataset_query
from questionkit.execution.duckdb_api import (
    CardQueryApi,
    DatasetApi,
    DuckDBDatasetApi,
    QueryCancelled,
)

__all__ = [
    "CardQueryApi",
    "CompileError",
    "DatasetApi",
    "DuckDBDatasetApi",
    "QueryCancelled",
    "compile_dataset_query",
]
