"""Structured (MBQL) queries."""

from __future__ import annotations

from typing import Any

from questionkit.queries import mbql
from questionkit.queries.base import AtomicQuery
from questionkit.queries.classify import STRUCTURED_TYPE, QueryKind


def new_structured_query(database_id: Any = None, table_id: Any = None) -> dict:
    """Dataset query payload for a fresh structured query."""
    return {
        "type": STRUCTURED_TYPE,
        "database": database_id,
        "query": {"source_table": table_id},
    }


class StructuredQuery(AtomicQuery):
    """Wraps ``{"type": "query", "database": ..., "query": {...}}``."""

    kind = QueryKind.STRUCTURED

    def query(self) -> dict:
        """The MBQL body (``dataset_query["query"]``)."""
        return self._dataset_query.get("query") or {}

    def can_run(self) -> bool:
        return self.source_table_id() is not None

    def source_table_id(self) -> Any:
        return self.query().get("source_table")

    def table(self):
        return self.metadata().table(self.source_table_id())

    def aggregations(self) -> list:
        return mbql.get_aggregations(self.query())

    def breakouts(self) -> list:
        return mbql.get_breakouts(self.query())

    def filters(self) -> list:
        return mbql.get_filters(self.query())

    def limit(self) -> int | None:
        return self.query().get("limit")

    def is_bare_rows(self) -> bool:
        return len(self.aggregations()) == 0

    # Builders

    def _with_query(self, query: dict) -> StructuredQuery:
        return self._with_dataset_query({**self._dataset_query, "query": query})

    def reset(self) -> StructuredQuery:
        """Empty query against the same database."""
        return self._with_dataset_query(new_structured_query(self.database_id()))

    def set_table(self, table) -> StructuredQuery:
        """Point the query at ``table`` (a Table or a table id)."""
        if hasattr(table, "db_id"):
            return self._with_dataset_query(
                {
                    **self._dataset_query,
                    "database": table.db_id,
                    "query": {**self.query(), "source_table": table.id},
                }
            )
        return self._with_query({**self.query(), "source_table": table})

    def add_aggregation(self, aggregation: list) -> StructuredQuery:
        return self._with_query(mbql.add_aggregation(self.query(), aggregation))

    def clear_aggregations(self) -> StructuredQuery:
        return self._with_query(mbql.with_clause(self.query(), "aggregation", None))

    def add_breakout(self, breakout: Any) -> StructuredQuery:
        return self._with_query(mbql.add_breakout(self.query(), breakout))

    def remove_breakout(self, index: int) -> StructuredQuery:
        return self._with_query(mbql.remove_breakout(self.query(), index))

    def clear_breakouts(self) -> StructuredQuery:
        return self._with_query(mbql.with_clause(self.query(), "breakout", None))

    def add_filter(self, clause: list) -> StructuredQuery:
        return self._with_query(mbql.add_filter(self.query(), clause))

    def set_limit(self, limit: int | None) -> StructuredQuery:
        return self._with_query(mbql.with_clause(self.query(), "limit", limit))
