"""Query abstraction shared by every query variant.

A query wraps a raw ``dataset_query`` payload plus the question that owns
it. Queries are values: builders return a new query and leave the receiver
untouched. Operations that only make sense for one variant are declared
here and refuse with InvalidVariantAccess, so calling them on the wrong
variant fails loudly instead of returning a default.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from questionkit.errors import InvalidVariantAccess
from questionkit.queries.classify import QueryKind

if TYPE_CHECKING:
    from questionkit.queries.multi import MultiQuery
    from questionkit.question import Question


class Query:
    kind: QueryKind

    def __init__(
        self,
        question: Question,
        dataset_query: dict,
        composite: MultiQuery | None = None,
        position: int | None = None,
    ):
        self._question = question
        self._dataset_query = dataset_query
        # Set for members of a composite query: the composite and the slot
        self._composite = composite
        self._position = position

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._dataset_query!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Query):
            return NotImplemented
        return type(self) is type(other) and self._dataset_query == other._dataset_query

    __hash__ = None

    def dataset_query(self) -> dict:
        """The raw payload. Callers must treat it as read-only."""
        return self._dataset_query

    def question(self) -> Question:
        """The owning question with this query applied to its card.

        A member of a composite query is written back into its slot, so the
        result is the owning composite question.
        """
        if self._composite is None:
            return self._question.set_query(self)
        current = self._composite.dataset_query().get("queries") or []
        if self._position < len(current) and current[self._position] is self._dataset_query:
            return self._composite.question()
        return self._composite.set_query_at(self._position, self).question()

    def metadata(self):
        return self._question.metadata()

    def can_run(self) -> bool:
        raise NotImplementedError

    def is_atomic(self) -> bool:
        return False

    def _refuse(self, operation: str):
        raise InvalidVariantAccess(type(self).__name__, operation)

    # Atomic-only
    def database_id(self) -> Any:
        self._refuse("database_id")

    def database(self):
        self._refuse("database")

    def set_database(self, database_id: Any) -> AtomicQuery:
        self._refuse("set_database")

    # Structured-only
    def source_table_id(self) -> Any:
        self._refuse("source_table_id")

    def table(self):
        self._refuse("table")

    def breakouts(self) -> list:
        self._refuse("breakouts")

    def aggregations(self) -> list:
        self._refuse("aggregations")

    def filters(self) -> list:
        self._refuse("filters")

    def limit(self) -> int | None:
        self._refuse("limit")

    def is_bare_rows(self) -> bool:
        self._refuse("is_bare_rows")

    def reset(self) -> Query:
        self._refuse("reset")

    def set_table(self, table) -> Query:
        self._refuse("set_table")

    def add_aggregation(self, aggregation: list) -> Query:
        self._refuse("add_aggregation")

    def clear_aggregations(self) -> Query:
        self._refuse("clear_aggregations")

    def add_breakout(self, breakout: Any) -> Query:
        self._refuse("add_breakout")

    def remove_breakout(self, index: int) -> Query:
        self._refuse("remove_breakout")

    def clear_breakouts(self) -> Query:
        self._refuse("clear_breakouts")

    def add_filter(self, clause: list) -> Query:
        self._refuse("add_filter")

    def set_limit(self, limit: int | None) -> Query:
        self._refuse("set_limit")

    # Native-only
    def query_text(self) -> str:
        self._refuse("query_text")

    def template_tags(self) -> dict:
        self._refuse("template_tags")

    def set_query_text(self, query_text: str) -> Query:
        self._refuse("set_query_text")

    # Multi-only
    def atomic_queries(self) -> list[AtomicQuery]:
        self._refuse("atomic_queries")

    def add_query(self, query: AtomicQuery) -> Query:
        self._refuse("add_query")

    def set_query_at(self, index: int, query: AtomicQuery) -> Query:
        self._refuse("set_query_at")

    def remove_query_at(self, index: int) -> Query:
        self._refuse("remove_query_at")


class AtomicQuery(Query):
    """A single executable query (structured or native)."""

    def is_atomic(self) -> bool:
        return True

    def database_id(self) -> Any:
        return self._dataset_query.get("database")

    def database(self):
        return self.metadata().database(self.database_id())

    def _with_dataset_query(self, dataset_query: dict) -> AtomicQuery:
        return type(self)(self._question, dataset_query, self._composite, self._position)

    def set_database(self, database_id: Any) -> AtomicQuery:
        return self._with_dataset_query({**self._dataset_query, "database": database_id})
