"""Composite queries made of several atomic queries."""

from __future__ import annotations

import logging
from typing import Any

from questionkit.errors import UnknownQueryType
from questionkit.queries import mbql
from questionkit.queries.base import AtomicQuery, Query
from questionkit.queries.classify import (
    MULTI_TYPE,
    QueryKind,
    classify_dataset_query,
)
from questionkit.queries.native import NativeQuery
from questionkit.queries.structured import StructuredQuery

logger = logging.getLogger(__name__)

ATOMIC_VARIANTS = {
    QueryKind.STRUCTURED: StructuredQuery,
    QueryKind.NATIVE: NativeQuery,
}


def build_atomic_query(
    question,
    dataset_query: dict,
    composite: MultiQuery | None = None,
    position: int | None = None,
) -> AtomicQuery:
    """Wrap a member payload; composite members may not nest."""
    kind = classify_dataset_query(dataset_query)
    if kind not in ATOMIC_VARIANTS:
        raise UnknownQueryType(dataset_query.get("type", MULTI_TYPE))
    return ATOMIC_VARIANTS[kind](question, dataset_query, composite, position)


def can_convert_to_multi(dataset_query: Any) -> bool:
    """Only a structured, aggregated query with exactly one breakout converts."""
    try:
        kind = classify_dataset_query(dataset_query)
    except UnknownQueryType:
        return False
    if kind != QueryKind.STRUCTURED:
        return False
    body = dataset_query.get("query") or {}
    return len(mbql.get_aggregations(body)) > 0 and len(mbql.get_breakouts(body)) == 1


def convert_to_multi_dataset_query(dataset_query: dict) -> dict | None:
    """
    Split a single-breakout structured query into a composite query.

    Each aggregation becomes its own member query sharing the breakout,
    source table and filters, so the members together carry exactly the
    original aggregations and breakout.

    Returns:
        Composite payload, or None when the query cannot be converted
        (bare rows, zero or several breakouts, not structured)
    """
    if not can_convert_to_multi(dataset_query):
        logger.debug("Refusing composite conversion of %r", dataset_query)
        return None

    body = dataset_query.get("query") or {}
    members = []
    for aggregation in mbql.get_aggregations(body):
        member_body = mbql.with_clause(body, "aggregation", [aggregation])
        members.append({**dataset_query, "query": member_body})
    return {"type": MULTI_TYPE, "queries": members}


class MultiQuery(Query):
    """Wraps ``{"type": "multi", "queries": [dataset_query, ...]}``."""

    kind = QueryKind.MULTI

    def _member_payloads(self) -> list:
        return list(self._dataset_query.get("queries") or [])

    def atomic_queries(self) -> list[AtomicQuery]:
        """Members in their stored order, each wrapped in its variant."""
        return [
            build_atomic_query(self._question, q, self, i)
            for i, q in enumerate(self._member_payloads())
        ]

    def can_run(self) -> bool:
        members = self.atomic_queries()
        return len(members) > 0 and all(member.can_run() for member in members)

    def _with_members(self, members: list) -> MultiQuery:
        return MultiQuery(self._question, {**self._dataset_query, "queries": members})

    def add_query(self, query: AtomicQuery) -> MultiQuery:
        return self._with_members(self._member_payloads() + [query.dataset_query()])

    def set_query_at(self, index: int, query: AtomicQuery) -> MultiQuery:
        members = self._member_payloads()
        members[index] = query.dataset_query()
        return self._with_members(members)

    def remove_query_at(self, index: int) -> MultiQuery:
        members = self._member_payloads()
        del members[index]
        return self._with_members(members)
