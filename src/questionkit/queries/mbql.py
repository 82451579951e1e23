"""Helpers for reading and rewriting structured (MBQL) query bodies.

Every function here is pure: inputs are never mutated, rewrites return a
new body that shares untouched values with the old one.
"""

from __future__ import annotations

import copy
from typing import Any

BARE_ROWS = ["rows"]
LIST_CLAUSES = ("breakout", "fields", "order_by")


def _has_none(clause: Any) -> bool:
    if clause is None:
        return True
    if isinstance(clause, (list, tuple)):
        return any(_has_none(part) for part in clause)
    return False


def is_complete_clause(clause: Any) -> bool:
    """A clause is complete when it is non-empty and has no ``None`` holes."""
    if isinstance(clause, (list, tuple)) and len(clause) == 0:
        return False
    return not _has_none(clause)


def get_aggregations(query: dict) -> list[list]:
    """Real aggregation clauses of a query body.

    Accepts both the legacy single-clause form (``["count"]``) and the list
    form (``[["count"], ["sum", ...]]``). The bare-rows marker is not an
    aggregation.
    """
    aggregation = query.get("aggregation")
    if not aggregation:
        return []
    if isinstance(aggregation[0], str):
        aggregation = [aggregation]
    return [
        list(clause)
        for clause in aggregation
        if is_complete_clause(clause) and list(clause) != BARE_ROWS
    ]


def get_breakouts(query: dict) -> list:
    return [b for b in query.get("breakout") or [] if is_complete_clause(b)]


def get_filters(query: dict) -> list[list]:
    """Top-level filter clauses, with nested ``and`` flattened."""
    return _flatten_and(query.get("filter"))


def _flatten_and(clause: Any) -> list:
    if not clause:
        return []
    if clause[0] == "and":
        flattened = []
        for child in clause[1:]:
            flattened.extend(_flatten_and(child))
        return flattened
    return [clause]


def compose_filter(clauses: list) -> list | None:
    """Inverse of get_filters: ``None``, a single clause, or an ``and``."""
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return ["and", *clauses]


def with_clause(query: dict, key: str, value: Any) -> dict:
    """Copy of ``query`` with ``key`` replaced, or dropped when value is None."""
    new_query = {k: v for k, v in query.items() if k != key}
    if value is not None:
        new_query[key] = value
    return new_query


def add_aggregation(query: dict, aggregation: list) -> dict:
    return with_clause(query, "aggregation", get_aggregations(query) + [aggregation])


def add_breakout(query: dict, breakout: Any) -> dict:
    return with_clause(query, "breakout", get_breakouts(query) + [breakout])


def remove_breakout(query: dict, index: int) -> dict:
    breakouts = get_breakouts(query)
    remaining = breakouts[:index] + breakouts[index + 1:]
    return with_clause(query, "breakout", remaining or None)


def add_filter(query: dict, clause: list) -> dict:
    return with_clause(query, "filter", compose_filter(get_filters(query) + [clause]))


def field_id(ref: Any) -> Any:
    """Resolve the target field id of a field reference.

    Handles plain ids, ``["field-id", id]``, ``["fk->", fk, dest]`` and
    ``["datetime-field", ref, ("as",) unit]``.
    """
    if isinstance(ref, int):
        return ref
    if not isinstance(ref, (list, tuple)) or not ref:
        return None
    tag = ref[0]
    if tag == "field-id":
        return ref[1]
    if tag == "fk->":
        return field_id(ref[2])
    if tag == "datetime-field":
        return field_id(ref[1])
    return None


def datetime_unit(ref: Any) -> str | None:
    """Temporal bucketing unit of a ``datetime-field`` reference, if any."""
    if isinstance(ref, (list, tuple)) and ref and ref[0] == "datetime-field":
        return ref[-1]
    return None


def refs_equal(a: Any, b: Any) -> bool:
    """Whether two references point at the same field."""
    return field_id(a) is not None and field_id(a) == field_id(b)


def clean_query(query: dict) -> dict:
    """Canonical minimal form of a structured query body.

    - keys with ``None`` values are dropped
    - ``None``/incomplete entries are dropped from aggregation, breakout,
      fields and order_by, and those keys are dropped when left empty
    - the legacy single aggregation clause becomes a list; bare rows is dropped
    - incomplete filters are dropped, nested ``and`` is flattened, a single
      clause ``and`` collapses to the clause and an empty filter is dropped
    - empty ``expressions`` is dropped

    Key order is not significant; the serializer sorts keys. Cleaning a
    clean body returns an equal body.
    """
    if not isinstance(query, dict):
        return query

    cleaned: dict = {}
    for key, value in query.items():
        if value is None:
            continue
        if key == "aggregation":
            aggregations = get_aggregations(query)
            if aggregations:
                cleaned[key] = copy.deepcopy(aggregations)
        elif key in LIST_CLAUSES:
            items = [item for item in value if is_complete_clause(item)]
            if items:
                cleaned[key] = copy.deepcopy(items)
        elif key == "filter":
            clause = compose_filter([c for c in get_filters(query) if is_complete_clause(c)])
            if clause is not None:
                cleaned[key] = copy.deepcopy(clause)
        elif key == "expressions":
            if value:
                cleaned[key] = copy.deepcopy(value)
        else:
            cleaned[key] = copy.deepcopy(value)
    return cleaned
