"""Card transformations behind visualization drill-through and action widgets.

Each action takes a card (and its parameters) and returns a new card; the
input card is never mutated. Derived cards are unsaved: they drop the id,
name and description and point back at their source through
``original_card_id``. Actions that need a structured query return None for
any other query type.
"""

from __future__ import annotations

import logging
from typing import Any

from questionkit.metadata.models import TableMetadata
from questionkit.queries import mbql
from questionkit.queries.classify import is_structured_dataset_query

logger = logging.getLogger(__name__)


def start_new_card(card: dict, dataset_query: dict) -> dict:
    """Unsaved card derived from ``card`` with a replaced dataset query."""
    new_card = {
        "display": card.get("display", "table"),
        "visualization_settings": {},
        "dataset_query": dataset_query,
    }
    lineage = card.get("id") or card.get("original_card_id")
    if lineage is not None:
        new_card["original_card_id"] = lineage
    return new_card


def _structured_body(card: dict) -> dict | None:
    dataset_query = card.get("dataset_query")
    if not is_structured_dataset_query(dataset_query):
        return None
    return dataset_query.get("query") or {}


def _with_body(card: dict, body: dict) -> dict:
    return start_new_card(card, {**card["dataset_query"], "query": body})


def _is_date_ref(ref: Any, table: TableMetadata | None) -> bool:
    if mbql.datetime_unit(ref) is not None:
        return True
    if table is None:
        return False
    field = table.field(mbql.field_id(ref))
    return field is not None and field.is_date()


def guess_visualization(card: dict, table: TableMetadata | None = None) -> dict:
    """Card with a display picked from the shape of its structured query."""
    body = _structured_body(card)
    if body is None:
        return card

    aggregations = mbql.get_aggregations(body)
    breakouts = mbql.get_breakouts(body)
    if not aggregations:
        display = "table"
    elif not breakouts:
        display = "scalar" if len(aggregations) == 1 else "table"
    elif len(breakouts) == 1:
        display = "line" if _is_date_ref(breakouts[0], table) else "bar"
    else:
        display = "table"
    return {**card, "display": display}


def drill_filter(body: dict, value: Any, column: Any) -> dict:
    """Add a filter pinning ``column`` (a field or datetime-field ref) to ``value``."""
    if value is None:
        return mbql.add_filter(body, ["is-null", column])
    return mbql.add_filter(body, ["=", column, value])


def summarize(card: dict, aggregation: list, table: TableMetadata | None = None) -> dict | None:
    body = _structured_body(card)
    if body is None:
        return None
    return guess_visualization(_with_body(card, mbql.add_aggregation(body, aggregation)), table)


def breakout(card: dict, breakout_ref: Any, table: TableMetadata | None = None) -> dict | None:
    body = _structured_body(card)
    if body is None:
        return None
    return guess_visualization(_with_body(card, mbql.add_breakout(body, breakout_ref)), table)


def pivot(
    card: dict,
    breakout_ref: Any,
    table: TableMetadata | None = None,
    dimensions: list[dict] | None = None,
) -> dict | None:
    """
    Re-slice an aggregated card by a new breakout.

    Every clicked dimension (``{"column": ref, "value": v}``) becomes a
    filter and its breakout is removed before the new breakout is added.
    """
    body = _structured_body(card)
    if body is None:
        return None

    for dimension in dimensions or []:
        column = dimension["column"]
        body = drill_filter(body, dimension.get("value"), column)
        for index in reversed(range(len(mbql.get_breakouts(body)))):
            if mbql.refs_equal(mbql.get_breakouts(body)[index], column):
                body = mbql.remove_breakout(body, index)

    body = mbql.add_breakout(body, breakout_ref)
    return guess_visualization(_with_body(card, body), table)


def filter(card: dict, operator: str, column: Any, value: Any = None) -> dict | None:
    body = _structured_body(card)
    if body is None:
        return None
    if value is None and operator in {"is-null", "not-null"}:
        clause = [operator, column]
    else:
        clause = [operator, column, value]
    return _with_body(card, mbql.add_filter(body, clause))


def to_underlying_records(card: dict) -> dict | None:
    """Raw rows behind an aggregated card, or None if there is nothing to undo."""
    body = _structured_body(card)
    if body is None:
        return None
    body = mbql.with_clause(body, "aggregation", None)
    body = mbql.with_clause(body, "breakout", None)
    new_card = _with_body(card, body)
    new_card["display"] = "table"
    return new_card


def drill_underlying_records(card: dict, dimensions: list[dict]) -> dict | None:
    """Raw rows behind one clicked cell of an aggregated card."""
    body = _structured_body(card)
    if body is None:
        return None
    for dimension in dimensions:
        body = drill_filter(body, dimension.get("value"), dimension["column"])
    logger.debug("Drilling into %d dimension(s)", len(dimensions))
    return to_underlying_records(_with_body(card, body))
