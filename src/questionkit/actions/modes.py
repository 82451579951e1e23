"""Query modes: which actions and drills a question offers.

A mode is picked from the shape of the card's query. Action creators take
the question and return ClickAction lists; drill creators also receive the
clicked cell. A ClickAction's ``question`` is a thunk so that computing the
list of offered actions never builds the target questions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from questionkit.metadata.models import TableMetadata
from questionkit.queries import mbql
from questionkit.queries.classify import (
    is_native_dataset_query,
    is_structured_dataset_query,
)

if TYPE_CHECKING:
    from questionkit.question import Question


@dataclass(frozen=True)
class ClickAction:
    """An offered transformation of a question."""

    name: str
    title: str
    question: Callable[[], Question | None]
    section: str = "details"


@dataclass(frozen=True)
class QueryMode:
    name: str
    actions: list[Callable[..., list[ClickAction]]] = field(default_factory=list)
    drills: list[Callable[..., list[ClickAction]]] = field(default_factory=list)


# Actions


def underlying_data_action(question: Question) -> list[ClickAction]:
    if question.display() == "table":
        return []
    return [
        ClickAction(
            name="underlying-data",
            title="View this as a table",
            question=question.to_underlying_data,
        )
    ]


def underlying_records_action(question: Question) -> list[ClickAction]:
    return [
        ClickAction(
            name="underlying-records",
            title="View the underlying records",
            question=question.to_underlying_records,
        )
    ]


def count_action(question: Question) -> list[ClickAction]:
    return [
        ClickAction(
            name="count",
            title="Count of rows",
            section="sum",
            question=lambda: question.summarize(["count"]),
        )
    ]


# Drills
# ``clicked`` is ``{"field_id": ..., "value": ..., "dimensions": [...]}``.


def object_detail_drill(question: Question, clicked: dict | None) -> list[ClickAction]:
    if not clicked or clicked.get("field_id") is None:
        return []
    table = question.table_metadata()
    if table is None:
        return []
    pk = table.pk_field()
    if pk is None or pk.id != clicked["field_id"]:
        return []
    return [
        ClickAction(
            name="object-detail",
            title="View details",
            question=lambda: question.drill_pk(pk, clicked.get("value")),
        )
    ]


def quick_filter_drill(question: Question, clicked: dict | None) -> list[ClickAction]:
    if not clicked or clicked.get("field_id") is None or clicked.get("dimensions"):
        return []
    ref = ["field-id", clicked["field_id"]]
    value = clicked.get("value")
    if value is None:
        return [
            ClickAction("filter-null", "Is empty", lambda: question.filter("is-null", ref), "filter"),
            ClickAction("filter-not-null", "Not empty", lambda: question.filter("not-null", ref), "filter"),
        ]
    return [
        ClickAction("filter-eq", "=", lambda: question.filter("=", ref, value), "filter"),
        ClickAction("filter-ne", "≠", lambda: question.filter("!=", ref, value), "filter"),
    ]


def underlying_records_drill(question: Question, clicked: dict | None) -> list[ClickAction]:
    if not clicked or not clicked.get("dimensions"):
        return []
    dimensions = clicked["dimensions"]
    return [
        ClickAction(
            name="underlying-records",
            title="View these records",
            question=lambda: question.drill_underlying_records(dimensions),
        )
    ]


NATIVE_MODE = QueryMode("native")
OBJECT_MODE = QueryMode("object", actions=[], drills=[quick_filter_drill])
SEGMENT_MODE = QueryMode(
    "segment",
    actions=[count_action],
    drills=[object_detail_drill, quick_filter_drill],
)
METRIC_MODE = QueryMode(
    "metric",
    actions=[underlying_data_action, underlying_records_action],
    drills=[underlying_records_drill],
)
TIMESERIES_MODE = QueryMode(
    "timeseries",
    actions=[underlying_data_action, underlying_records_action],
    drills=[underlying_records_drill],
)
PIVOT_MODE = QueryMode(
    "pivot",
    actions=[underlying_data_action, underlying_records_action],
    drills=[underlying_records_drill, quick_filter_drill],
)


def _is_pk_filter(clause: Any, table: TableMetadata | None) -> bool:
    if table is None or not clause or clause[0] != "=":
        return False
    pk = table.pk_field()
    return pk is not None and mbql.field_id(clause[1]) == pk.id


def get_mode(card: dict, table: TableMetadata | None = None) -> QueryMode | None:
    """Mode for a card, or None when no mode applies (e.g. composite queries)."""
    dataset_query = card.get("dataset_query")
    if is_native_dataset_query(dataset_query):
        return NATIVE_MODE
    if not is_structured_dataset_query(dataset_query):
        return None

    body = dataset_query.get("query") or {}
    aggregations = mbql.get_aggregations(body)
    breakouts = mbql.get_breakouts(body)

    if not aggregations:
        if any(_is_pk_filter(clause, table) for clause in mbql.get_filters(body)):
            return OBJECT_MODE
        return SEGMENT_MODE
    if not breakouts:
        return METRIC_MODE
    if len(breakouts) == 1 and mbql.datetime_unit(breakouts[0]) is not None:
        return TIMESERIES_MODE
    return PIVOT_MODE
