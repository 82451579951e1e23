"""Classification of raw dataset query payloads into query kinds."""

from __future__ import annotations

from enum import Enum
from typing import Any

from questionkit.errors import UnknownQueryType

STRUCTURED_TYPE = "query"
NATIVE_TYPE = "native"
MULTI_TYPE = "multi"


class QueryKind(str, Enum):
    """The closed set of query variants."""

    STRUCTURED = "structured"
    NATIVE = "native"
    MULTI = "multi"


def _query_type(dataset_query: Any) -> Any:
    if isinstance(dataset_query, dict):
        return dataset_query.get("type")
    return None


def is_multi_dataset_query(dataset_query: Any) -> bool:
    """Composite payloads: ``type == "multi"`` or a nested ``queries`` list."""
    if not isinstance(dataset_query, dict):
        return False
    return dataset_query.get("type") == MULTI_TYPE or isinstance(
        dataset_query.get("queries"), list
    )


def is_structured_dataset_query(dataset_query: Any) -> bool:
    return _query_type(dataset_query) == STRUCTURED_TYPE


def is_native_dataset_query(dataset_query: Any) -> bool:
    return _query_type(dataset_query) == NATIVE_TYPE


def classify_dataset_query(dataset_query: Any) -> QueryKind:
    """
    Decide which query variant a dataset query payload represents.

    Composite structure wins over the ``type`` marker; anything that is
    neither composite, structured nor native is rejected.

    Args:
        dataset_query: Raw ``dataset_query`` payload of a card

    Returns:
        Exactly one QueryKind

    Raises:
        UnknownQueryType: If the payload's type is not recognized
    """
    if is_multi_dataset_query(dataset_query):
        return QueryKind.MULTI
    if is_structured_dataset_query(dataset_query):
        return QueryKind.STRUCTURED
    if is_native_dataset_query(dataset_query):
        return QueryKind.NATIVE
    raise UnknownQueryType(_query_type(dataset_query))
