"""Query variants and the classifier that picks between them."""

from __future__ import annotations

from questionkit.queries.base import AtomicQuery, Query
from questionkit.queries.classify import (
    QueryKind,
    classify_dataset_query,
    is_multi_dataset_query,
    is_native_dataset_query,
    is_structured_dataset_query,
)
from questionkit.queries.multi import (
    MultiQuery,
    can_convert_to_multi,
    convert_to_multi_dataset_query,
)
from questionkit.queries.native import NativeQuery, new_native_query
from questionkit.queries.structured import StructuredQuery, new_structured_query

QUERY_VARIANTS = {
    QueryKind.STRUCTURED: StructuredQuery,
    QueryKind.NATIVE: NativeQuery,
    QueryKind.MULTI: MultiQuery,
}


def build_query(question, dataset_query: dict) -> Query:
    """Classify ``dataset_query`` and wrap it in the matching variant."""
    return QUERY_VARIANTS[classify_dataset_query(dataset_query)](question, dataset_query)


__all__ = [
    "AtomicQuery",
    "MultiQuery",
    "NativeQuery",
    "Query",
    "QueryKind",
    "StructuredQuery",
    "build_query",
    "can_convert_to_multi",
    "classify_dataset_query",
    "convert_to_multi_dataset_query",
    "is_multi_dataset_query",
    "is_native_dataset_query",
    "is_structured_dataset_query",
    "new_native_query",
    "new_structured_query",
]
