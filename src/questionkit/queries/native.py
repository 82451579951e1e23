"""Native (SQL) queries."""

from __future__ import annotations

from questionkit.queries.base import AtomicQuery
from questionkit.queries.classify import NATIVE_TYPE, QueryKind


def new_native_query(database_id=None, query_text: str = "") -> dict:
    return {
        "type": NATIVE_TYPE,
        "database": database_id,
        "native": {"query": query_text, "template_tags": {}},
    }


class NativeQuery(AtomicQuery):
    """Wraps ``{"type": "native", "database": ..., "native": {"query": ...}}``.

    The query text is kept verbatim.
    """

    kind = QueryKind.NATIVE

    def _native(self) -> dict:
        return self._dataset_query.get("native") or {}

    def query_text(self) -> str:
        return self._native().get("query") or ""

    def template_tags(self) -> dict:
        native = self._native()
        return dict(native.get("template_tags") or native.get("template-tags") or {})

    def can_run(self) -> bool:
        return bool(self.query_text().strip())

    def set_query_text(self, query_text: str) -> NativeQuery:
        return self._with_dataset_query(
            {**self._dataset_query, "native": {**self._native(), "query": query_text}}
        )
