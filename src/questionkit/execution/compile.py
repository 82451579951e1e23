"""Compile dataset queries into parameterized SQL for DuckDB."""

from __future__ import annotations

import re
from typing import Any

from questionkit.errors import InvalidVariantAccess
from questionkit.metadata.models import Metadata
from questionkit.queries import mbql
from questionkit.queries.classify import QueryKind, classify_dataset_query

_AGGREGATIONS = {
    "count": "COUNT(*)",
    "sum": "SUM({col})",
    "avg": "AVG({col})",
    "min": "MIN({col})",
    "max": "MAX({col})",
    "distinct": "COUNT(DISTINCT {col})",
}

_COMPARISONS = {"=": "=", "!=": "<>", "<": "<", ">": ">", "<=": "<=", ">=": ">="}

# date_trunc parts accepted in datetime-field references
DATETIME_UNITS = frozenset(
    {"minute", "hour", "day", "week", "month", "quarter", "year"}
)

_TAG_RE = re.compile(r"\{\{\s*([A-Za-z0-9_.-]+)\s*\}\}")
_OPTIONAL_RE = re.compile(r"\[\[(.*?)\]\]", re.DOTALL)


class CompileError(ValueError):
    """A dataset query that cannot be turned into SQL."""


class _StructuredCompiler:
    def __init__(self, body: dict, metadata: Metadata):
        self.body = body
        self.metadata = metadata
        self.params: list[Any] = []

    def column(self, ref: Any) -> str:
        field = self.metadata.field(mbql.field_id(ref))
        if field is None:
            raise CompileError(f"Unknown field reference: {ref!r}")
        col = f'"{field.name}"'
        unit = mbql.datetime_unit(ref)
        if unit is not None:
            if not isinstance(unit, str) or unit not in DATETIME_UNITS:
                raise CompileError(f"Unsupported datetime unit: {unit!r}")
            col = f"date_trunc('{unit}', CAST({col} AS TIMESTAMP))"
        return col

    def aggregation(self, clause: list) -> str:
        name = clause[0]
        if name not in _AGGREGATIONS:
            raise CompileError(f"Unsupported aggregation: {name}")
        if name == "count" and len(clause) > 1:
            return f"COUNT({self.column(clause[1])})"
        if name == "count":
            return _AGGREGATIONS[name]
        return _AGGREGATIONS[name].format(col=self.column(clause[1]))

    def condition(self, clause: list) -> str:
        op = clause[0]
        if op in ("and", "or"):
            parts = [self.condition(child) for child in clause[1:]]
            return "(" + f" {op.upper()} ".join(parts) + ")"
        if op == "not":
            return f"NOT ({self.condition(clause[1])})"
        if op == "is-null":
            return f"{self.column(clause[1])} IS NULL"
        if op == "not-null":
            return f"{self.column(clause[1])} IS NOT NULL"
        if op == "between":
            self.params.extend([clause[2], clause[3]])
            return f"{self.column(clause[1])} BETWEEN ? AND ?"
        if op == "contains":
            self.params.append(f"%{clause[2]}%")
            return f"{self.column(clause[1])} ILIKE ?"
        if op in _COMPARISONS:
            self.params.append(clause[2])
            return f"{self.column(clause[1])} {_COMPARISONS[op]} ?"
        raise CompileError(f"Unsupported filter operator: {op}")

    def compile(self) -> tuple[str, list[Any]]:
        table = self.metadata.table(self.body.get("source_table"))
        if table is None:
            raise CompileError(f"Unknown source table: {self.body.get('source_table')!r}")

        breakouts = [self.column(b) for b in mbql.get_breakouts(self.body)]
        aggregations = [self.aggregation(a) for a in mbql.get_aggregations(self.body)]

        select = breakouts + aggregations
        if not select:
            fields = self.body.get("fields") or []
            select = [self.column(f) for f in fields] or ["*"]

        sql = f"SELECT {', '.join(select)} FROM {table.qualified_name()}"

        filters = mbql.get_filters(self.body)
        if filters:
            sql += " WHERE " + " AND ".join(self.condition(c) for c in filters)
        if breakouts and aggregations:
            sql += " GROUP BY " + ", ".join(breakouts)
        if breakouts:
            sql += " ORDER BY " + ", ".join(breakouts)
        limit = self.body.get("limit")
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        return sql, self.params


def compile_native(native: dict, parameters: list[dict] | None = None) -> tuple[str, list[Any]]:
    """
    Bind template tags of a native query.

    ``{{tag}}`` becomes a ``?`` placeholder bound to the parameter whose slug
    is ``tag``. ``[[ ... ]]`` sections are kept only when every tag inside
    them has a value. Tag defaults apply when no parameter supplies one.
    """
    tags = native.get("template_tags") or native.get("template-tags") or {}
    values = {
        name: tag["default"]
        for name, tag in tags.items()
        if isinstance(tag, dict) and tag.get("default") is not None
    }
    for parameter in parameters or []:
        slug = parameter.get("slug")
        if slug is None:
            continue
        if "value" in parameter:
            values[slug] = parameter["value"]
        elif parameter.get("default") is not None:
            values[slug] = parameter["default"]

    def keep_optional(match: re.Match) -> str:
        tags = _TAG_RE.findall(match.group(1))
        return match.group(1) if all(tag in values for tag in tags) else ""

    text = _OPTIONAL_RE.sub(keep_optional, native.get("query") or "")

    params: list[Any] = []

    def bind(match: re.Match) -> str:
        tag = match.group(1)
        if tag not in values:
            raise CompileError(f"Missing value for template tag '{tag}'")
        params.append(values[tag])
        return "?"

    return _TAG_RE.sub(bind, text), params


def compile_dataset_query(
    dataset_query: dict,
    metadata: Metadata,
    parameters: list[dict] | None = None,
) -> tuple[str, list[Any]]:
    """
    Turn an atomic dataset query into SQL and bound parameters.

    Raises:
        UnknownQueryType: If the payload type is not recognized
        InvalidVariantAccess: For composite queries, which run member by member
        CompileError: If the query references unknown tables/fields or
            unsupported clauses
    """
    kind = classify_dataset_query(dataset_query)
    if kind == QueryKind.MULTI:
        raise InvalidVariantAccess("MultiQuery", "compile")
    if kind == QueryKind.NATIVE:
        return compile_native(dataset_query.get("native") or {}, parameters)
    return _StructuredCompiler(dataset_query.get("query") or {}, metadata).compile()
