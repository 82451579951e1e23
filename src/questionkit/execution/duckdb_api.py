"""DuckDB-backed execution of dataset queries and saved cards."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from collections import OrderedDict
from pathlib import Path
from typing import Any, Protocol

import duckdb

from questionkit.cards.store import JsonCardStore
from questionkit.execution.compile import compile_dataset_query
from questionkit.metadata.models import Metadata
from questionkit.parameters import get_parameters_with_extras
from questionkit.serialize import serialize_card

logger = logging.getLogger(__name__)


class DatasetApi(Protocol):
    async def dataset(
        self, dataset_query: dict, parameters: list[dict] | None = None, cancelled: Any = None
    ) -> dict: ...


class CardQueryApi(Protocol):
    async def query(
        self,
        card_id: Any,
        parameters: list[dict],
        ignore_cache: bool = False,
        cancelled: Any = None,
    ) -> dict: ...


class QueryCancelled(Exception):
    """Raised when the cancellation token fired before the query ran."""


def _cache_key(card_id: Any, card: dict, values: dict) -> tuple[str, str, str]:
    content = hashlib.sha256(serialize_card(card).encode("ascii")).hexdigest()
    return str(card_id), content, json.dumps(values, sort_keys=True, default=str)


def _is_cancelled(cancelled: Any) -> bool:
    if cancelled is None:
        return False
    if isinstance(cancelled, asyncio.Event):
        return cancelled.is_set()
    if hasattr(cancelled, "cancelled"):
        return bool(cancelled.cancelled())
    return False


class DuckDBDatasetApi:
    """
    Runs dataset queries against a DuckDB file.

    Implements both the ad-hoc dataset endpoint and the saved card endpoint
    (the latter needs a card store). Results are dicts with ``columns``,
    ``rows``, ``row_count``, ``sql`` and ``running_time_ms``. Saved card
    results are cached per (card id, card content, parameter values) unless
    ``ignore_cache``; editing a stored card changes its key. The cache keeps
    at most ``max_cached`` results and drops the least recently used first.
    """

    def __init__(
        self,
        db_path: Path | str,
        metadata: Metadata,
        store: JsonCardStore | None = None,
        max_rows: int = 2000,
        max_cached: int = 128,
    ):
        self.db_path = Path(db_path)
        self.metadata = metadata
        self.store = store
        self.max_rows = max_rows
        self.max_cached = max_cached
        self._cache: OrderedDict[tuple[str, str, str], dict] = OrderedDict()

    def run_sync(self, dataset_query: dict, parameters: list[dict] | None = None) -> dict:
        sql, params = compile_dataset_query(dataset_query, self.metadata, parameters)
        start = time.time()
        conn = duckdb.connect(str(self.db_path), read_only=True)
        try:
            cursor = conn.execute(sql, params)
            columns = [d[0] for d in cursor.description]
            rows = cursor.fetchmany(self.max_rows)
        finally:
            conn.close()
        elapsed_ms = int((time.time() - start) * 1000)
        logger.info("Ran query in %d ms: %s", elapsed_ms, sql)
        return {
            "sql": sql,
            "columns": columns,
            "rows": [list(row) for row in rows],
            "row_count": len(rows),
            "running_time_ms": elapsed_ms,
        }

    async def dataset(
        self,
        dataset_query: dict,
        parameters: list[dict] | None = None,
        cancelled: Any = None,
    ) -> dict:
        if _is_cancelled(cancelled):
            raise QueryCancelled("Query cancelled before execution")
        return await asyncio.to_thread(self.run_sync, dataset_query, parameters)

    async def query(
        self,
        card_id: Any,
        parameters: list[dict],
        ignore_cache: bool = False,
        cancelled: Any = None,
    ) -> dict:
        if self.store is None:
            raise RuntimeError("Saved card queries need a card store")
        card = self.store.load(card_id)
        values = {p["id"]: p["value"] for p in parameters or [] if "value" in p}
        merged = get_parameters_with_extras(card, values)

        cache_key = _cache_key(card_id, card, values)
        if not ignore_cache and cache_key in self._cache:
            logger.info("Cache hit for card %s", card_id)
            self._cache.move_to_end(cache_key)
            return self._cache[cache_key]

        result = await self.dataset(card["dataset_query"], merged, cancelled)
        self._cache[cache_key] = result
        while len(self._cache) > self.max_cached:
            self._cache.popitem(last=False)
        return result
