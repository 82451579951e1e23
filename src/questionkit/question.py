"""The Question: an immutable wrapper around a card and its parameter values.

A card is the plain dict a backend understands (``id``, ``name``,
``display``, ``dataset_query``, ``visualization_settings``, ...). A question
never mutates its card: every transformation builds a new card by
copy-on-write and returns a new Question, so two questions can safely share
unchanged parts of a card.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from questionkit.actions import card_actions
from questionkit.actions.modes import ClickAction, QueryMode, get_mode
from questionkit.dirty import is_dirty_compared_to
from questionkit.errors import InvalidVariantAccess
from questionkit.metadata.models import Field, Metadata, TableMetadata
from questionkit.parameters import get_parameters_with_extras
from questionkit.queries import (
    AtomicQuery,
    MultiQuery,
    Query,
    StructuredQuery,
    build_query,
    can_convert_to_multi,
    convert_to_multi_dataset_query,
    new_structured_query,
)
from questionkit.serialize import deserialize_card, serialize_card

logger = logging.getLogger(__name__)

_UNSET = object()


class Question:
    """
    A question wraps a card, the metadata its queries resolve against, and
    the current parameter values (dashboard filters or native template tag
    values). Parameter values can change without the card changing.

    The query is derived lazily from ``card["dataset_query"]`` and cached for
    the lifetime of the instance.
    """

    def __init__(
        self,
        metadata: Metadata | None,
        card: dict,
        parameter_values: dict[str, Any] | None = None,
    ):
        self._metadata = metadata
        self._card = card
        self._parameter_values = dict(parameter_values or {})
        self._query = _UNSET

    def __repr__(self) -> str:
        return f"Question(id={self.id()!r}, display={self.display()!r})"

    @classmethod
    def create(
        cls,
        metadata: Metadata | None = None,
        database_id: Any = None,
        table_id: Any = None,
        parameter_values: dict[str, Any] | None = None,
        **card_props: Any,
    ) -> Question:
        """New unsaved question, seeded with a structured query on a database/table."""
        card = {
            "name": card_props.get("name"),
            "display": card_props.get("display") or "table",
            "visualization_settings": card_props.get("visualization_settings") or {},
            "dataset_query": card_props.get("dataset_query")
            or new_structured_query(database_id, table_id),
        }
        return cls(metadata, card, parameter_values)

    @classmethod
    def from_url(
        cls,
        token: str,
        metadata: Metadata | None = None,
        parameter_values: dict[str, Any] | None = None,
    ) -> Question:
        """Question for a card decoded from a URL token."""
        return cls(metadata, deserialize_card(token), parameter_values)

    # Readers

    def query(self) -> Query:
        """
        The query variant for this question's dataset query.

        Raises:
            UnknownQueryType: If the dataset query type is not recognized
        """
        if self._query is _UNSET:
            self._query = build_query(self, self._card.get("dataset_query"))
        return self._query

    def metadata(self) -> Metadata | None:
        return self._metadata

    def card(self) -> dict:
        return self._card

    def parameter_values(self) -> dict[str, Any]:
        return dict(self._parameter_values)

    def display(self) -> str | None:
        return self._card.get("display") if self._card else None

    def display_name(self) -> str | None:
        return self._card.get("name") if self._card else None

    def id(self) -> Any:
        return self._card.get("id") if self._card else None

    def is_saved(self) -> bool:
        return bool(self.id())

    def public_uuid(self) -> str | None:
        return self._card.get("public_uuid") if self._card else None

    def can_write(self) -> bool:
        return bool(self._card and self._card.get("can_write"))

    def can_run(self) -> bool:
        return self.query().can_run()

    def parameters(self) -> list[dict[str, Any]]:
        return get_parameters_with_extras(self._card, self._parameter_values)

    # Composite queries

    def is_multi_query(self) -> bool:
        return isinstance(self.query(), MultiQuery)

    def multi_query(self) -> MultiQuery:
        query = self.query()
        if not isinstance(query, MultiQuery):
            raise InvalidVariantAccess(type(query).__name__, "multi_query")
        return query

    def can_convert_to_multi_query(self) -> bool:
        return can_convert_to_multi(self._card.get("dataset_query"))

    def convert_to_multi_query(self) -> Question | None:
        """Composite version of a single-breakout question, or None if not convertible."""
        multi_dataset_query = convert_to_multi_dataset_query(self._card.get("dataset_query"))
        if multi_dataset_query is None:
            return None
        return self.set_dataset_query(multi_dataset_query)

    def atomic_queries(self) -> list[AtomicQuery]:
        """The executable queries underlying this question, in order."""
        query = self.query()
        if isinstance(query, MultiQuery):
            return query.atomic_queries()
        if isinstance(query, AtomicQuery):
            return [query]
        return []

    # Transformations

    def set_card(self, card: dict) -> Question:
        return Question(self._metadata, card, self._parameter_values)

    def set_query(self, query: Query) -> Question:
        """Question with ``query``'s payload as its dataset query.

        When the payload is the one this question already holds, the
        question itself is returned.
        """
        if self._card.get("dataset_query") is query.dataset_query():
            return self
        return self.set_dataset_query(query.dataset_query())

    def set_dataset_query(self, dataset_query: dict) -> Question:
        return self.set_card({**self._card, "dataset_query": dataset_query})

    def set_display(self, display: str) -> Question:
        return self.set_card({**self._card, "display": display})

    def set_parameter_values(self, parameter_values: dict[str, Any]) -> Question:
        return Question(self._metadata, self._card, parameter_values)

    def set_parameter_value(self, parameter_id: str, value: Any) -> Question:
        return self.set_parameter_values({**self._parameter_values, parameter_id: value})

    def new_question(self) -> Question:
        """Unsaved duplicate: the card without id, name and description."""
        return self.set_card(
            {k: v for k, v in self._card.items() if k not in {"id", "name", "description"}}
        )

    # Visualization drill-through and action widget actions

    def _wrap(self, card: dict | None) -> Question | None:
        if card is None:
            logger.debug("Action not applicable to %r", self)
            return None
        return self.set_card(card)

    def summarize(self, aggregation: list) -> Question | None:
        return self._wrap(card_actions.summarize(self._card, aggregation, self.table_metadata()))

    def breakout(self, breakout: Any) -> Question | None:
        return self._wrap(card_actions.breakout(self._card, breakout, self.table_metadata()))

    def pivot(self, breakout: Any, dimensions: list[dict] | None = None) -> Question | None:
        return self._wrap(
            card_actions.pivot(self._card, breakout, self.table_metadata(), dimensions or [])
        )

    def filter(self, operator: str, column: Any, value: Any = None) -> Question | None:
        return self._wrap(card_actions.filter(self._card, operator, column, value))

    def drill_underlying_records(self, dimensions: list[dict]) -> Question | None:
        return self._wrap(card_actions.drill_underlying_records(self._card, dimensions))

    def to_underlying_records(self) -> Question | None:
        return self._wrap(card_actions.to_underlying_records(self._card))

    def to_underlying_data(self) -> Question:
        return self.set_display("table")

    def drill_pk(self, field: Field, value: Any) -> Question | None:
        """Question for the single row whose primary key ``field`` equals ``value``.

        Only structured questions can drill; others return None.
        """
        query = self.query()
        if not isinstance(query, StructuredQuery):
            return None
        table = self._metadata.table(field.table_id) if self._metadata else None
        return (
            query.reset()
            .set_table(table if table is not None else field.table_id)
            .add_filter(["=", ["field-id", field.id], value])
            .question()
        )

    def table_metadata(self) -> TableMetadata | None:
        query = self.query()
        if isinstance(query, StructuredQuery) and self._metadata is not None:
            return self._metadata.table_metadata(query.source_table_id())
        return None

    def mode(self) -> QueryMode | None:
        return get_mode(self._card, self.table_metadata())

    def actions(self) -> list[ClickAction]:
        mode = self.mode()
        if mode is None:
            return []
        return [action for creator in mode.actions for action in creator(self)]

    def actions_for_click(self, clicked: dict | None) -> list[ClickAction]:
        mode = self.mode()
        if mode is None:
            return []
        return [action for creator in mode.drills for action in creator(self, clicked)]

    # Dirty state and URL serialization

    def is_dirty_compared_to(self, original: Question) -> bool:
        return is_dirty_compared_to(self, original)

    def serialize_for_url(self, include_original_card_id: bool = True) -> str:
        return serialize_card(self._card, include_original_card_id)

    # Execution

    def can_use_saved_card_endpoint(self, is_dirty: bool = False) -> bool:
        return not is_dirty and not self.is_multi_query() and self.is_saved()

    async def get_results(
        self,
        dataset_api,
        card_api=None,
        cancelled: Any = None,
        is_dirty: bool = False,
        ignore_cache: bool = False,
    ) -> list:
        """
        Run the question and return one result per atomic query.

        A saved, clean, single-query question runs through the saved card
        endpoint so the backend can use its cache; anything else runs each
        atomic dataset query ad hoc. ``cancelled`` is passed through as is.

        Args:
            dataset_api: Object with ``async dataset(dataset_query, parameters, cancelled=None)``
            card_api: Object with ``async query(card_id, parameters, ignore_cache, cancelled=None)``
            cancelled: Opaque cancellation token
            is_dirty: Whether the caller considers the question modified
            ignore_cache: Ask the saved card endpoint to bypass its cache

        Returns:
            List of results in the order of atomic_queries()
        """
        if card_api is not None and self.can_use_saved_card_endpoint(is_dirty):
            logger.info("Running saved card %s", self.id())
            result = await card_api.query(
                self.id(),
                self.parameters(),
                ignore_cache=ignore_cache,
                cancelled=cancelled,
            )
            return [result]

        dataset_queries = [query.dataset_query() for query in self.atomic_queries()]
        parameters = self.parameters()
        logger.info("Running %d ad-hoc dataset quer(ies)", len(dataset_queries))
        return list(
            await asyncio.gather(
                *(
                    dataset_api.dataset(dq, parameters=parameters, cancelled=cancelled)
                    for dq in dataset_queries
                )
            )
        )

    # Persistence, delegated to a card store

    def save(self, store):
        return store.create(self._card)

    def update(self, store):
        return store.update(self._card)

    def revert(self, store, revision_id: int):
        return store.revert(self.id(), revision_id)

    def enable_public_sharing(self, store):
        return store.enable_sharing(self.id())

    def disable_public_sharing(self, store):
        return store.disable_sharing(self.id())

    def publish_as_embeddable(self, store):
        return store.publish(self.id())

    def get_version_history(self, store):
        return store.history(self.id())
