"""Dirty-state comparison between a question and its last known state."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from questionkit.queries.classify import (
    is_multi_dataset_query,
    is_native_dataset_query,
)

if TYPE_CHECKING:
    from questionkit.question import Question

logger = logging.getLogger(__name__)


def has_user_content(dataset_query) -> bool:
    """Whether an unsaved question's query holds anything the user entered.

    That is a structured query with a source table, a native query with
    text, or a composite query.
    """
    if not isinstance(dataset_query, dict):
        return False
    body = dataset_query.get("query")
    if isinstance(body, dict) and body.get("source_table") is not None:
        return True
    if is_native_dataset_query(dataset_query):
        native = dataset_query.get("native") or {}
        if native.get("query"):
            return True
    return is_multi_dataset_query(dataset_query)


def is_dirty_compared_to(question: Question, original: Question) -> bool:
    """
    Decide whether ``question`` has meaningful edits relative to ``original``.

    - no card: never dirty
    - unsaved: dirty when the query has user content (see has_user_content)
    - saved: dirty when the URL token without lineage differs from the
      original's token with lineage

    Args:
        question: Candidate question
        original: Reference question (last persisted state)

    Returns:
        True if the candidate is dirty
    """
    card = question.card()
    if not card:
        return False

    if not card.get("id"):
        dirty = has_user_content(card.get("dataset_query"))
        logger.debug("Unsaved question dirty=%s", dirty)
        return dirty

    current = question.serialize_for_url(include_original_card_id=False)
    reference = original.serialize_for_url()
    dirty = current != reference
    logger.debug("Saved question %s dirty=%s", card.get("id"), dirty)
    return dirty
