"""Exception taxonomy for questions and their queries."""

from __future__ import annotations

from typing import Any


class QuestionError(Exception):
    """Base class for all questionkit errors."""


class UnknownQueryType(QuestionError, ValueError):
    """A dataset query whose ``type`` does not map to any query variant."""

    def __init__(self, query_type: Any):
        self.query_type = query_type
        super().__init__(f"Unknown query type: {query_type!r}")


class InvalidVariantAccess(QuestionError, TypeError):
    """A variant-specific operation was invoked on the wrong query variant."""

    def __init__(self, variant: str, operation: str):
        self.variant = variant
        self.operation = operation
        super().__init__(f"{variant} does not support '{operation}'")


class InvalidToken(QuestionError, ValueError):
    """A URL token that cannot be decoded back into a card."""


class CardNotFound(QuestionError, KeyError):
    """No stored card exists for the requested id."""

    def __init__(self, card_id: Any):
        self.card_id = card_id
        super().__init__(f"Card not found: {card_id}")

    def __str__(self) -> str:
        return self.args[0]
