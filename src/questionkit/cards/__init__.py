"""Card payload schemas and the JSON card store."""

from questionkit.cards.schemas import CardModel, DatasetQueryModel, validate_card
from questionkit.cards.store import JsonCardStore

__all__ = ["CardModel", "DatasetQueryModel", "JsonCardStore", "validate_card"]
