"""Card schema definitions using Pydantic.

Cards travel as plain dicts; these models validate their shape at the
edges (store writes, HTTP requests) without taking ownership of them.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from questionkit.queries.classify import MULTI_TYPE, NATIVE_TYPE, STRUCTURED_TYPE


class DatasetQueryModel(BaseModel):
    """Dataset query envelope: a ``type`` tag plus the variant body."""

    type: str = Field(..., description="query, native or multi")
    database: int | None = Field(None, description="Database id")
    query: dict[str, Any] | None = Field(None, description="Structured body")
    native: dict[str, Any] | None = Field(None, description="Native body")
    queries: list["DatasetQueryModel"] | None = Field(None, description="Composite members")

    model_config = {"extra": "allow"}

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        if v not in {STRUCTURED_TYPE, NATIVE_TYPE, MULTI_TYPE}:
            raise ValueError(f"Unknown query type: {v!r}")
        return v


class CardModel(BaseModel):
    """A card as the backend understands it."""

    id: int | None = None
    name: str | None = None
    description: str | None = None
    display: str = "table"
    dataset_query: DatasetQueryModel
    visualization_settings: dict[str, Any] = Field(default_factory=dict)
    parameters: list[dict[str, Any]] | None = None
    original_card_id: int | None = None
    can_write: bool | None = None
    public_uuid: str | None = None

    model_config = {"extra": "allow"}


class StoredCard(BaseModel):
    """On-disk record of a card and its revisions."""

    card: dict[str, Any]
    revisions: list[dict[str, Any]] = Field(default_factory=list)


def validate_card(card: dict) -> tuple[bool, list[str]]:
    """Validate a card dict.

    Returns:
        Tuple of (is_valid, errors) where errors is a list of error messages
    """
    try:
        CardModel.model_validate(card)
        return True, []
    except Exception as e:
        errors = []
        if hasattr(e, "errors"):
            for err in e.errors():
                loc = " -> ".join(str(x) for x in err["loc"])
                errors.append(f"{loc}: {err['msg']}")
        else:
            errors.append(str(e))
        return False, errors
