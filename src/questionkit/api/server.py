"""FastAPI backend for question tokens, dirty checks and ad-hoc datasets.

Cards are exchanged as plain JSON objects; questions are rebuilt per
request, so the server keeps no question state between calls.
"""

import logging
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from questionkit import __version__
from questionkit.cards.schemas import validate_card
from questionkit.cards.store import JsonCardStore
from questionkit.config import load_settings
from questionkit.errors import (
    CardNotFound,
    InvalidToken,
    InvalidVariantAccess,
    UnknownQueryType,
)
from questionkit.execution import CompileError, DuckDBDatasetApi
from questionkit.metadata import Metadata, introspect_duckdb
from questionkit.question import Question

logger = logging.getLogger(__name__)


class CardRequest(BaseModel):
    """Request carrying a single card."""

    card: dict[str, Any] = Field(..., description="Card payload")


class SerializeRequest(CardRequest):
    include_original_card_id: bool = Field(True, description="Carry the lineage id")


class SerializeResponse(BaseModel):
    token: str


class DeserializeRequest(BaseModel):
    token: str = Field(..., min_length=1, description="URL token")


class DirtyRequest(BaseModel):
    card: dict[str, Any] = Field(..., description="Candidate card")
    original_card: dict[str, Any] | None = Field(None, description="Last saved card")


class ClassifyResponse(BaseModel):
    query_type: str
    can_run: bool
    is_multi_query: bool
    can_convert_to_multi_query: bool
    atomic_queries: list[dict[str, Any]]


class DatasetRequest(BaseModel):
    dataset_query: dict[str, Any]
    parameters: list[dict[str, Any]] = Field(default_factory=list)


def create_app(db_path: Path | str | None = None, cards_dir: Path | str | None = None) -> FastAPI:
    """Build the API app. Paths default to the ``QK_*`` settings."""
    settings = load_settings()
    db_path = Path(db_path) if db_path is not None else settings.db_path
    cards_dir = Path(cards_dir) if cards_dir is not None else settings.cards_dir

    app = FastAPI(title="questionkit API", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    store = JsonCardStore(cards_dir)
    state: dict[str, Any] = {}

    def metadata() -> Metadata:
        if "metadata" not in state:
            state["metadata"] = introspect_duckdb(db_path) if db_path.exists() else Metadata()
        return state["metadata"]

    def question_for(card: dict) -> Question:
        is_valid, errors = validate_card(card)
        if not is_valid:
            raise HTTPException(status_code=400, detail={"errors": errors})
        return Question(metadata(), card)

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "db_exists": db_path.exists(), "version": __version__}

    @app.post("/api/question/serialize", response_model=SerializeResponse)
    async def serialize(request: SerializeRequest):
        question = question_for(request.card)
        return {"token": question.serialize_for_url(request.include_original_card_id)}

    @app.post("/api/question/deserialize")
    async def deserialize(request: DeserializeRequest):
        try:
            question = Question.from_url(request.token, metadata())
        except InvalidToken as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"card": question.card()}

    @app.post("/api/question/dirty")
    async def dirty(request: DirtyRequest):
        question = question_for(request.card)
        if request.original_card is not None:
            original = Question(metadata(), request.original_card)
        elif question.is_saved():
            try:
                original = Question(metadata(), store.load(question.id()))
            except CardNotFound as e:
                raise HTTPException(status_code=404, detail=str(e))
        else:
            original = question
        return {"dirty": question.is_dirty_compared_to(original)}

    @app.post("/api/question/classify", response_model=ClassifyResponse)
    async def classify(request: CardRequest):
        question = question_for(request.card)
        try:
            query = question.query()
            atomic = [q.dataset_query() for q in question.atomic_queries()]
        except UnknownQueryType as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {
            "query_type": query.kind.value,
            "can_run": question.can_run(),
            "is_multi_query": question.is_multi_query(),
            "can_convert_to_multi_query": question.can_convert_to_multi_query(),
            "atomic_queries": atomic,
        }

    @app.post("/api/question/convert-to-multi")
    async def convert_to_multi(request: CardRequest):
        converted = question_for(request.card).convert_to_multi_query()
        if converted is None:
            raise HTTPException(
                status_code=400,
                detail="Only aggregated questions with exactly one breakout can be converted",
            )
        return {"card": converted.card()}

    @app.post("/api/dataset")
    async def dataset(request: DatasetRequest):
        if not db_path.exists():
            raise HTTPException(status_code=500, detail=f"Database not found at {db_path}")
        api = DuckDBDatasetApi(db_path, metadata(), store)
        try:
            result = await api.dataset(request.dataset_query, request.parameters)
        except (UnknownQueryType, InvalidVariantAccess, CompileError) as e:
            raise HTTPException(status_code=400, detail=str(e))
        return jsonable_encoder(result)

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000, log_level="info")
