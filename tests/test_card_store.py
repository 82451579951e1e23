"""Tests for the JSON card store and the question persistence pass-throughs."""

import asyncio
import json

import pytest

from questionkit.cards.schemas import validate_card
from questionkit.cards.store import JsonCardStore
from questionkit.errors import CardNotFound
from questionkit.question import Question


@pytest.fixture()
def store(tmp_path):
    return JsonCardStore(tmp_path / "cards")


def test_save_assigns_sequential_ids(store, structured_card):
    question = Question(None, structured_card)

    first = asyncio.run(question.save(store))
    second = asyncio.run(question.save(store))

    assert first["id"] == 1
    assert second["id"] == 2
    assert "id" not in structured_card
    assert store.list_ids() == [1, 2]
    assert (store.directory / "card_1.json").exists()


def test_load_returns_copy(store, structured_card):
    saved = asyncio.run(store.create(structured_card))
    loaded = store.load(saved["id"])
    loaded["name"] = "Changed"
    assert store.load(saved["id"])["name"] == "Orders by status"


def test_update_and_history(store, structured_card):
    saved = asyncio.run(store.create(structured_card))
    question = Question(None, saved).set_display("pie")

    asyncio.run(question.update(store))
    history = asyncio.run(question.get_version_history(store))

    assert store.load(saved["id"])["display"] == "pie"
    assert [entry["id"] for entry in history] == [2, 1]
    assert [entry["message"] for entry in history] == ["updated", "created"]


def test_revert(store, structured_card):
    saved = asyncio.run(store.create(structured_card))
    asyncio.run(store.update({**saved, "name": "Renamed"}))

    reverted = asyncio.run(Question(None, saved).revert(store, 1))

    assert reverted["name"] == "Orders by status"
    assert len(asyncio.run(store.history(saved["id"]))) == 3
    with pytest.raises(ValueError):
        asyncio.run(store.revert(saved["id"], 99))


def test_sharing_and_publishing(store, structured_card):
    saved = asyncio.run(store.create(structured_card))
    question = Question(None, saved)

    shared = asyncio.run(question.enable_public_sharing(store))
    assert shared["public_uuid"]
    again = asyncio.run(question.enable_public_sharing(store))
    assert again["public_uuid"] == shared["public_uuid"]

    unshared = asyncio.run(question.disable_public_sharing(store))
    assert "public_uuid" not in unshared

    published = asyncio.run(question.publish_as_embeddable(store))
    assert published["enable_embedding"] is True


def test_missing_card(store):
    with pytest.raises(CardNotFound) as exc_info:
        store.load(7)
    assert exc_info.value.card_id == 7
    with pytest.raises(CardNotFound):
        store.load("not-an-id")
    with pytest.raises(CardNotFound):
        asyncio.run(store.update({"id": 7, "dataset_query": {"type": "query", "query": {}}}))


def test_stored_file_layout(store, structured_card):
    saved = asyncio.run(store.create(structured_card))
    with open(store.directory / f"card_{saved['id']}.json") as f:
        data = json.load(f)
    assert data["card"] == saved
    assert data["revisions"][0]["card"] == saved


# =============================================================================
# Card validation
# =============================================================================

def test_validate_card(structured_card, multi_card):
    assert validate_card(structured_card) == (True, [])
    assert validate_card(multi_card) == (True, [])

    is_valid, errors = validate_card({"display": "table"})
    assert is_valid is False
    assert any("dataset_query" in e for e in errors)

    is_valid, errors = validate_card({"dataset_query": {"type": "graphql"}})
    assert is_valid is False
    assert any("Unknown query type" in e for e in errors)
