"""JSON file card store with revision history.

Each card lives in ``card_<id>.json`` holding the current card and its
revisions. The store is the persistence collaborator of questions: it
assigns ids, records revisions and toggles sharing. Its methods are
coroutines so callers can treat it like a remote API.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

from questionkit.cards.schemas import CardModel, StoredCard
from questionkit.errors import CardNotFound

logger = logging.getLogger(__name__)


class JsonCardStore:
    """Persisted cards under one directory."""

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)
        self._lock = threading.RLock()

    def _now(self) -> str:
        return datetime.utcnow().isoformat() + "Z"

    def _path(self, card_id: int) -> Path:
        return self.directory / f"card_{int(card_id)}.json"

    def _load(self, card_id: Any) -> StoredCard:
        try:
            path = self._path(card_id)
        except (TypeError, ValueError):
            raise CardNotFound(card_id) from None
        if not path.exists():
            raise CardNotFound(card_id)
        with open(path) as f:
            return StoredCard.model_validate(json.load(f))

    def _write(self, stored: StoredCard) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(stored.card["id"])
        tmp = path.with_suffix(".tmp")
        with open(tmp, "w") as f:
            json.dump(stored.model_dump(), f, indent=2)
        tmp.replace(path)
        logger.info("Wrote card %s (revision %d)", stored.card["id"], len(stored.revisions))

    def _next_id(self) -> int:
        ids = [int(p.stem.split("_", 1)[1]) for p in self.directory.glob("card_*.json")]
        return max(ids, default=0) + 1

    def _record(self, stored: StoredCard, card: dict, message: str) -> dict:
        stored.card = card
        stored.revisions.append(
            {
                "id": len(stored.revisions) + 1,
                "created_at": self._now(),
                "message": message,
                "card": copy.deepcopy(card),
            }
        )
        self._write(stored)
        return copy.deepcopy(card)

    def list_ids(self) -> list[int]:
        return sorted(int(p.stem.split("_", 1)[1]) for p in self.directory.glob("card_*.json"))

    def load(self, card_id: Any) -> dict:
        """Synchronous lookup of the current card."""
        return copy.deepcopy(self._load(card_id).card)

    async def get(self, card_id: Any) -> dict:
        return self.load(card_id)

    async def create(self, card: dict) -> dict:
        """Persist a new card; returns it with its assigned id."""
        CardModel.model_validate(card)
        with self._lock:
            card_id = self._next_id()
            new_card = {**copy.deepcopy(card), "id": card_id}
            return self._record(StoredCard(card={}), new_card, "created")

    async def update(self, card: dict) -> dict:
        CardModel.model_validate(card)
        with self._lock:
            stored = self._load(card.get("id"))
            return self._record(stored, copy.deepcopy(card), "updated")

    async def revert(self, card_id: Any, revision_id: int) -> dict:
        with self._lock:
            stored = self._load(card_id)
            for revision in stored.revisions:
                if revision["id"] == revision_id:
                    return self._record(
                        stored, copy.deepcopy(revision["card"]), f"reverted to {revision_id}"
                    )
        raise ValueError(f"Card {card_id} has no revision {revision_id}")

    async def history(self, card_id: Any) -> list[dict]:
        stored = self._load(card_id)
        return [
            {"id": r["id"], "created_at": r["created_at"], "message": r["message"]}
            for r in reversed(stored.revisions)
        ]

    async def enable_sharing(self, card_id: Any) -> dict:
        with self._lock:
            stored = self._load(card_id)
            if stored.card.get("public_uuid"):
                return copy.deepcopy(stored.card)
            card = {**stored.card, "public_uuid": str(uuid.uuid4())}
            return self._record(stored, card, "enabled sharing")

    async def disable_sharing(self, card_id: Any) -> dict:
        with self._lock:
            stored = self._load(card_id)
            card = {k: v for k, v in stored.card.items() if k != "public_uuid"}
            return self._record(stored, card, "disabled sharing")

    async def publish(self, card_id: Any) -> dict:
        with self._lock:
            stored = self._load(card_id)
            card = {**stored.card, "enable_embedding": True}
            return self._record(stored, card, "published")
