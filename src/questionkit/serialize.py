"""URL token encoding of a question's shareable state.

A token is the reduced card record, cleaned and dumped as JSON with sorted
keys, then encoded as URL-safe base64 (``-``/``_`` alphabet). Decoding and
re-encoding a token with the same lineage setting reproduces it exactly.
"""

from __future__ import annotations

import base64
import binascii
import copy
import json
from typing import Any

from questionkit.errors import InvalidToken
from questionkit.queries.mbql import clean_query

# Order is irrelevant on the wire (keys are sorted); it documents the record.
URL_CARD_FIELDS = (
    "name",
    "description",
    "dataset_query",
    "display",
    "parameters",
    "visualization_settings",
)
LINEAGE_FIELD = "original_card_id"


def utf8_to_b64url(text: str) -> str:
    encoded = base64.urlsafe_b64encode(text.encode("utf-8"))
    return encoded.decode("ascii")


def b64url_to_utf8(token: str) -> str:
    """Decode a URL-safe base64 token; padding is optional."""
    token = token.strip()
    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.b64decode(padded, altchars=b"-_", validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise InvalidToken(f"Token is not URL-safe base64 UTF-8: {e}") from e


def card_for_url(card: dict, include_original_card_id: bool = True) -> dict[str, Any]:
    """
    Reduced record of a card for URL embedding.

    Only keys present on the card are carried. The dataset query is deep
    copied and its structured body cleaned; the card itself is not touched.

    Args:
        card: Card payload
        include_original_card_id: Whether to carry the lineage id

    Returns:
        New dict with the reduced record
    """
    fields = URL_CARD_FIELDS + ((LINEAGE_FIELD,) if include_original_card_id else ())
    record = {}
    for key in fields:
        if key not in card:
            continue
        if key == "dataset_query":
            record[key] = _clean_dataset_query(card[key])
        else:
            record[key] = copy.deepcopy(card[key])
    return record


def _clean_dataset_query(dataset_query: Any) -> Any:
    dataset_query = copy.deepcopy(dataset_query)
    if isinstance(dataset_query, dict):
        if isinstance(dataset_query.get("query"), dict):
            dataset_query["query"] = clean_query(dataset_query["query"])
        if isinstance(dataset_query.get("queries"), list):
            dataset_query["queries"] = [_clean_dataset_query(q) for q in dataset_query["queries"]]
    return dataset_query


def dumps_canonical(record: Any) -> str:
    return json.dumps(record, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def serialize_card(card: dict, include_original_card_id: bool = True) -> str:
    """Canonical URL token for a card."""
    return utf8_to_b64url(dumps_canonical(card_for_url(card, include_original_card_id)))


def deserialize_card(token: str) -> dict[str, Any]:
    """
    Decode a URL token back into a card payload.

    Raises:
        InvalidToken: If the token is not base64 or not a JSON object
    """
    text = b64url_to_utf8(token)
    try:
        card = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidToken(f"Token does not contain JSON: {e}") from e
    if not isinstance(card, dict):
        raise InvalidToken("Token does not contain a card object")
    return card
