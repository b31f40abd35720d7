"""
Document (de)serialization for domain records.

Timestamps become ISO-8601 strings and enums become ints. Floats are carried
unchanged, so a record survives serialize -> deserialize with identical
scheduling behaviour.
"""

from typing import Any

from pydantic import TypeAdapter, ValidationError

from kairos.domain.exceptions import InvalidCardRecord
from kairos.domain.scheduling.models import (
    CardRecord,
    Deck,
    ReviewLogEntry,
    validate_card_record,
)

_card_adapter = TypeAdapter(CardRecord)
_log_adapter = TypeAdapter(ReviewLogEntry)
_deck_adapter = TypeAdapter(Deck)


def card_to_document(card: CardRecord, include_log: bool = True) -> dict[str, Any]:
    doc = _card_adapter.dump_python(card, mode="json")
    if not include_log:
        doc.pop("review_log", None)
    return doc


def card_from_document(doc: dict[str, Any]) -> CardRecord:
    try:
        card = _card_adapter.validate_python(doc)
    except ValidationError as e:
        raise InvalidCardRecord(f"Malformed card document: {e}") from e
    validate_card_record(card)
    return card


def log_to_document(entry: ReviewLogEntry) -> dict[str, Any]:
    return _log_adapter.dump_python(entry, mode="json")


def log_from_document(doc: dict[str, Any]) -> ReviewLogEntry:
    try:
        return _log_adapter.validate_python(doc)
    except ValidationError as e:
        raise InvalidCardRecord(f"Malformed review log document: {e}") from e


def deck_to_document(deck: Deck) -> dict[str, Any]:
    return _deck_adapter.dump_python(deck, mode="json")


def deck_from_document(doc: dict[str, Any]) -> Deck:
    try:
        return _deck_adapter.validate_python(doc)
    except ValidationError as e:
        raise InvalidCardRecord(f"Malformed deck document: {e}") from e
