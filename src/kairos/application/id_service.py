"""Stable identifiers and fresh entities for decks and cards."""

from datetime import datetime

from ulid import ULID

from kairos.domain.scheduling.models import CardRecord, Deck, SchedulingState, ensure_utc


def generate_card_id() -> str:
    """Generate a sortable card ID using ULID."""
    return f"card_{ULID()}"


def generate_deck_id() -> str:
    return f"deck_{ULID()}"


def new_card(deck_id: str, front: str, back: str, now: datetime) -> CardRecord:
    """A New card that is due immediately and has no review history."""
    now = ensure_utc(now)
    return CardRecord(
        card_id=generate_card_id(),
        deck_id=deck_id,
        front=front,
        back=back,
        scheduling=SchedulingState.new(now),
        created_at=now,
    )


def new_deck(name: str, now: datetime, description: str | None = None) -> Deck:
    return Deck(
        deck_id=generate_deck_id(),
        name=name,
        created_at=ensure_utc(now),
        description=description,
    )
