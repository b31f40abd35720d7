"""
In-Memory Card Repository: process-local storage for tests and one-off sessions.
"""

import logging
from collections import defaultdict
from dataclasses import replace

from kairos.domain.exceptions import CardNotFound, DeckNotFound
from kairos.domain.scheduling.models import CardRecord, Deck, ReviewLogEntry
from kairos.domain.scheduling.ports import CardRepository, DeckRepository

logger = logging.getLogger(__name__)


class InMemoryCardRepository(CardRepository, DeckRepository):
    """
    Keeps cards, decks and review logs in dictionaries.

    Cards are stored without their log; `load` re-attaches the appended entries,
    mirroring how a document store keeps the log in its own collection.
    """

    def __init__(self):
        self._cards: dict[str, CardRecord] = {}
        self._decks: dict[str, Deck] = {}
        self._logs: dict[str, list[ReviewLogEntry]] = defaultdict(list)

    async def load(self, card_id: str) -> CardRecord:
        card = self._cards.get(card_id)
        if card is None:
            raise CardNotFound(card_id)
        return replace(card, review_log=tuple(self._logs.get(card_id, ())))

    async def save(self, card: CardRecord) -> None:
        self._cards[card.card_id] = replace(card, review_log=())

    async def append_log(self, entry: ReviewLogEntry) -> None:
        if entry.card_id not in self._cards:
            logger.warning(f"Appending review log for unsaved card {entry.card_id}")
        self._logs[entry.card_id].append(entry)

    async def delete_card(self, card_id: str) -> None:
        if card_id not in self._cards:
            raise CardNotFound(card_id)
        del self._cards[card_id]
        self._logs.pop(card_id, None)

    async def save_deck(self, deck: Deck) -> None:
        self._decks[deck.deck_id] = deck

    async def get_deck(self, deck_id: str) -> Deck:
        deck = self._decks.get(deck_id)
        if deck is None:
            raise DeckNotFound(deck_id)
        return deck

    async def list_decks(self) -> list[Deck]:
        return sorted(self._decks.values(), key=lambda d: d.created_at)

    async def list_cards(self, deck_id: str | None = None) -> list[CardRecord]:
        return [
            await self.load(card_id)
            for card_id, card in self._cards.items()
            if deck_id is None or card.deck_id == deck_id
        ]

    async def delete_deck(self, deck_id: str) -> int:
        if deck_id not in self._decks:
            raise DeckNotFound(deck_id)

        doomed = [cid for cid, card in self._cards.items() if card.deck_id == deck_id]
        for card_id in doomed:
            del self._cards[card_id]
            self._logs.pop(card_id, None)
        del self._decks[deck_id]
        return len(doomed)
