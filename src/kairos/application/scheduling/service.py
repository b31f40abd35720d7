"""
Review Session Service: Application layer orchestrator.

The only piece that touches persistence: loads a card through the repository
port, runs the pure scheduler, and persists the result.
"""

import logging
from dataclasses import replace

from kairos.application.id_service import new_card, new_deck
from kairos.domain.exceptions import KairosError
from kairos.domain.scheduling.models import CardRecord, Deck, Grade, ReviewLogEntry
from kairos.domain.scheduling.ports import CardRepository, Clock, DeckRepository

from .scheduler import ScheduledOutcome, Scheduler

logger = logging.getLogger(__name__)


class ReviewSessionService:
    """
    Application service for reviewing cards and managing decks.

    Follows Dependency Inversion: depends on the repository and clock
    abstractions, not concrete adapter implementations.
    """

    def __init__(
        self,
        cards: CardRepository,
        clock: Clock,
        scheduler: Scheduler | None = None,
        decks: DeckRepository | None = None,
    ):
        """
        Args:
            cards: The repository (port) for loading and saving cards.
            clock: Source of the review instant.
            scheduler: Optional custom scheduler; uses default parameters if not provided.
            decks: Deck repository. Defaults to `cards` when it also implements DeckRepository.
        """
        self._cards = cards
        self._clock = clock
        self._scheduler = scheduler or Scheduler()
        if decks is None and isinstance(cards, DeckRepository):
            decks = cards
        self._decks = decks

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    def now(self):
        return self._clock.now()

    # ---------- Reviews ----------

    async def preview(self, card_id: str) -> dict[Grade, ScheduledOutcome]:
        """
        Forecast all four grades for a stored card. Nothing is persisted.
        """
        card = await self._cards.load(card_id)
        return self._scheduler.schedule_preview(card, self._clock.now())

    async def review(self, card_id: str, grade: Grade | int) -> tuple[CardRecord, ReviewLogEntry]:
        """
        Grade a stored card and persist the outcome.

        The new record is only returned once both the save and the log append
        succeeded; any storage error propagates to the caller.
        """
        card = await self._cards.load(card_id)
        updated, entry = self._scheduler.commit_review(card, grade, self._clock.now())

        await self._cards.save(updated)
        await self._cards.append_log(entry)

        logger.info(
            f"Reviewed {card_id} as {entry.grade.name}: "
            f"{entry.before.state.name} -> {entry.after.state.name}, "
            f"due {updated.scheduling.due.isoformat()}"
        )
        return updated, entry

    async def get_card(self, card_id: str) -> CardRecord:
        return await self._cards.load(card_id)

    async def update_card(
        self, card_id: str, front: str | None = None, back: str | None = None
    ) -> CardRecord:
        """
        Edit a card's content. Scheduling state and review log are kept.
        """
        card = await self._cards.load(card_id)
        updated = replace(
            card,
            front=card.front if front is None else front,
            back=card.back if back is None else back,
        )
        await self._cards.save(updated)
        logger.info(f"Updated card {card_id}")
        return updated

    async def delete_card(self, card_id: str) -> None:
        await self._cards.delete_card(card_id)
        logger.info(f"Deleted card {card_id}")

    async def due_cards(self, deck_id: str | None = None) -> list[CardRecord]:
        """
        Cards due now, most overdue first.

        Args:
            deck_id: Restrict to one deck. All decks when None.
        """
        decks = self._require_decks()
        if deck_id is not None:
            await decks.get_deck(deck_id)
        cards = await decks.list_cards(deck_id)
        return self._scheduler.due_cards(cards, self._clock.now())

    # ---------- Decks & cards ----------

    async def create_deck(self, name: str, description: str | None = None) -> Deck:
        decks = self._require_decks()
        deck = new_deck(name, self._clock.now(), description=description)
        await decks.save_deck(deck)
        logger.info(f"Created deck {deck.deck_id} ({name})")
        return deck

    async def list_decks(self) -> list[Deck]:
        return await self._require_decks().list_decks()

    async def update_deck(
        self, deck_id: str, name: str | None = None, description: str | None = None
    ) -> Deck:
        decks = self._require_decks()
        deck = await decks.get_deck(deck_id)
        updated = replace(
            deck,
            name=deck.name if name is None else name,
            description=deck.description if description is None else description,
        )
        await decks.save_deck(updated)
        logger.info(f"Updated deck {deck_id}")
        return updated

    async def add_card(self, deck_id: str, front: str, back: str) -> CardRecord:
        decks = self._require_decks()
        await decks.get_deck(deck_id)

        card = new_card(deck_id, front, back, self._clock.now())
        await self._cards.save(card)
        logger.info(f"Added card {card.card_id} to deck {deck_id}")
        return card

    async def list_cards(self, deck_id: str | None = None) -> list[CardRecord]:
        return await self._require_decks().list_cards(deck_id)

    async def delete_deck(self, deck_id: str) -> int:
        """
        Delete a deck and all of its cards.

        Returns:
            Number of cards removed.
        """
        removed = await self._require_decks().delete_deck(deck_id)
        logger.info(f"Deleted deck {deck_id} with {removed} card(s)")
        return removed

    def _require_decks(self) -> DeckRepository:
        if self._decks is None:
            raise KairosError("Deck operations need a DeckRepository")
        return self._decks
