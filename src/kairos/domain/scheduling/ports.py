"""
Ports (interfaces) for the scheduling core's collaborators.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from .models import CardRecord, Deck, ReviewLogEntry


class Clock(ABC):
    """Source of the current instant, injected so scheduling stays deterministic."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current instant as an aware UTC datetime."""
        pass


class CardRepository(ABC):
    """
    Port for card persistence. Reviews need load, save and append_log;
    `save` also replaces a card whose content was edited.

    Implementations:
        - InMemoryCardRepository: Process-local dictionaries.
        - YamlCardRepository: A single YAML document on disk.

    Concurrent reviews of the same card are last-writer-wins; implementations
    that need more must serialize writes per card id themselves.
    """

    @abstractmethod
    async def load(self, card_id: str) -> CardRecord:
        """
        Fetch a card with its full review log.

        Raises:
            CardNotFound: If no card has this id.
        """
        pass

    @abstractmethod
    async def save(self, card: CardRecord) -> None:
        """Insert or replace the card's content and scheduling state."""
        pass

    @abstractmethod
    async def append_log(self, entry: ReviewLogEntry) -> None:
        """Append one review log entry to its card's history."""
        pass

    @abstractmethod
    async def delete_card(self, card_id: str) -> None:
        """
        Remove a card together with its review log.

        Raises:
            CardNotFound: If no card has this id.
        """
        pass


class DeckRepository(ABC):
    """Port for deck bookkeeping. Not needed by the scheduler itself."""

    @abstractmethod
    async def save_deck(self, deck: Deck) -> None:
        pass

    @abstractmethod
    async def get_deck(self, deck_id: str) -> Deck:
        """
        Raises:
            DeckNotFound: If no deck has this id.
        """
        pass

    @abstractmethod
    async def list_decks(self) -> list[Deck]:
        pass

    @abstractmethod
    async def list_cards(self, deck_id: str | None = None) -> list[CardRecord]:
        """List cards, optionally restricted to one deck."""
        pass

    @abstractmethod
    async def delete_deck(self, deck_id: str) -> int:
        """
        Delete a deck and every card it owns (with their logs).

        Returns:
            Number of cards removed.

        Raises:
            DeckNotFound: If no deck has this id.
        """
        pass
