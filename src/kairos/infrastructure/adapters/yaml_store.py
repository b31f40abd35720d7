"""
YAML Card Repository: Infrastructure adapter for a single-file document store.

Layout of the document:

    decks:        {deck_id: deck document}
    cards:        {card_id: card document without its log}
    review_logs:  {card_id: [review log documents, oldest first]}
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from kairos.domain.exceptions import CardNotFound, CorruptStore, DeckNotFound
from kairos.domain.scheduling.models import CardRecord, Deck, ReviewLogEntry
from kairos.domain.scheduling.ports import CardRepository, DeckRepository
from kairos.infrastructure.serialization import (
    card_from_document,
    card_to_document,
    deck_from_document,
    deck_to_document,
    log_to_document,
)

logger = logging.getLogger(__name__)

_SECTIONS = ("decks", "cards", "review_logs")


def humanize_error(msg: str) -> str:
    """Translate common PyYAML parser errors into something a user can act on."""
    if "expected <block end>, but found" in msg:
        return f"Indentation Error: the store file is mis-indented.\n{msg}"
    if "mapping values are not allowed here" in msg or "cannot start any token" in msg:
        return f"Syntax Error: the store file is not valid YAML.\n{msg}"
    return msg


class YamlCardRepository(CardRepository, DeckRepository):
    """
    Stores decks, cards and review logs in one YAML file.

    Every write rewrites the file through a temporary sibling and an atomic
    rename. There is no locking: concurrent writers are last-writer-wins.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    # ---------- File I/O ----------

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {section: {} for section in _SECTIONS}

        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise CorruptStore(self.path, humanize_error(str(e))) from e
        if not isinstance(raw, dict):
            raise CorruptStore(self.path, "top level is not a mapping")
        for section in _SECTIONS:
            if not isinstance(raw.get(section), dict):
                raw[section] = {}
        return raw

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(
            yaml.safe_dump(data, sort_keys=False, allow_unicode=True),
            encoding="utf-8",
        )
        tmp.replace(self.path)

    def _card_with_log(self, data: dict[str, Any], card_id: str) -> CardRecord:
        doc = dict(data["cards"][card_id])
        doc["review_log"] = data["review_logs"].get(card_id, [])
        return card_from_document(doc)

    # ---------- CardRepository ----------

    async def load(self, card_id: str) -> CardRecord:
        data = self._read()
        if card_id not in data["cards"]:
            raise CardNotFound(card_id)
        return self._card_with_log(data, card_id)

    async def save(self, card: CardRecord) -> None:
        data = self._read()
        data["cards"][card.card_id] = card_to_document(card, include_log=False)
        self._write(data)

    async def append_log(self, entry: ReviewLogEntry) -> None:
        data = self._read()
        if entry.card_id not in data["cards"]:
            logger.warning(f"Appending review log for unsaved card {entry.card_id}")
        data["review_logs"].setdefault(entry.card_id, []).append(log_to_document(entry))
        self._write(data)

    async def delete_card(self, card_id: str) -> None:
        data = self._read()
        if card_id not in data["cards"]:
            raise CardNotFound(card_id)
        del data["cards"][card_id]
        data["review_logs"].pop(card_id, None)
        self._write(data)

    # ---------- DeckRepository ----------

    async def save_deck(self, deck: Deck) -> None:
        data = self._read()
        data["decks"][deck.deck_id] = deck_to_document(deck)
        self._write(data)

    async def get_deck(self, deck_id: str) -> Deck:
        data = self._read()
        doc = data["decks"].get(deck_id)
        if doc is None:
            raise DeckNotFound(deck_id)
        return deck_from_document(doc)

    async def list_decks(self) -> list[Deck]:
        data = self._read()
        decks = [deck_from_document(doc) for doc in data["decks"].values()]
        return sorted(decks, key=lambda d: d.created_at)

    async def list_cards(self, deck_id: str | None = None) -> list[CardRecord]:
        data = self._read()
        return [
            self._card_with_log(data, card_id)
            for card_id, doc in data["cards"].items()
            if deck_id is None or doc.get("deck_id") == deck_id
        ]

    async def delete_deck(self, deck_id: str) -> int:
        data = self._read()
        if deck_id not in data["decks"]:
            raise DeckNotFound(deck_id)

        doomed = [cid for cid, doc in data["cards"].items() if doc.get("deck_id") == deck_id]
        for card_id in doomed:
            del data["cards"][card_id]
            data["review_logs"].pop(card_id, None)
        del data["decks"][deck_id]

        self._write(data)
        return len(doomed)
