from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from kairos.application.scheduling.service import ReviewSessionService
from kairos.domain.exceptions import CardNotFound, DeckNotFound, KairosError
from kairos.domain.scheduling.models import Grade, State
from kairos.infrastructure.adapters.clock import FixedClock
from kairos.infrastructure.adapters.memory_store import InMemoryCardRepository


@pytest.fixture
def clock(now):
    return FixedClock(now)


@pytest.fixture
def repo():
    return InMemoryCardRepository()


@pytest.fixture
def service(repo, clock, scheduler):
    return ReviewSessionService(cards=repo, clock=clock, scheduler=scheduler)


@pytest.mark.asyncio
async def test_review_flow_persists_state_and_log(service, clock):
    deck = await service.create_deck("French")
    card = await service.add_card(deck.deck_id, "le chat", "the cat")

    updated, entry = await service.review(card.card_id, Grade.Good)
    assert updated.scheduling.state == State.Learning
    assert entry.grade == Grade.Good

    stored = await service.get_card(card.card_id)
    assert stored.scheduling == updated.scheduling
    assert stored.review_log == (entry,)

    clock.advance(timedelta(minutes=10))
    graduated, _ = await service.review(card.card_id, Grade.Good)
    assert graduated.scheduling.state == State.Review
    assert len((await service.get_card(card.card_id)).review_log) == 2


@pytest.mark.asyncio
async def test_preview_does_not_persist(service):
    deck = await service.create_deck("German")
    card = await service.add_card(deck.deck_id, "die Katze", "the cat")

    outcomes = await service.preview(card.card_id)
    assert set(outcomes) == set(Grade)

    stored = await service.get_card(card.card_id)
    assert stored.scheduling.state == State.New
    assert stored.review_log == ()


@pytest.mark.asyncio
async def test_due_cards_by_deck(service, clock):
    french = await service.create_deck("French")
    german = await service.add_card((await service.create_deck("German")).deck_id, "a", "b")
    first = await service.add_card(french.deck_id, "un", "one")
    second = await service.add_card(french.deck_id, "deux", "two")

    await service.review(first.card_id, Grade.Easy)

    due = await service.due_cards(french.deck_id)
    assert [c.card_id for c in due] == [second.card_id]
    assert {c.card_id for c in await service.due_cards()} == {second.card_id, german.card_id}


@pytest.mark.asyncio
async def test_unknown_ids_raise(service):
    with pytest.raises(CardNotFound):
        await service.review("card_missing", Grade.Good)
    with pytest.raises(DeckNotFound):
        await service.add_card("deck_missing", "q", "a")
    with pytest.raises(DeckNotFound):
        await service.due_cards("deck_missing")


@pytest.mark.asyncio
async def test_delete_deck_cascades(service):
    deck = await service.create_deck("Spanish")
    keep = await service.create_deck("Italian")
    await service.add_card(deck.deck_id, "uno", "one")
    await service.add_card(deck.deck_id, "dos", "two")
    kept = await service.add_card(keep.deck_id, "tre", "three")

    assert await service.delete_deck(deck.deck_id) == 2
    assert [d.deck_id for d in await service.list_decks()] == [keep.deck_id]
    assert [c.card_id for c in await service.list_cards()] == [kept.card_id]


@pytest.mark.asyncio
async def test_failed_save_does_not_append_log(new_card, clock, scheduler):
    cards = AsyncMock()
    cards.load.return_value = new_card
    cards.save.side_effect = OSError("disk full")
    service = ReviewSessionService(cards=cards, clock=clock, scheduler=scheduler)

    with pytest.raises(OSError):
        await service.review(new_card.card_id, Grade.Good)
    cards.append_log.assert_not_called()


@pytest.mark.asyncio
async def test_deck_operations_need_deck_repository(new_card, clock):
    cards = AsyncMock()
    service = ReviewSessionService(cards=cards, clock=clock)

    with pytest.raises(KairosError, match="DeckRepository"):
        await service.list_decks()


def test_service_exposes_clock_time(service, now):
    assert service.now() == now


@pytest.mark.asyncio
async def test_update_card_keeps_schedule_and_history(service):
    deck = await service.create_deck("German")
    card = await service.add_card(deck.deck_id, "der Hund", "dog")
    reviewed, entry = await service.review(card.card_id, Grade.Easy)

    edited = await service.update_card(card.card_id, back="the dog")
    assert edited.front == "der Hund"
    assert edited.back == "the dog"

    stored = await service.get_card(card.card_id)
    assert stored.back == "the dog"
    assert stored.scheduling == reviewed.scheduling
    assert stored.review_log == (entry,)


@pytest.mark.asyncio
async def test_delete_card(service):
    deck = await service.create_deck("German")
    gone = await service.add_card(deck.deck_id, "die Katze", "cat")
    kept = await service.add_card(deck.deck_id, "das Pferd", "horse")
    await service.review(gone.card_id, Grade.Good)

    await service.delete_card(gone.card_id)

    assert [c.card_id for c in await service.list_cards(deck.deck_id)] == [kept.card_id]
    with pytest.raises(CardNotFound):
        await service.get_card(gone.card_id)
    with pytest.raises(CardNotFound):
        await service.delete_card(gone.card_id)
    with pytest.raises(CardNotFound):
        await service.update_card(gone.card_id, front="x")


@pytest.mark.asyncio
async def test_update_deck(service):
    deck = await service.create_deck("Germn", description="typo")
    card = await service.add_card(deck.deck_id, "ja", "yes")

    renamed = await service.update_deck(deck.deck_id, name="German")
    assert renamed.name == "German"
    assert renamed.description == "typo"
    assert renamed.created_at == deck.created_at

    described = await service.update_deck(deck.deck_id, description="A1 vocabulary")
    assert described.name == "German"
    assert [d.description for d in await service.list_decks()] == ["A1 vocabulary"]
    assert [c.card_id for c in await service.list_cards(deck.deck_id)] == [card.card_id]

    with pytest.raises(DeckNotFound):
        await service.update_deck("deck_missing", name="x")
