from datetime import datetime, timedelta, timezone

import pytest

from kairos.application.scheduling.scheduler import Scheduler
from kairos.domain.scheduling.models import CardRecord, SchedulingState, State
from kairos.domain.scheduling.parameters import ParameterSet

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def params():
    return ParameterSet()


@pytest.fixture
def scheduler(params):
    return Scheduler(params)


@pytest.fixture
def new_card(now):
    return CardRecord(
        card_id="card_1",
        deck_id="deck_1",
        front="la pomme",
        back="the apple",
        scheduling=SchedulingState.new(now),
        created_at=now,
    )


@pytest.fixture
def make_review_card(now):
    """Factory for a graduated card last reviewed `days_ago` days before `now`."""

    def _make(
        stability=10.0,
        difficulty=5.0,
        days_ago=10.0,
        scheduled_days=10.0,
        state=State.Review,
        reps=3,
        lapses=0,
        learning_steps=0,
        card_id="card_r",
    ):
        last_review = now - timedelta(days=days_ago)
        return CardRecord(
            card_id=card_id,
            deck_id="deck_1",
            front="der Hund",
            back="the dog",
            scheduling=SchedulingState(
                state=state,
                due=last_review + timedelta(days=scheduled_days),
                stability=stability,
                difficulty=difficulty,
                elapsed_days=scheduled_days,
                scheduled_days=scheduled_days,
                learning_steps=learning_steps,
                reps=reps,
                lapses=lapses,
                last_review=last_review,
            ),
            created_at=now - timedelta(days=60),
        )

    return _make


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Isolate config lookups and the default store from the real home.
    monkeypatch.setenv("HOME", str(home))
    for var in ("KAIROS_BACKEND", "KAIROS_STORE_PATH", "KAIROS_DESIRED_RETENTION"):
        monkeypatch.delenv(var, raising=False)
    return home
