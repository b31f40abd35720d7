"""Tests for the card state machine driven by the Scheduler."""

import logging
import random
from dataclasses import replace
from datetime import timedelta

import pytest

from kairos.application.scheduling import memory_model as mm
from kairos.application.scheduling.scheduler import Scheduler, apply_review
from kairos.domain.constants import STABILITY_MIN
from kairos.domain.exceptions import InvalidCardRecord
from kairos.domain.scheduling.models import Grade, SchedulingState, State
from kairos.domain.scheduling.parameters import ParameterSet

# --- New and Learning ---


def test_new_good_enters_second_learning_step(scheduler, new_card, now, params):
    card, entry = scheduler.commit_review(new_card, Grade.Good, now)
    sched = card.scheduling

    assert sched.state == State.Learning
    assert sched.learning_steps == 1
    assert sched.due == now + timedelta(minutes=10)
    assert sched.scheduled_days == pytest.approx(10 / 1440)
    assert sched.stability == params.weights[2]
    assert sched.difficulty == mm.initial_difficulty(Grade.Good, params)
    assert sched.reps == 0 and sched.lapses == 0
    assert sched.last_review == now
    assert entry.before.state == State.New
    assert entry.after == sched


def test_new_again_restarts_first_step(scheduler, new_card, now):
    card, _ = scheduler.commit_review(new_card, Grade.Again, now)
    assert card.scheduling.state == State.Learning
    assert card.scheduling.learning_steps == 0
    assert card.scheduling.due == now + timedelta(minutes=1)


def test_new_hard_waits_between_first_two_steps(scheduler, new_card, now):
    card, _ = scheduler.commit_review(new_card, Grade.Hard, now)
    assert card.scheduling.state == State.Learning
    assert card.scheduling.due == now + timedelta(minutes=5.5)


def test_hard_on_single_step_waits_one_and_a_half_steps(new_card, now):
    scheduler = Scheduler(ParameterSet(learning_steps=(10.0,)))
    card, _ = scheduler.commit_review(new_card, Grade.Hard, now)
    assert card.scheduling.due == now + timedelta(minutes=15)


def test_new_easy_graduates_immediately(scheduler, new_card, now, params):
    outcome = scheduler.schedule_preview(new_card, now)[Grade.Easy]
    sched = outcome.card.scheduling

    assert sched.state == State.Review
    assert sched.stability == params.weights[3]
    lo, hi = mm.fuzz_range(mm.next_interval(params.weights[3], params), params)
    assert lo <= outcome.interval_days <= hi
    assert sched.due == now + timedelta(days=outcome.interval_days)
    assert sched.reps == 0


def test_two_goods_graduate_with_good_stability(scheduler, new_card, now, params):
    card, _ = scheduler.commit_review(new_card, Grade.Good, now)
    later = now + timedelta(minutes=10)
    card, entry = scheduler.commit_review(card, Grade.Good, later)
    sched = card.scheduling

    assert sched.state == State.Review
    assert sched.stability == params.weights[2]
    # Two days is below the fuzz threshold.
    assert sched.scheduled_days == 2.0
    assert sched.due == later + timedelta(days=2)
    assert sched.learning_steps == 0
    assert len(card.review_log) == 2
    assert entry.before.state == State.Learning


def test_no_learning_steps_graduates_on_first_success(new_card, now):
    scheduler = Scheduler(ParameterSet(learning_steps=()))
    card, _ = scheduler.commit_review(new_card, Grade.Good, now)
    assert card.scheduling.state == State.Review


# --- Review and Relearning ---


def test_review_again_lapses_into_relearning(scheduler, make_review_card, now):
    card = make_review_card(stability=10.0, days_ago=10.0, lapses=1)
    updated, _ = scheduler.commit_review(card, Grade.Again, now)
    sched = updated.scheduling

    assert sched.state == State.Relearning
    assert sched.lapses == 2
    assert sched.reps == card.scheduling.reps
    assert sched.stability < 10.0
    assert sched.learning_steps == 0
    assert sched.due == now + timedelta(minutes=10)
    assert sched.elapsed_days == pytest.approx(10.0)


def test_review_again_without_relearning_steps_is_due_now(make_review_card, now):
    scheduler = Scheduler(ParameterSet(relearning_steps=()))
    updated, _ = scheduler.commit_review(make_review_card(), Grade.Again, now)
    assert updated.scheduling.state == State.Relearning
    assert updated.scheduling.due == now


def test_review_success_increments_reps(scheduler, make_review_card, now):
    card = make_review_card(reps=3)
    for grade in (Grade.Hard, Grade.Good, Grade.Easy):
        updated, _ = scheduler.commit_review(card, grade, now)
        assert updated.scheduling.state == State.Review
        assert updated.scheduling.reps == 4
        assert updated.scheduling.lapses == 0
        assert updated.scheduling.stability > 10.0


def test_review_intervals_are_ordered(scheduler, make_review_card, now):
    for days_ago in (1.0, 5.0, 10.0, 40.0):
        outcomes = scheduler.schedule_preview(make_review_card(days_ago=days_ago), now)
        hard = outcomes[Grade.Hard].interval_days
        good = outcomes[Grade.Good].interval_days
        easy = outcomes[Grade.Easy].interval_days
        assert 1 <= hard <= good < easy


def test_maximum_interval_caps_review_intervals(make_review_card, now):
    scheduler = Scheduler(ParameterSet(maximum_interval=5))
    outcomes = scheduler.schedule_preview(make_review_card(stability=1000.0), now)
    for grade in (Grade.Hard, Grade.Good, Grade.Easy):
        assert outcomes[grade].interval_days <= 5


def test_relearning_good_graduates_back_to_review(scheduler, make_review_card, now):
    card = make_review_card(state=State.Relearning, stability=3.0, days_ago=10 / 1440,
                            scheduled_days=10 / 1440)
    updated, _ = scheduler.commit_review(card, Grade.Good, now)
    sched = updated.scheduling

    assert sched.state == State.Review
    assert sched.stability == pytest.approx(
        mm.short_term_stability(3.0, Grade.Good, scheduler.parameters)
    )
    assert sched.reps == card.scheduling.reps
    assert sched.lapses == card.scheduling.lapses


def test_relearning_again_stays(scheduler, make_review_card, now):
    card = make_review_card(state=State.Relearning, stability=3.0, days_ago=0.01,
                            scheduled_days=0.01)
    updated, _ = scheduler.commit_review(card, Grade.Again, now)
    assert updated.scheduling.state == State.Relearning
    assert updated.scheduling.due == now + timedelta(minutes=10)
    assert updated.scheduling.lapses == card.scheduling.lapses


# --- Preview / commit ---


def test_preview_is_pure_and_repeatable(scheduler, make_review_card, now):
    card = make_review_card()
    first = scheduler.schedule_preview(card, now)
    second = scheduler.schedule_preview(card, now)

    assert first == second
    assert set(first) == set(Grade)
    assert card.review_log == ()
    assert card == make_review_card()


def test_commit_matches_preview(scheduler, make_review_card, now):
    card = make_review_card()
    preview = scheduler.schedule_preview(card, now)
    for grade in Grade:
        updated, entry = scheduler.commit_review(card, grade, now)
        assert updated == preview[grade].card
        assert entry == preview[grade].review_log


def test_commit_accepts_int_grade(scheduler, new_card, now):
    by_int, _ = scheduler.commit_review(new_card, 3, now)
    by_enum, _ = scheduler.commit_review(new_card, Grade.Good, now)
    assert by_int == by_enum


def test_naive_now_is_treated_as_utc(scheduler, make_review_card, now):
    card = make_review_card()
    aware = scheduler.schedule_preview(card, now)
    naive = scheduler.schedule_preview(card, now.replace(tzinfo=None))
    assert aware == naive


def test_clock_skew_clamps_elapsed(scheduler, make_review_card, now, caplog):
    card = make_review_card(days_ago=-1.0, scheduled_days=3.0)
    with caplog.at_level(logging.WARNING):
        updated, entry = scheduler.commit_review(card, Grade.Good, now)

    assert "Clock skew" in caplog.text
    assert entry.after.elapsed_days == 0.0
    assert updated.scheduling.due > now


def test_clock_skew_never_moves_review_stamp_backwards(scheduler, make_review_card, now):
    card = make_review_card(days_ago=-1 / 86400, scheduled_days=3.0)
    last_review = card.scheduling.last_review

    updated, entry = scheduler.commit_review(card, Grade.Again, now)
    assert entry.reviewed_at == last_review
    assert updated.scheduling.last_review == last_review

    again, second = scheduler.commit_review(updated, Grade.Good, now)
    stamps = [e.reviewed_at for e in again.review_log]
    assert stamps == sorted(stamps)
    assert second.reviewed_at >= entry.reviewed_at


def test_inconsistent_card_is_rejected(scheduler, new_card, now):
    broken = replace(new_card, scheduling=replace(new_card.scheduling, stability=2.0))
    with pytest.raises(InvalidCardRecord):
        scheduler.schedule_preview(broken, now)


def test_apply_review_uses_default_scheduler(new_card, now):
    card, entry = apply_review(new_card, Grade.Good, now)
    assert card.scheduling.state == State.Learning
    assert entry.grade == Grade.Good


# --- Queries ---


def test_due_queries(scheduler, new_card, make_review_card, now):
    overdue = make_review_card(days_ago=12.0, scheduled_days=10.0, card_id="a")
    future = make_review_card(days_ago=2.0, scheduled_days=10.0, card_id="b")

    assert scheduler.is_due(new_card, now)
    assert scheduler.is_due(overdue, now)
    assert not scheduler.is_due(future, now)
    assert scheduler.time_until_due(future, now) == timedelta(days=8)
    assert [c.card_id for c in scheduler.due_cards([new_card, future, overdue], now)] == [
        "a",
        "card_1",
    ]


def test_retrievability_at(scheduler, new_card, make_review_card, now):
    assert scheduler.retrievability_at(new_card, now) is None
    card = make_review_card(stability=10.0, days_ago=10.0)
    assert scheduler.retrievability_at(card, now) == pytest.approx(0.9)


# --- Long-run invariants ---


@pytest.mark.parametrize("seed", [1, 7, 42])
def test_random_review_sequences_keep_invariants(new_card, now, seed):
    scheduler = Scheduler()
    rng = random.Random(seed)
    card = new_card
    clock = now

    for _ in range(150):
        before: SchedulingState = card.scheduling
        clock = max(clock, before.due) + timedelta(minutes=rng.randint(0, 600))
        grade = rng.choice(list(Grade))
        card, entry = scheduler.commit_review(card, grade, clock)
        sched = card.scheduling

        assert 1.0 <= sched.difficulty <= 10.0
        assert sched.stability > 0
        assert sched.due >= clock
        assert sched.reps >= before.reps and sched.lapses >= before.lapses
        if sched.state == State.Review:
            assert 1 <= sched.scheduled_days <= scheduler.parameters.maximum_interval
        if before.state == State.Review and grade == Grade.Again:
            assert sched.lapses == before.lapses + 1
            if before.stability > STABILITY_MIN:
                assert sched.stability < before.stability
        assert entry.after == sched

    assert len(card.review_log) == 150


def test_tiny_retention_target_schedules_at_the_cap(make_review_card, now):
    scheduler = Scheduler(
        ParameterSet(desired_retention=1e-50, maximum_interval=400, enable_fuzzing=False)
    )
    outcomes = scheduler.schedule_preview(make_review_card(), now)
    for grade in (Grade.Hard, Grade.Good, Grade.Easy):
        assert 1 <= outcomes[grade].interval_days <= 400
    assert outcomes[Grade.Easy].interval_days == 400
