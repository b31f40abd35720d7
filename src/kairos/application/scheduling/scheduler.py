"""
Scheduler: the New / Learning / Review / Relearning state machine.

The core transform is pure. `schedule_preview` computes the outcome of all
four grades from one starting state; `commit_review` returns the one outcome
for the grade actually given. Commit is defined as "preview, then pick", so a
committed review always matches what the preview promised.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from kairos.domain.constants import HARD_SINGLE_STEP_MULTIPLIER, MINUTES_PER_DAY
from kairos.domain.scheduling.models import (
    CardRecord,
    Grade,
    ReviewLogEntry,
    SchedulingState,
    State,
    days_between,
    ensure_utc,
    validate_card_record,
)
from kairos.domain.scheduling.parameters import ParameterSet

from . import memory_model as mm

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledOutcome:
    """What happens to a card if the user presses one particular grade."""

    card: CardRecord
    interval_days: float
    review_log: ReviewLogEntry


@dataclass(frozen=True)
class _Step:
    index: int
    minutes: float


class Scheduler:
    """
    Orchestrates the memory model across the card state machine.

    Holds only its (immutable) parameter set, so one instance can serve any
    number of cards and concurrent callers.
    """

    def __init__(self, parameters: ParameterSet | None = None):
        self.parameters = parameters or ParameterSet()

    # ------------------------------------------------------------------
    # Exposed operations
    # ------------------------------------------------------------------

    def schedule_preview(self, card: CardRecord, now: datetime) -> dict[Grade, ScheduledOutcome]:
        """
        Forecast every grade without mutating anything.

        Returns:
            Mapping Grade -> ScheduledOutcome (new card, interval in days, log entry).

        Raises:
            InvalidCardRecord: If the card's fields are internally inconsistent.
        """
        validate_card_record(card)
        now = ensure_utc(now)
        before = card.scheduling
        elapsed = self._elapsed_days(card, now)
        if before.last_review is not None:
            # Review stamps never move backwards, so the log stays ordered.
            now = max(now, ensure_utc(before.last_review))
        # Fuzz depends only on the inputs, so repeated previews agree.
        seed = f"{card.card_id}:{before.reps}:{before.lapses}:{now.isoformat()}"

        if before.state in (State.New, State.Learning):
            states = self._learning_outcomes(before, now, elapsed, seed)
        elif before.state == State.Relearning:
            states = self._relearning_outcomes(before, now, elapsed, seed)
        else:
            states = self._review_outcomes(before, now, elapsed, seed)

        outcomes: dict[Grade, ScheduledOutcome] = {}
        for grade in Grade:
            after, interval_days = states[grade]
            entry = ReviewLogEntry(
                card_id=card.card_id,
                grade=grade,
                reviewed_at=now,
                before=before,
                after=after,
            )
            outcomes[grade] = ScheduledOutcome(
                card=card.with_review(after, entry),
                interval_days=interval_days,
                review_log=entry,
            )
        return outcomes

    def commit_review(
        self, card: CardRecord, grade: Grade | int, now: datetime
    ) -> tuple[CardRecord, ReviewLogEntry]:
        """
        The authoritative transition for the grade actually given.

        The caller must hold the result until persistence succeeds.
        """
        grade = Grade(grade)
        outcome = self.schedule_preview(card, now)[grade]
        logger.debug(
            f"Card {card.card_id}: {card.scheduling.state.name} --{grade.name}--> "
            f"{outcome.card.scheduling.state.name} (interval={outcome.interval_days:.4f}d)"
        )
        return outcome.card, outcome.review_log

    def is_due(self, card: CardRecord, now: datetime) -> bool:
        return ensure_utc(card.scheduling.due) <= ensure_utc(now)

    def time_until_due(self, card: CardRecord, now: datetime) -> timedelta:
        """Signed duration until the card is due (negative when overdue)."""
        return ensure_utc(card.scheduling.due) - ensure_utc(now)

    def retrievability_at(self, card: CardRecord, now: datetime) -> float | None:
        """Current recall probability, or None for cards never reviewed."""
        sched = card.scheduling
        if sched.state == State.New or sched.stability is None:
            return None
        return mm.retrievability(sched.stability, self._elapsed_days(card, now), self.parameters)

    def due_cards(self, cards: list[CardRecord], now: datetime) -> list[CardRecord]:
        """Cards eligible for review at `now`, most overdue first."""
        due = [c for c in cards if self.is_due(c, now)]
        return sorted(due, key=lambda c: ensure_utc(c.scheduling.due))

    # ------------------------------------------------------------------
    # State branches
    # ------------------------------------------------------------------

    def _learning_outcomes(
        self, before: SchedulingState, now: datetime, elapsed: float, seed: str
    ) -> dict[Grade, tuple[SchedulingState, float]]:
        steps = self.parameters.learning_steps
        current = 0 if before.state == State.New else before.learning_steps
        results = {}

        for grade in Grade:
            stability = mm.next_stability(before, grade, elapsed, self.parameters)
            difficulty = mm.next_difficulty(before, grade, self.parameters)
            step = self._next_step(steps, current, grade)

            if step is None:
                results[grade] = self._graduate(before, now, elapsed, stability, difficulty, seed)
            else:
                results[grade] = self._stay_in_steps(
                    before, State.Learning, now, elapsed, stability, difficulty, step
                )
        return results

    def _relearning_outcomes(
        self, before: SchedulingState, now: datetime, elapsed: float, seed: str
    ) -> dict[Grade, tuple[SchedulingState, float]]:
        steps = self.parameters.relearning_steps
        results = {}

        for grade in Grade:
            stability = mm.next_stability(before, grade, elapsed, self.parameters)
            difficulty = mm.next_difficulty(before, grade, self.parameters)
            step = self._next_step(steps, before.learning_steps, grade)
            if step is None and grade == Grade.Again:
                # No relearning steps: show it again straight away.
                step = _Step(index=0, minutes=0.0)

            if step is None:
                results[grade] = self._graduate(before, now, elapsed, stability, difficulty, seed)
            else:
                results[grade] = self._stay_in_steps(
                    before, State.Relearning, now, elapsed, stability, difficulty, step
                )
        return results

    def _review_outcomes(
        self, before: SchedulingState, now: datetime, elapsed: float, seed: str
    ) -> dict[Grade, tuple[SchedulingState, float]]:
        params = self.parameters
        memory = {
            grade: (
                mm.next_stability(before, grade, elapsed, params),
                mm.next_difficulty(before, grade, params),
            )
            for grade in Grade
        }

        # Again lapses into relearning from the first step.
        stability, difficulty = memory[Grade.Again]
        steps = params.relearning_steps
        lapse_step = _Step(0, steps[0]) if steps else _Step(0, 0.0)
        lapsed = self._stay_in_steps(
            before, State.Relearning, now, elapsed, stability, difficulty, lapse_step
        )
        lapsed_state = replace(lapsed[0], lapses=before.lapses + 1)

        intervals = {
            grade: mm.fuzz_interval(mm.next_interval(memory[grade][0], params), seed, params)
            for grade in (Grade.Hard, Grade.Good, Grade.Easy)
        }
        hard, good, easy = self._order_intervals(
            intervals[Grade.Hard], intervals[Grade.Good], intervals[Grade.Easy]
        )

        results = {Grade.Again: (lapsed_state, lapsed[1])}
        for grade, days in ((Grade.Hard, hard), (Grade.Good, good), (Grade.Easy, easy)):
            stability, difficulty = memory[grade]
            results[grade] = (
                SchedulingState(
                    state=State.Review,
                    due=now + timedelta(days=days),
                    stability=stability,
                    difficulty=difficulty,
                    elapsed_days=elapsed,
                    scheduled_days=float(days),
                    learning_steps=0,
                    reps=before.reps + 1,
                    lapses=before.lapses,
                    last_review=now,
                ),
                float(days),
            )
        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _elapsed_days(self, card: CardRecord, now: datetime) -> float:
        last_review = card.scheduling.last_review
        if last_review is None:
            return 0.0
        elapsed = days_between(last_review, now)
        if elapsed < 0:
            logger.warning(
                f"Clock skew on card {card.card_id}: review at {now.isoformat()} precedes "
                f"last review {ensure_utc(last_review).isoformat()}; elapsed clamped to 0"
            )
            return 0.0
        return elapsed

    @staticmethod
    def _next_step(steps: tuple[float, ...], current: int, grade: Grade) -> _Step | None:
        """Next position in a step table, or None when the card graduates."""
        if grade == Grade.Again:
            return _Step(0, steps[0]) if steps else None
        if grade == Grade.Easy or current >= len(steps):
            return None
        if grade == Grade.Hard:
            if current == 0 and len(steps) == 1:
                return _Step(0, steps[0] * HARD_SINGLE_STEP_MULTIPLIER)
            if current == 0:
                return _Step(0, (steps[0] + steps[1]) / 2)
            return _Step(current, steps[current])
        if current + 1 >= len(steps):
            return None
        return _Step(current + 1, steps[current + 1])

    def _stay_in_steps(
        self,
        before: SchedulingState,
        state: State,
        now: datetime,
        elapsed: float,
        stability: float,
        difficulty: float,
        step: _Step,
    ) -> tuple[SchedulingState, float]:
        interval_days = step.minutes / MINUTES_PER_DAY
        return (
            SchedulingState(
                state=state,
                due=now + timedelta(minutes=step.minutes),
                stability=stability,
                difficulty=difficulty,
                elapsed_days=elapsed,
                scheduled_days=interval_days,
                learning_steps=step.index,
                reps=before.reps,
                lapses=before.lapses,
                last_review=now,
            ),
            interval_days,
        )

    def _graduate(
        self,
        before: SchedulingState,
        now: datetime,
        elapsed: float,
        stability: float,
        difficulty: float,
        seed: str,
    ) -> tuple[SchedulingState, float]:
        params = self.parameters
        days = mm.fuzz_interval(mm.next_interval(stability, params), seed, params)
        return (
            SchedulingState(
                state=State.Review,
                due=now + timedelta(days=days),
                stability=stability,
                difficulty=difficulty,
                elapsed_days=elapsed,
                scheduled_days=float(days),
                learning_steps=0,
                reps=before.reps,
                lapses=before.lapses,
                last_review=now,
            ),
            float(days),
        )

    def _order_intervals(self, hard: int, good: int, easy: int) -> tuple[int, int, int]:
        """Force Hard <= Good <= Easy after fuzzing, without exceeding the cap."""
        cap = self.parameters.maximum_interval
        hard = min(hard, good)
        good = min(max(good, hard + 1), cap)
        easy = min(max(easy, good + 1), cap)
        return hard, good, easy


def apply_review(
    card: CardRecord,
    grade: Grade | int,
    now: datetime,
    scheduler: Scheduler | None = None,
) -> tuple[CardRecord, ReviewLogEntry]:
    """Pure composition point: grade a card record and return the new record and log entry."""
    return (scheduler or Scheduler()).commit_review(card, grade, now)
