"""
Domain models for card scheduling.

These are pure data structures with no I/O or external dependencies.
Every model is frozen: a review produces new objects, never mutates old ones.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import IntEnum

from kairos.domain.constants import MAX_DIFFICULTY, MIN_DIFFICULTY, SECONDS_PER_DAY
from kairos.domain.exceptions import InvalidCardRecord


class State(IntEnum):
    """Position of a card in the scheduling state machine."""

    New = 0
    Learning = 1
    Review = 2
    Relearning = 3


class Grade(IntEnum):
    """Button pressed by the user. Again always lapses; the rest advance."""

    Again = 1
    Hard = 2
    Good = 3
    Easy = 4


def ensure_utc(moment: datetime) -> datetime:
    """Normalize a timestamp to aware UTC. Naive values are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def days_between(start: datetime, end: datetime) -> float:
    """Signed number of (fractional) days from start to end."""
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / SECONDS_PER_DAY


@dataclass(frozen=True)
class SchedulingState:
    """
    The quantity the scheduler owns for a single card.

    Attributes:
        state: Current state machine position.
        due: Instant at which the card becomes eligible for review.
        stability: Days until recall probability decays to 90%. None while New.
        difficulty: Intrinsic hardness in [1, 10]. None while New.
        elapsed_days: Days between the previous review and the latest one.
        scheduled_days: Interval scheduled at the latest review (fractional for steps).
        learning_steps: Index into the active learning/relearning step table.
        reps: Successful reviews while in Review.
        lapses: Again grades received while in Review.
        last_review: Instant of the latest review. None while New.
    """

    state: State
    due: datetime
    stability: float | None = None
    difficulty: float | None = None
    elapsed_days: float = 0.0
    scheduled_days: float = 0.0
    learning_steps: int = 0
    reps: int = 0
    lapses: int = 0
    last_review: datetime | None = None

    @classmethod
    def new(cls, now: datetime) -> "SchedulingState":
        return cls(state=State.New, due=ensure_utc(now))


@dataclass(frozen=True)
class ReviewLogEntry:
    """
    One grading event. Append-only, never mutated after creation.

    Attributes:
        card_id: The card that was reviewed.
        grade: Button pressed.
        reviewed_at: Review instant.
        before: Scheduling state snapshot prior to the review.
        after: Scheduling state snapshot produced by the review.
    """

    card_id: str
    grade: Grade
    reviewed_at: datetime
    before: SchedulingState
    after: SchedulingState

    @property
    def elapsed_days(self) -> float:
        return self.after.elapsed_days

    @property
    def scheduled_days(self) -> float:
        """Interval that had been scheduled before this review."""
        return self.before.scheduled_days

    @property
    def overdue_days(self) -> float:
        """Positive when reviewed late, negative when reviewed early."""
        return self.elapsed_days - self.before.scheduled_days


@dataclass(frozen=True)
class Deck:
    deck_id: str
    name: str
    created_at: datetime
    description: str | None = None


@dataclass(frozen=True)
class CardRecord:
    """
    Persisted-shape card: content, current scheduling state and full review log.

    The review log is ordered by review instant.
    """

    card_id: str
    deck_id: str
    front: str
    back: str
    scheduling: SchedulingState
    created_at: datetime
    review_log: tuple[ReviewLogEntry, ...] = field(default_factory=tuple)

    def with_review(self, scheduling: SchedulingState, entry: ReviewLogEntry) -> "CardRecord":
        return replace(self, scheduling=scheduling, review_log=self.review_log + (entry,))


def validate_scheduling_state(sched: SchedulingState) -> None:
    """Raise InvalidCardRecord when the state/field combination is impossible."""
    if not isinstance(sched.state, State):
        raise InvalidCardRecord(f"Unknown state: {sched.state!r}")

    if sched.reps < 0 or sched.lapses < 0 or sched.learning_steps < 0:
        raise InvalidCardRecord("Counters must be non-negative")
    if sched.elapsed_days < 0 or sched.scheduled_days < 0:
        raise InvalidCardRecord("Elapsed and scheduled days must be non-negative")

    if sched.state == State.New:
        if sched.stability is not None or sched.difficulty is not None:
            raise InvalidCardRecord("New card carries a memory state")
        if sched.last_review is not None:
            raise InvalidCardRecord("New card has a last review")
        return

    if sched.stability is None or sched.difficulty is None:
        raise InvalidCardRecord(f"{sched.state.name} card is missing its memory state")
    if sched.stability <= 0:
        raise InvalidCardRecord(f"Stability must be positive, got {sched.stability}")
    if not MIN_DIFFICULTY <= sched.difficulty <= MAX_DIFFICULTY:
        raise InvalidCardRecord(f"Difficulty out of range: {sched.difficulty}")
    if sched.last_review is None:
        raise InvalidCardRecord(f"{sched.state.name} card has no last review")


def validate_card_record(card: CardRecord) -> None:
    """Defensive consistency check for a whole card record."""
    validate_scheduling_state(card.scheduling)

    for entry in card.review_log:
        if entry.card_id != card.card_id:
            raise InvalidCardRecord(
                f"Review log entry for {entry.card_id} attached to {card.card_id}"
            )
