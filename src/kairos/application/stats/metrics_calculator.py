"""
Metrics calculator for deriving insights from a card's scheduling state and review log.

This is a pure computation module with no I/O.
"""

from dataclasses import dataclass
from datetime import datetime

from kairos.application.scheduling.scheduler import Scheduler
from kairos.domain.scheduling.models import CardRecord, Grade, ReviewLogEntry, State, days_between


@dataclass
class CardMetrics:
    """
    A card's scheduling state enriched with computed metrics.
    """

    card_id: str
    deck_id: str
    state: State
    reps: int
    lapses: int

    # FSRS core
    stability: float | None
    difficulty: float | None

    # Computed metrics
    current_retrievability: float | None
    review_count: int
    lapse_rate: float | None  # lapses / graded reviews in Review
    volatility: float | None  # Interval variance over recent reviews
    days_overdue: float | None  # Negative if not yet due
    mean_overdue_at_review: float | None  # How late, on average, reviews happened


class MetricsCalculator:
    """
    Computes derived metrics from CardRecord objects.

    Stateless and side-effect free.
    """

    def __init__(self, scheduler: Scheduler | None = None):
        self._scheduler = scheduler or Scheduler()

    def enrich(self, card: CardRecord, now: datetime) -> CardMetrics:
        sched = card.scheduling
        return CardMetrics(
            card_id=card.card_id,
            deck_id=card.deck_id,
            state=sched.state,
            reps=sched.reps,
            lapses=sched.lapses,
            stability=sched.stability,
            difficulty=sched.difficulty,
            current_retrievability=self._scheduler.retrievability_at(card, now),
            review_count=len(card.review_log),
            lapse_rate=self._compute_lapse_rate(card),
            volatility=self._compute_volatility(card.review_log),
            days_overdue=self._compute_days_overdue(card, now),
            mean_overdue_at_review=self._compute_mean_overdue(card.review_log),
        )

    def _compute_lapse_rate(self, card: CardRecord) -> float | None:
        """
        Share of Review-state gradings that were lapses.
        """
        graded = card.scheduling.reps + card.scheduling.lapses
        if graded == 0:
            return None
        return card.scheduling.lapses / graded

    def _compute_volatility(self, reviews: tuple[ReviewLogEntry, ...]) -> float | None:
        """
        Variance of scheduled intervals over recent Review-state gradings.

        High volatility indicates unstable learning.
        """
        recent = [
            r.after.scheduled_days
            for r in reviews[-10:]
            if r.before.state == State.Review and r.grade != Grade.Again
        ]
        if len(recent) < 2:
            return None

        mean = sum(recent) / len(recent)
        return sum((i - mean) ** 2 for i in recent) / len(recent)

    def _compute_days_overdue(self, card: CardRecord, now: datetime) -> float | None:
        if card.scheduling.last_review is None:
            return None
        return days_between(card.scheduling.due, now)

    def _compute_mean_overdue(self, reviews: tuple[ReviewLogEntry, ...]) -> float | None:
        # Overdue is measured against the interval stored before each review.
        scored = [r.overdue_days for r in reviews if r.before.state == State.Review]
        if not scored:
            return None
        return sum(scored) / len(scored)
