"""
Metrics calculator for deriving insights from the word library.

This is a pure computation module with no I/O.
"""

import math
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from lexify.application.scheduler import Scheduler
from lexify.application.selector import is_due
from lexify.domain.models import ReviewChange, State, Word, ensure_utc, local_date, utcnow
from lexify.domain.stats.models import StageDistributionDatum, WordStats

STATE_ORDER = (State.NEW, State.LEARNING, State.REVIEW, State.RELEARNING)
STATE_SCORES = {State.NEW: 1, State.LEARNING: 2, State.REVIEW: 3, State.RELEARNING: 4}


@dataclass
class EnrichedWord:
    """
    A word enriched with computed memory metrics.
    """

    word_id: str
    text: str
    state: State
    reps: int
    lapses: int
    stability: float
    difficulty: float

    # Computed metrics
    current_retrievability: float | None
    lapse_rate: float | None  # lapses / reps
    days_overdue: int | None  # Negative if not yet due


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class MetricsCalculator:
    """
    Computes library statistics and per-word metrics.

    Stateless and side-effect free.
    """

    def __init__(self, scheduler: Scheduler | None = None):
        self.scheduler = scheduler or Scheduler()

    def word_stats(self, words: Sequence[Word], now: datetime | None = None) -> WordStats:
        """
        Summarise the library for the local calendar day of *now*.

        Level changes only count words reviewed today that are no longer New.
        """
        now = ensure_utc(now or utcnow())
        today = local_date(now)
        counts = Counter(w.fsrs_card.state for w in words)
        state_sum = sum(STATE_SCORES[w.fsrs_card.state] for w in words)

        leveled_up = leveled_down = added_today = due_today = 0
        for w in words:
            card = w.fsrs_card
            if (
                card.last_review is not None
                and local_date(card.last_review) == today
                and card.state != State.NEW
            ):
                if w.review_change == ReviewChange.UP:
                    leveled_up += 1
                elif w.review_change == ReviewChange.DOWN:
                    leveled_down += 1
            if local_date(w.date_added) == today:
                added_today += 1
            if is_due(card.due, now):
                due_today += 1

        return WordStats(
            total_words=len(words),
            new=counts[State.NEW],
            learning=counts[State.LEARNING],
            review=counts[State.REVIEW],
            relearning=counts[State.RELEARNING],
            avg_state=state_sum / len(words) if words else 0.0,
            leveled_up_today=leveled_up,
            leveled_down_today=leveled_down,
            added_today=added_today,
            due_today=due_today,
        )

    def stage_distribution(self, words: Sequence[Word]) -> list[StageDistributionDatum]:
        """Non-empty states with their share of the library, in lifecycle order."""
        counts = Counter(w.fsrs_card.state for w in words)
        total = len(words) or 1
        return [
            StageDistributionDatum(
                name=state.value,
                value=counts[state],
                percent=_round_half_up(counts[state] / total * 100),
                state=state,
            )
            for state in STATE_ORDER
            if counts[state] > 0
        ]

    def enrich(self, word: Word, now: datetime | None = None) -> EnrichedWord:
        now = ensure_utc(now or utcnow())
        card = word.fsrs_card
        return EnrichedWord(
            word_id=word.id,
            text=word.text,
            state=card.state,
            reps=card.reps,
            lapses=card.lapses,
            stability=card.stability,
            difficulty=card.difficulty,
            current_retrievability=self._compute_retrievability(word, now),
            lapse_rate=self._compute_lapse_rate(word),
            days_overdue=self._compute_days_overdue(word, now),
        )

    def _compute_retrievability(self, word: Word, now: datetime) -> float | None:
        card = word.fsrs_card
        if card.last_review is None or card.stability <= 0:
            return None
        return self.scheduler.retrievability(card, now)

    def _compute_lapse_rate(self, word: Word) -> float | None:
        if word.fsrs_card.reps == 0:
            return None
        return word.fsrs_card.lapses / word.fsrs_card.reps

    def _compute_days_overdue(self, word: Word, now: datetime) -> int | None:
        """Calendar days past due; negative if not yet due."""
        if word.fsrs_card.state == State.NEW:
            return None
        return (local_date(now) - local_date(word.fsrs_card.due)).days
