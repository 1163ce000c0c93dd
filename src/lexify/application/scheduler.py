"""
FSRS scheduler: the memory-model update rules and the review-state machine.

Maps (card, rating, now) to a new card. Pure apart from the optional fuzz,
which draws from an injectable ``random.Random`` and can be disabled.

State machine:
    New        --any rating-->            Learning (step ladder)
    Learning   --enough Good/Easy-->      Review
    Review     --Again-->                 Relearning (lapse)
    Review     --Hard/Good/Easy-->        Review (longer interval)
    Relearning --enough Good/Easy-->      Review
    Relearning --Again-->                 Relearning (lapse)

References:
    https://github.com/open-spaced-repetition/fsrs4anki/wiki/The-Algorithm
"""

import logging
import math
import random
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from lexify.application.utils.text import parse_steps
from lexify.domain.constants import (
    DEFAULT_LEARNING_STEPS,
    DEFAULT_MAXIMUM_INTERVAL,
    DEFAULT_RELEARNING_STEPS,
    DEFAULT_REQUEST_RETENTION,
    DEFAULT_WEIGHTS,
    DIFFICULTY_MAX,
    DIFFICULTY_MIN,
    FUZZ_MIN_INTERVAL,
    FUZZ_RANGES,
    STABILITY_MIN,
)
from lexify.domain.models import FSRSCard, Rating, State, ensure_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerParameters:
    """
    Tunable scheduler settings.

    Attributes:
        weights: The 21 FSRS-6 model weights.
        request_retention: Recall probability targeted when a review falls due.
        maximum_interval: Upper bound for review intervals, in days.
        learning_steps: Short-term ladder for cards that have not graduated yet.
        relearning_steps: Short-term ladder after a lapse.
        enable_fuzz: Spread day-scale review intervals to avoid clustering.
        enable_short_term: Use the short-term stability formula for same-day reviews.
    """

    weights: tuple[float, ...] = DEFAULT_WEIGHTS
    request_retention: float = DEFAULT_REQUEST_RETENTION
    maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL
    learning_steps: tuple[timedelta, ...] = field(
        default_factory=lambda: parse_steps(DEFAULT_LEARNING_STEPS)
    )
    relearning_steps: tuple[timedelta, ...] = field(
        default_factory=lambda: parse_steps(DEFAULT_RELEARNING_STEPS)
    )
    enable_fuzz: bool = True
    enable_short_term: bool = True

    def __post_init__(self):
        if len(self.weights) != len(DEFAULT_WEIGHTS):
            raise ValueError(f"Expected {len(DEFAULT_WEIGHTS)} weights, got {len(self.weights)}")
        if not 0 < self.request_retention < 1:
            raise ValueError("request_retention must be between 0 and 1 (exclusive)")
        if self.maximum_interval < 1:
            raise ValueError("maximum_interval must be at least one day")

    @property
    def decay(self) -> float:
        return -self.weights[20]

    @property
    def factor(self) -> float:
        return math.pow(0.9, 1 / self.decay) - 1


def coerce_rating(rating: int | Rating) -> Rating:
    """
    Validate a review rating.

    Manual (0) is coerced to Again; it is never a valid scheduling input.

    Raises:
        ValueError: For anything other than 0-4.
    """
    value = int(rating)
    if value == Rating.MANUAL:
        logger.debug("Coercing Manual rating to Again")
        return Rating.AGAIN
    if value not in (Rating.AGAIN, Rating.HARD, Rating.GOOD, Rating.EASY):
        raise ValueError(f"Unsupported rating: {rating!r}")
    return Rating(value)


def _clamp_difficulty(value: float) -> float:
    return min(max(value, DIFFICULTY_MIN), DIFFICULTY_MAX)


def _clamp_stability(value: float) -> float:
    return max(value, STABILITY_MIN)


class Scheduler:
    """FSRS review scheduler."""

    def __init__(
        self,
        parameters: SchedulerParameters | None = None,
        rng: random.Random | None = None,
    ):
        self.parameters = parameters or SchedulerParameters()
        self._rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def initial_card(self, now: datetime | None = None) -> FSRSCard:
        """A brand-new card in state New, due immediately."""
        return FSRSCard(due=ensure_utc(now or utcnow()))

    def retrievability(self, card: FSRSCard, now: datetime) -> float:
        """Probability of recall at *now*; 0 for cards never reviewed."""
        if card.last_review is None or card.stability <= 0:
            return 0.0
        elapsed = max(0, (ensure_utc(now) - card.last_review).days)
        p = self.parameters
        return math.pow(1 + p.factor * elapsed / card.stability, p.decay)

    def schedule(self, card: FSRSCard, rating: int | Rating, now: datetime) -> FSRSCard:
        """Apply *rating* to *card* at *now* and return the updated card."""
        rating = coerce_rating(rating)
        now = ensure_utc(now)
        elapsed_days = self._elapsed_days(card, now)

        if card.state == State.NEW or card.stability <= 0:
            stability = self._initial_stability(rating)
            difficulty = self._initial_difficulty(rating)
        else:
            prior_difficulty = card.difficulty or self._initial_difficulty(Rating.GOOD)
            stability = self._next_stability(card, prior_difficulty, rating, now, elapsed_days)
            difficulty = self._next_difficulty(prior_difficulty, rating)

        lapses = card.lapses
        if card.state == State.NEW:
            state, step, interval = self._first_step(rating, stability)
        elif card.state == State.LEARNING:
            state, step, interval = self._climb_ladder(
                card.learning_steps,
                rating,
                stability,
                self.parameters.learning_steps,
                State.LEARNING,
            )
        elif card.state == State.REVIEW:
            if rating == Rating.AGAIN:
                lapses += 1
                if self.parameters.relearning_steps:
                    state, step = State.RELEARNING, 0
                    interval = self.parameters.relearning_steps[0]
                else:
                    state, step, interval = State.REVIEW, 0, self._review_interval(stability)
            else:
                state, step, interval = State.REVIEW, 0, self._review_interval(stability)
        else:
            if rating == Rating.AGAIN:
                lapses += 1
            state, step, interval = self._climb_ladder(
                card.learning_steps,
                rating,
                stability,
                self.parameters.relearning_steps,
                State.RELEARNING,
            )

        return replace(
            card,
            due=now + interval,
            stability=stability,
            difficulty=difficulty,
            elapsed_days=elapsed_days,
            scheduled_days=interval.days if state == State.REVIEW else 0,
            learning_steps=step,
            reps=card.reps + 1,
            lapses=lapses,
            state=state,
            last_review=now,
        )

    def next_interval(self, stability: float) -> int:
        """Whole-day interval at which recall drops to the retention target."""
        p = self.parameters
        interval = (stability / p.factor) * (math.pow(p.request_retention, 1 / p.decay) - 1)
        return min(max(round(interval), 1), p.maximum_interval)

    # ------------------------------------------------------------------
    # Step ladders
    # ------------------------------------------------------------------
    def _first_step(self, rating: Rating, stability: float) -> tuple[State, int, timedelta]:
        steps = self.parameters.learning_steps
        if not steps:
            return State.REVIEW, 0, self._review_interval(stability)
        state, step, interval = self._climb_ladder(0, rating, stability, steps, State.LEARNING)
        if state == State.REVIEW:
            # A first review never graduates; the best it earns is the last step.
            return State.LEARNING, len(steps) - 1, steps[-1]
        return state, step, interval

    def _climb_ladder(
        self,
        step: int,
        rating: Rating,
        stability: float,
        steps: tuple[timedelta, ...],
        ladder_state: State,
    ) -> tuple[State, int, timedelta]:
        if not steps or (step >= len(steps) and rating != Rating.AGAIN):
            return State.REVIEW, 0, self._review_interval(stability)

        if rating == Rating.AGAIN:
            return ladder_state, 0, steps[0]

        if rating == Rating.HARD:
            if step == 0 and len(steps) == 1:
                return ladder_state, step, steps[0] * 1.5
            if step == 0:
                return ladder_state, step, (steps[0] + steps[1]) / 2
            return ladder_state, step, steps[step]

        if rating == Rating.GOOD and step + 1 < len(steps):
            return ladder_state, step + 1, steps[step + 1]

        return State.REVIEW, 0, self._review_interval(stability)

    def _review_interval(self, stability: float) -> timedelta:
        days = self.next_interval(stability)
        if self.parameters.enable_fuzz:
            days = self._fuzz(days)
        return timedelta(days=days)

    def _fuzz(self, days: int) -> int:
        if days < FUZZ_MIN_INTERVAL:
            return days
        delta = 1.0
        for start, end, factor in FUZZ_RANGES:
            delta += factor * max(min(days, end) - start, 0.0)
        high = min(int(round(days + delta)), self.parameters.maximum_interval)
        low = min(max(2, int(round(days - delta))), high)
        return self._rng.randint(low, high)

    # ------------------------------------------------------------------
    # Memory model
    # ------------------------------------------------------------------
    @staticmethod
    def _elapsed_days(card: FSRSCard, now: datetime) -> int:
        if card.last_review is None:
            return 0
        return max(0, (now - card.last_review).days)

    def _initial_stability(self, rating: Rating) -> float:
        return _clamp_stability(self.parameters.weights[rating - 1])

    def _initial_difficulty(self, rating: Rating, clamp: bool = True) -> float:
        w = self.parameters.weights
        value = w[4] - math.exp(w[5] * (rating - 1)) + 1
        return _clamp_difficulty(value) if clamp else value

    def _next_difficulty(self, difficulty: float, rating: Rating) -> float:
        w = self.parameters.weights
        delta = -w[6] * (rating - 3)
        damped = difficulty + delta * (10.0 - difficulty) / 9.0
        # Mean reversion towards the initial difficulty of an Easy first review.
        target = self._initial_difficulty(Rating.EASY, clamp=False)
        return _clamp_difficulty(w[7] * target + (1 - w[7]) * damped)

    def _next_stability(
        self,
        card: FSRSCard,
        difficulty: float,
        rating: Rating,
        now: datetime,
        elapsed_days: int,
    ) -> float:
        if self.parameters.enable_short_term and elapsed_days < 1:
            return self._short_term_stability(card.stability, rating)
        retrievability = self.retrievability(card, now)
        if rating == Rating.AGAIN:
            value = self._forget_stability(difficulty, card.stability, retrievability)
        else:
            value = self._recall_stability(difficulty, card.stability, retrievability, rating)
        return _clamp_stability(value)

    def _short_term_stability(self, stability: float, rating: Rating) -> float:
        w = self.parameters.weights
        increase = math.exp(w[17] * (rating - 3 + w[18])) * math.pow(stability, -w[19])
        if rating >= Rating.GOOD:
            increase = max(increase, 1.0)
        return _clamp_stability(stability * increase)

    def _recall_stability(
        self, difficulty: float, stability: float, retrievability: float, rating: Rating
    ) -> float:
        w = self.parameters.weights
        hard_penalty = w[15] if rating == Rating.HARD else 1.0
        easy_bonus = w[16] if rating == Rating.EASY else 1.0
        return stability * (
            1
            + math.exp(w[8])
            * (11 - difficulty)
            * math.pow(stability, -w[9])
            * (math.exp((1 - retrievability) * w[10]) - 1)
            * hard_penalty
            * easy_bonus
        )

    def _forget_stability(
        self, difficulty: float, stability: float, retrievability: float
    ) -> float:
        w = self.parameters.weights
        long_term = (
            w[11]
            * math.pow(difficulty, -w[12])
            * (math.pow(stability + 1, w[13]) - 1)
            * math.exp((1 - retrievability) * w[14])
        )
        short_term = stability / math.exp(w[17] * w[18])
        return min(long_term, short_term)


_default_scheduler: Scheduler | None = None


def _get_default_scheduler() -> Scheduler:
    global _default_scheduler
    if _default_scheduler is None:
        _default_scheduler = Scheduler()
    return _default_scheduler


def initial_card(now: datetime | None = None) -> FSRSCard:
    return _get_default_scheduler().initial_card(now)


def schedule(card: FSRSCard, rating: int | Rating, now: datetime) -> FSRSCard:
    """Schedule with the default parameters (fuzz enabled)."""
    return _get_default_scheduler().schedule(card, rating, now)
