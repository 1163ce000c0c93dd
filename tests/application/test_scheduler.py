import random
from datetime import timedelta

import pytest

from lexify.application import scheduler as scheduler_module
from lexify.application.scheduler import Scheduler, SchedulerParameters, coerce_rating
from lexify.domain.models import FSRSCard, Rating, State


@pytest.fixture
def review_card(now):
    return FSRSCard(
        due=now,
        stability=10.0,
        difficulty=5.0,
        scheduled_days=10,
        reps=5,
        state=State.REVIEW,
        last_review=now - timedelta(days=10),
    )


class TestRatings:
    """Rating validation and the Manual -> Again coercion."""

    def test_manual_is_coerced_to_again(self):
        assert coerce_rating(0) == Rating.AGAIN
        assert coerce_rating(Rating.MANUAL) == Rating.AGAIN

    def test_valid_ratings_pass_through(self):
        for value in (1, 2, 3, 4):
            assert coerce_rating(value) == Rating(value)

    @pytest.mark.parametrize("value", [-1, 5, 42])
    def test_out_of_range_rejected(self, value):
        with pytest.raises(ValueError):
            coerce_rating(value)

    def test_schedule_treats_manual_as_again(self, scheduler, review_card, now):
        assert scheduler.schedule(review_card, 0, now) == scheduler.schedule(
            review_card, Rating.AGAIN, now
        )


class TestParameters:
    def test_wrong_weight_count_rejected(self):
        with pytest.raises(ValueError):
            SchedulerParameters(weights=(1.0, 2.0))

    @pytest.mark.parametrize("retention", [0.0, 1.0, 1.5])
    def test_retention_bounds(self, retention):
        with pytest.raises(ValueError):
            SchedulerParameters(request_retention=retention)

    def test_next_interval_matches_stability_at_default_retention(self, scheduler):
        # At 90% retention the interval equals the stability by construction.
        assert scheduler.next_interval(10.0) == 10
        assert scheduler.next_interval(0.2) == 1

    def test_next_interval_capped(self):
        s = Scheduler(SchedulerParameters(maximum_interval=30, enable_fuzz=False))
        assert s.next_interval(5000.0) == 30


class TestNewCards:
    def test_initial_card(self, scheduler, now):
        card = scheduler.initial_card(now)
        assert card.state == State.NEW
        assert card.due == now
        assert card.reps == 0
        assert card.lapses == 0
        assert card.last_review is None

    @pytest.mark.parametrize("rating", [Rating.AGAIN, Rating.HARD, Rating.GOOD, Rating.EASY])
    def test_first_review_lands_in_learning(self, scheduler, now, rating):
        card = scheduler.schedule(scheduler.initial_card(now), rating, now)
        assert card.state == State.LEARNING
        assert card.reps == 1
        assert card.lapses == 0
        assert card.due > now
        assert card.scheduled_days == 0
        assert card.last_review == now

    def test_first_review_intervals_follow_steps(self, scheduler, now):
        new = scheduler.initial_card(now)
        assert scheduler.schedule(new, Rating.AGAIN, now).due == now + timedelta(minutes=5)
        # Hard on the first step waits halfway between the first two steps.
        assert scheduler.schedule(new, Rating.HARD, now).due == now + timedelta(minutes=17.5)
        assert scheduler.schedule(new, Rating.GOOD, now).due == now + timedelta(minutes=30)
        easy = scheduler.schedule(new, Rating.EASY, now)
        assert easy.due == now + timedelta(minutes=30)
        assert easy.learning_steps == 1

    def test_initial_memory_state_uses_weights(self, scheduler, now):
        card = scheduler.schedule(scheduler.initial_card(now), Rating.GOOD, now)
        w = scheduler.parameters.weights
        assert card.stability == pytest.approx(w[2])
        assert 1.0 <= card.difficulty <= 10.0

    def test_without_learning_steps_goes_straight_to_review(self, now):
        s = Scheduler(SchedulerParameters(learning_steps=(), enable_fuzz=False))
        card = s.schedule(s.initial_card(now), Rating.GOOD, now)
        assert card.state == State.REVIEW
        assert card.scheduled_days >= 1


class TestStateMachine:
    def test_learning_graduates_after_steps(self, scheduler, now):
        card = scheduler.schedule(scheduler.initial_card(now), Rating.GOOD, now)
        later = card.due
        graduated = scheduler.schedule(card, Rating.GOOD, later)
        assert graduated.state == State.REVIEW
        assert graduated.scheduled_days >= 1
        assert graduated.due == later + timedelta(days=graduated.scheduled_days)

    def test_learning_again_restarts_ladder(self, scheduler, now):
        card = scheduler.schedule(scheduler.initial_card(now), Rating.GOOD, now)
        again = scheduler.schedule(card, Rating.AGAIN, card.due)
        assert again.state == State.LEARNING
        assert again.learning_steps == 0
        assert again.lapses == 0

    def test_review_again_moves_to_relearning(self, scheduler, review_card, now):
        card = scheduler.schedule(review_card, Rating.AGAIN, now)
        assert card.state == State.RELEARNING
        assert card.lapses == review_card.lapses + 1
        assert card.due == now + timedelta(minutes=10)

    @pytest.mark.parametrize("rating", [Rating.HARD, Rating.GOOD, Rating.EASY])
    def test_review_success_stays_in_review(self, scheduler, review_card, now, rating):
        card = scheduler.schedule(review_card, rating, now)
        assert card.state == State.REVIEW
        assert card.lapses == review_card.lapses
        assert card.stability > review_card.stability

    def test_relearning_again_stays_and_counts_lapse(self, scheduler, review_card, now):
        relearning = scheduler.schedule(review_card, Rating.AGAIN, now)
        again = scheduler.schedule(relearning, Rating.AGAIN, relearning.due)
        assert again.state == State.RELEARNING
        assert again.lapses == relearning.lapses + 1

    def test_relearning_good_returns_to_review(self, scheduler, review_card, now):
        relearning = scheduler.schedule(review_card, Rating.AGAIN, now)
        back = scheduler.schedule(relearning, Rating.GOOD, relearning.due)
        assert back.state == State.REVIEW
        assert back.lapses == relearning.lapses

    def test_states_are_closed(self, now):
        s = Scheduler(
            SchedulerParameters(enable_fuzz=True, maximum_interval=365), rng=random.Random(3)
        )
        rng = random.Random(11)
        card = s.initial_card(now)
        t = now
        for _ in range(60):
            card = s.schedule(card, rng.choice(list(Rating)[1:]), t)
            assert card.state in set(State)
            assert card.due > t
            t = card.due


class TestMemoryModel:
    def test_deterministic_without_fuzz(self, scheduler, review_card, now):
        results = {scheduler.schedule(review_card, Rating.GOOD, now) for _ in range(5)}
        assert len(results) == 1

    def test_again_is_worse_than_easy(self, scheduler, review_card, now):
        again = scheduler.schedule(review_card, Rating.AGAIN, now)
        easy = scheduler.schedule(review_card, Rating.EASY, now)
        assert again.stability < easy.stability
        assert again.difficulty > easy.difficulty

    def test_interval_grows_with_rating(self, scheduler, review_card, now):
        hard = scheduler.schedule(review_card, Rating.HARD, now)
        good = scheduler.schedule(review_card, Rating.GOOD, now)
        easy = scheduler.schedule(review_card, Rating.EASY, now)
        assert hard.scheduled_days <= good.scheduled_days <= easy.scheduled_days
        assert hard.difficulty > good.difficulty > easy.difficulty

    def test_difficulty_stays_in_bounds(self, scheduler, review_card, now):
        card = review_card
        for _ in range(30):
            card = scheduler.schedule(card, Rating.AGAIN, now)
        assert card.difficulty <= 10.0
        for _ in range(60):
            card = scheduler.schedule(card, Rating.EASY, now)
        assert card.difficulty >= 1.0

    def test_retrievability(self, scheduler, review_card, now):
        # Ten days after review with stability 10 recall sits at 90%.
        assert scheduler.retrievability(review_card, now) == pytest.approx(0.9)
        assert scheduler.retrievability(review_card, review_card.last_review) == pytest.approx(1.0)
        assert scheduler.retrievability(scheduler.initial_card(now), now) == 0.0


class TestFuzz:
    def test_fuzz_stays_near_interval(self, review_card, now):
        plain = Scheduler(SchedulerParameters(enable_fuzz=False))
        base = plain.schedule(review_card, Rating.GOOD, now).scheduled_days

        fuzzed = Scheduler(SchedulerParameters(enable_fuzz=True), rng=random.Random(1))
        days = {fuzzed.schedule(review_card, Rating.GOOD, now).scheduled_days for _ in range(50)}
        assert len(days) > 1
        assert all(abs(d - base) <= max(2, base * 0.2) for d in days)

    def test_fuzz_reproducible_with_seeded_rng(self, review_card, now):
        a = Scheduler(rng=random.Random(42)).schedule(review_card, Rating.GOOD, now)
        b = Scheduler(rng=random.Random(42)).schedule(review_card, Rating.GOOD, now)
        assert a == b

    def test_learning_steps_are_not_fuzzed(self, now):
        s = Scheduler(rng=random.Random(5))
        for _ in range(10):
            card = s.schedule(s.initial_card(now), Rating.GOOD, now)
            assert card.due == now + timedelta(minutes=30)


def test_module_level_helpers(now):
    card = scheduler_module.initial_card(now)
    assert card.state == State.NEW
    reviewed = scheduler_module.schedule(card, Rating.GOOD, now)
    assert reviewed.state == State.LEARNING
