import asyncio
import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from lexify.application.game_engine import EmptyReason, GameEngine, GamePhase
from lexify.application.question_adapter import MultipleChoiceAdapter, TextInputAdapter
from lexify.application.quiz_log import QuizLog
from lexify.domain.interfaces import QuestionService
from lexify.domain.models import GameMode, Rating, State, TextInputQuestion


class ScriptedService(QuestionService):
    """Question service whose calls can be held open until released."""

    def __init__(self):
        self.calls: list[str] = []
        self.fail = False
        self.hold = False
        self.gates: list[asyncio.Event] = []
        self.started = asyncio.Event()

    async def _answer(self, word: str, payload: dict) -> dict:
        self.calls.append(word)
        if self.hold:
            gate = asyncio.Event()
            self.gates.append(gate)
            self.started.set()
            await gate.wait()
        return {} if self.fail else payload

    async def generate_fill_blank(self, word, token):
        return await self._answer(
            word,
            {
                "sentenceWithBlank": "I like ___.",
                "translatedHint": f"hint {word}",
                "targetWord": word,
            },
        )

    async def generate_multiple_choice(self, word, decoys, token):
        return await self._answer(word, {"sentence": "I like ___.", "options": [word, *decoys]})


@pytest.fixture
def service():
    return ScriptedService()


@pytest.fixture
def details():
    svc = MagicMock()
    svc.fetch = AsyncMock(return_value="details")
    return svc


@pytest.fixture
def make_engine(store, service, details, now):
    def _make(mode: GameMode = GameMode.TEXT_INPUT, **kwargs) -> GameEngine:
        adapter = (
            TextInputAdapter(service)
            if mode == GameMode.TEXT_INPUT
            else MultipleChoiceAdapter(service, rng=random.Random(0))
        )
        kwargs.setdefault("details_service", details)
        return GameEngine(store, adapter, rng=random.Random(0), clock=lambda: now, **kwargs)

    return _make


class TestRounds:
    @pytest.mark.asyncio
    async def test_start_produces_round_and_prefetches(self, store, service, make_engine):
        await store.add_words_batch(["apple", "pear", "plum"])
        engine = make_engine()

        assert await engine.start() is True
        assert engine.phase == GamePhase.READY
        assert isinstance(engine.question, TextInputQuestion)
        assert engine.question.correct_answer == engine.current.word.text

        await engine.next_task
        assert engine.next_round is not None
        assert engine.next_round.word.id != engine.current.word.id
        assert len(service.calls) == 2

    @pytest.mark.asyncio
    async def test_advance_promotes_prefetched_round(self, store, service, make_engine):
        await store.add_words_batch(["apple", "pear", "plum"])
        engine = make_engine()
        await engine.start()
        await engine.next_task
        prefetched = engine.next_round

        await engine.submit_answer(engine.question.correct_answer)
        assert await engine.advance() is True
        assert engine.current is prefetched
        assert engine.phase == GamePhase.READY
        # Promotion did not generate anything synchronously.
        assert len(service.calls) == 2
        await engine.next_task
        assert len(service.calls) == 3

    @pytest.mark.asyncio
    async def test_advance_waits_for_in_flight_prefetch(self, store, service, make_engine):
        await store.add_words_batch(["apple", "pear"])
        engine = make_engine()
        await engine.start()
        service.hold = True
        await service.started.wait()
        prefetch_word = service.calls[-1]

        advancing = asyncio.ensure_future(engine.advance())
        await asyncio.sleep(0)
        assert engine.phase == GamePhase.LOADING_CURRENT

        service.hold = False
        service.gates[0].set()
        assert await advancing is True
        assert engine.current.word.text == prefetch_word
        assert service.calls.count(prefetch_word) == 1

    @pytest.mark.asyncio
    async def test_reentrant_advance_is_noop(self, store, service, make_engine):
        await store.add_word("apple")
        engine = make_engine()
        service.hold = True

        first = asyncio.ensure_future(engine.start())
        await service.started.wait()
        assert engine.phase == GamePhase.LOADING_CURRENT
        assert await engine.advance() is False
        assert len(service.calls) == 1

        service.hold = False
        service.gates[0].set()
        assert await first is True
        assert engine.phase == GamePhase.READY

    @pytest.mark.asyncio
    async def test_skip_leaves_word_unreviewed(self, store, make_engine):
        await store.add_words_batch(["apple", "pear"])
        engine = make_engine()
        await engine.start()
        skipped = engine.current.word
        await engine.advance()
        assert store.get_by_id(skipped.id).fsrs_card.reps == 0
        assert engine.quiz_log.entries == []

    @pytest.mark.asyncio
    async def test_listeners_see_phase_changes(self, store, make_engine):
        await store.add_word("apple")
        engine = make_engine()
        phases = []
        engine.subscribe(lambda e: phases.append(e.phase))
        await engine.start()
        assert GamePhase.LOADING_CURRENT in phases
        assert phases[-1] == GamePhase.READY


class TestEmptyAndDegraded:
    @pytest.mark.asyncio
    async def test_not_enough_words_for_multiple_choice(self, store, service, make_engine):
        await store.add_words_batch(["apple", "pear"])
        engine = make_engine(GameMode.MULTIPLE_CHOICE)
        assert await engine.start() is False
        assert engine.phase == GamePhase.EMPTY
        assert engine.empty_reason == EmptyReason.NOT_ENOUGH_WORDS
        assert service.calls == []

    @pytest.mark.asyncio
    async def test_multiple_choice_round(self, store, make_engine):
        await store.add_words_batch(["apple", "pear", "plum", "fig"])
        engine = make_engine(GameMode.MULTIPLE_CHOICE)
        assert await engine.start() is True
        question = engine.question
        assert len(question.options) == 4
        assert question.options.count(engine.current.word.text) == 1
        assert engine.reveal_hint() is None

    @pytest.mark.asyncio
    async def test_three_failures_trip_degraded(self, store, service, make_engine):
        await store.add_word("apple")
        engine = make_engine()
        service.fail = True

        assert await engine.start() is False
        assert engine.phase == GamePhase.EMPTY
        assert engine.empty_reason == EmptyReason.NO_QUESTION
        assert engine.failure_count == 1
        assert not engine.service_degraded

        await engine.retry()
        await engine.retry()
        assert engine.failure_count == 3
        assert engine.service_degraded

        service.fail = False
        assert await engine.retry() is True
        assert engine.failure_count == 0
        assert not engine.service_degraded

    @pytest.mark.asyncio
    async def test_retry_only_from_empty_or_idle(self, store, make_engine):
        await store.add_word("apple")
        engine = make_engine()
        await engine.start()
        assert await engine.retry() is False


class TestAnswering:
    @pytest.mark.asyncio
    async def test_first_try_correct_is_easy(self, store, details, make_engine):
        await store.add_word("apple")
        engine = make_engine()
        await engine.start()

        assert await engine.submit_answer("APPLE ") is True
        assert engine.phase == GamePhase.ANSWERED
        assert engine.last_rating == Rating.EASY
        assert engine.last_update_ok is True
        word = store.get_by_text("apple")
        assert word.fsrs_card.state == State.LEARNING
        assert word.fsrs_card.reps == 1

        [entry] = engine.quiz_log.entries
        assert entry.word == "apple"
        assert entry.correct is True
        assert entry.game == "text-input"
        details.fetch.assert_called_once_with("apple")

        assert await engine.submit_answer("apple") is None
        assert store.get_by_text("apple").fsrs_card.reps == 1

    @pytest.mark.asyncio
    async def test_hint_makes_it_good(self, store, make_engine):
        await store.add_word("apple")
        engine = make_engine()
        await engine.start()
        engine.set_input("ax")
        assert engine.reveal_hint() == "ap"
        assert engine.reveal_hint() is None
        assert await engine.submit_answer("apple") is True
        assert engine.last_rating == Rating.GOOD

    @pytest.mark.asyncio
    async def test_wrong_answer_is_again(self, store, make_engine):
        await store.add_word("apple")
        engine = make_engine()
        await engine.start()
        assert await engine.submit_answer("pear") is False
        assert engine.last_rating == Rating.AGAIN
        assert engine.answer.show_correct_answer
        card = store.get_by_text("apple").fsrs_card
        assert card.state == State.LEARNING
        assert card.learning_steps == 0

    @pytest.mark.asyncio
    async def test_failed_save_is_reported(self, store, repo, make_engine):
        await store.add_word("apple")
        repo.update_card = AsyncMock(side_effect=RuntimeError("offline"))
        engine = make_engine()
        await engine.start()
        assert await engine.submit_answer("apple") is True
        assert engine.last_update_ok is False
        assert store.get_by_text("apple").fsrs_card.state == State.NEW
        assert len(engine.quiz_log) == 1

    @pytest.mark.asyncio
    async def test_submit_before_start(self, store, make_engine):
        await store.add_word("apple")
        engine = make_engine()
        assert await engine.submit_answer("apple") is None
        assert engine.set_input("a") is False

    @pytest.mark.asyncio
    async def test_custom_quiz_log(self, store, make_engine):
        await store.add_word("apple")
        log = QuizLog(max_entries=1)
        engine = make_engine(quiz_log=log)
        await engine.start()
        await engine.submit_answer("apple")
        await engine.advance()
        await engine.submit_answer("nope")
        assert len(log) == 1
        assert log.entries[0].correct is False


class TestCancellation:
    @pytest.mark.asyncio
    async def test_superseded_prefetch_does_not_land(self, store, service, make_engine):
        await store.add_words_batch(["apple", "pear", "plum"])
        engine = make_engine()
        await engine.start()
        await engine.next_task

        service.hold = True
        task_a = engine.prefetch_next()
        await service.started.wait()

        service.hold = False
        task_b = engine.prefetch_next()
        round_b = await task_b
        service.gates[0].set()

        assert await task_a is None
        assert round_b is not None
        assert engine.next_round is round_b
        assert engine.failure_count == 0

    @pytest.mark.asyncio
    async def test_close_cancels_prefetch(self, store, service, details, make_engine):
        await store.add_words_batch(["apple", "pear"])
        engine = make_engine()
        await engine.start()
        service.hold = True
        await service.started.wait()

        engine.close()
        assert await engine.next_task is None
        assert engine.next_round is None
        assert await engine.advance() is False
        assert engine.prefetch_next() is None
        details.cancel.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_during_current_generation(self, store, service, make_engine):
        await store.add_word("apple")
        engine = make_engine()
        service.hold = True
        starting = asyncio.ensure_future(engine.start())
        await service.started.wait()

        engine.close()
        assert await starting is False
        assert engine.current is None
        assert engine.failure_count == 0

    @pytest.mark.asyncio
    async def test_reset(self, store, make_engine):
        await store.add_words_batch(["apple", "pear"])
        engine = make_engine()
        await engine.start()
        await engine.next_task
        engine.reset()
        assert engine.phase == GamePhase.IDLE
        assert engine.current is None
        assert engine.next_round is None
        assert await engine.start() is True

    @pytest.mark.asyncio
    async def test_reset_during_generation_stays_idle(self, store, service, make_engine):
        await store.add_word("apple")
        engine = make_engine()
        service.hold = True
        starting = asyncio.ensure_future(engine.start())
        await service.started.wait()

        engine.reset()
        service.hold = False
        service.gates[0].set()

        assert await starting is False
        assert engine.phase == GamePhase.IDLE
        assert engine.empty_reason is None
        assert engine.current is None
        assert engine.failure_count == 0
        assert await engine.start() is True
        assert engine.phase == GamePhase.READY

    @pytest.mark.asyncio
    async def test_start_right_after_reset(self, store, service, make_engine):
        await store.add_word("apple")
        engine = make_engine()
        service.hold = True
        first = asyncio.ensure_future(engine.start())
        await service.started.wait()

        engine.reset()
        service.hold = False
        assert await engine.start() is True
        fresh = engine.current

        service.gates[0].set()
        assert await first is False
        assert engine.phase == GamePhase.READY
        assert engine.current is fresh
