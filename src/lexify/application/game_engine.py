"""
Game Engine Controller.

Drives one quiz session over the Word Store with a mode-specific
``QuestionAdapter``:

    Idle -> LoadingCurrent -> Ready -> Answered -> LoadingCurrent -> ...
                  \\-> Empty (retry() to leave)

The controller keeps a "current" and a prefetched "next" round. Each
generation gets its own ``CancellationToken``; starting a new generation of
the same kind cancels the previous one, and ``close()`` cancels all of them.
Cancelled generations never touch controller state.
"""

import asyncio
import logging
import random
from collections.abc import Callable, Collection
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from lexify.application.answer_state import AnswerState
from lexify.application.cancellation import CancellationToken
from lexify.application.question_adapter import (
    GenerationOutcome,
    GenerationResult,
    QuestionAdapter,
)
from lexify.application.quiz_log import QuizLog
from lexify.application.selector import select_target
from lexify.application.word_details import WordDetailsService
from lexify.application.word_store import WordStore
from lexify.domain.constants import FAILURE_THRESHOLD
from lexify.domain.models import GameMode, Question, Rating, Word, utcnow

logger = logging.getLogger(__name__)


class GamePhase(str, Enum):
    IDLE = "idle"
    LOADING_CURRENT = "loading_current"
    READY = "ready"
    ANSWERED = "answered"
    EMPTY = "empty"


class EmptyReason(str, Enum):
    NOT_ENOUGH_WORDS = "not_enough_words"
    NO_QUESTION = "no_question"


@dataclass(frozen=True)
class Round:
    word: Word
    question: Question


EngineListener = Callable[["GameEngine"], None]


class GameEngine:
    def __init__(
        self,
        store: WordStore,
        adapter: QuestionAdapter,
        *,
        failure_threshold: int = FAILURE_THRESHOLD,
        details_service: WordDetailsService | None = None,
        quiz_log: QuizLog | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.adapter = adapter
        self.failure_threshold = failure_threshold
        self.details_service = details_service
        self.quiz_log = quiz_log if quiz_log is not None else QuizLog()
        self._rng = rng or random.Random()
        self._clock = clock

        self.phase = GamePhase.IDLE
        self.empty_reason: EmptyReason | None = None
        self.current: Round | None = None
        self.answer = AnswerState()
        self.failure_count = 0
        self.service_degraded = False
        self.last_rating: Rating | None = None
        self.last_update_ok: bool | None = None

        self._next: Round | None = None
        self._next_task: asyncio.Task | None = None
        self._next_token: CancellationToken | None = None
        self._current_token: CancellationToken | None = None
        self._recording: asyncio.Task | None = None
        self._details_task: asyncio.Task | None = None
        self._transitioning = False
        self._session = 0
        self._closed = False
        self._listeners: list[EngineListener] = []

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------
    @property
    def mode(self) -> GameMode:
        return self.adapter.mode

    @property
    def question(self) -> Question | None:
        return self.current.question if self.current else None

    @property
    def next_round(self) -> Round | None:
        return self._next

    @property
    def next_task(self) -> asyncio.Task | None:
        """The most recent prefetch, if any."""
        return self._next_task

    @property
    def is_loading_next(self) -> bool:
        return self._next_task is not None and not self._next_task.done()

    @property
    def has_enough_words(self) -> bool:
        return len(self.store.words) >= self.adapter.min_words

    def subscribe(self, listener: EngineListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.warning(f"Game listener failed: {e}")

    # ------------------------------------------------------------------
    # Round lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> bool:
        return await self.advance()

    async def advance(self) -> bool:
        """
        Move to the next round.

        Promotes the prefetched round when there is one, otherwise generates
        the current round while in ``LoadingCurrent``. Calling this while a
        transition is already running is a no-op that returns False.
        Advancing from ``Ready`` skips the current question ungraded.
        A ``reset`` or ``close`` while this is suspended turns the rest of
        the transition into a no-op.
        """
        if self._closed or self._transitioning:
            return False
        self._transitioning = True
        session = self._session
        try:
            if self._recording is not None and not self._recording.done():
                await self._recording
                if self._stale(session):
                    return False
            return await self._advance(session)
        finally:
            # After a reset the flag belongs to whichever transition runs next.
            if self._session == session:
                self._transitioning = False

    def _stale(self, session: int) -> bool:
        return self._closed or self._session != session

    async def _advance(self, session: int) -> bool:
        self.answer.reset()
        self.last_rating = None
        self.last_update_ok = None

        if not self.has_enough_words:
            self._cancel_next("not enough words")
            self._enter_empty(EmptyReason.NOT_ENOUGH_WORDS)
            return False

        if self._next is None and self.is_loading_next:
            self._set_phase(GamePhase.LOADING_CURRENT)
            await self._next_task
            if self._stale(session):
                return False

        promoted = self._take_prefetched()
        if promoted is not None:
            logger.debug(f"Promoted prefetched question for '{promoted.word.text}'")
            self.current = promoted
        else:
            self.current = None
            self._set_phase(GamePhase.LOADING_CURRENT)
            round_ = await self._generate_current()
            if self._stale(session):
                return False
            if round_ is None:
                self._enter_empty(EmptyReason.NO_QUESTION)
                return False
            self.current = round_

        self.answer.reset()
        self.empty_reason = None
        self._set_phase(GamePhase.READY)
        self.prefetch_next()
        return True

    def _take_prefetched(self) -> Round | None:
        round_, self._next = self._next, None
        if round_ is None:
            return None
        if self.store.get_by_id(round_.word.id) is None:
            logger.debug(f"Dropping prefetched question for removed word '{round_.word.text}'")
            return None
        return round_

    async def _generate_current(self) -> Round | None:
        if self._current_token is not None:
            self._current_token.cancel("superseded")
        token = CancellationToken("current")
        self._current_token = token
        try:
            return await self._generate_round(token, exclude_ids=())
        finally:
            if self._current_token is token:
                self._current_token = None

    def prefetch_next(self) -> asyncio.Task | None:
        """
        Start generating the next round in the background.

        Any earlier prefetch is cancelled first; its late result is discarded.
        """
        if self._closed:
            return None
        self._cancel_next("superseded")
        token = CancellationToken("next")
        self._next_token = token
        exclude = {self.current.word.id} if self.current else set()
        self._next_task = asyncio.ensure_future(self._prefetch(token, exclude))
        return self._next_task

    async def _prefetch(self, token: CancellationToken, exclude_ids: set[str]) -> Round | None:
        round_ = await self._generate_round(token, exclude_ids)
        if token.cancelled or token is not self._next_token:
            return None
        self._next_token = None
        self._next = round_
        if round_ is not None:
            logger.debug(f"Prefetched question for '{round_.word.text}'")
            self._notify()
        return round_

    async def _generate_round(
        self, token: CancellationToken, exclude_ids: Collection[str]
    ) -> Round | None:
        words = self.store.words
        target = select_target(words, exclude_ids, now=self._clock(), rng=self._rng)
        if target is None:
            return None
        decoys = (
            self.store.get_decoy_words(target.id, self.adapter.decoy_count)
            if self.adapter.decoy_count
            else []
        )
        result = await self.adapter.generate_with_outcome(target, decoys, token)
        self._track(result)
        if result.produced and result.question is not None:
            return Round(word=target, question=result.question)
        return None

    def _track(self, result: GenerationResult) -> None:
        if result.outcome == GenerationOutcome.PRODUCED:
            self.failure_count = 0
            self.service_degraded = False
        elif result.outcome == GenerationOutcome.FAILED:
            self.failure_count += 1
            if self.failure_count >= self.failure_threshold and not self.service_degraded:
                self.service_degraded = True
                logger.info(
                    f"Question service degraded after {self.failure_count} consecutive failures"
                )
                self._notify()

    def _cancel_next(self, reason: str) -> None:
        if self._next_token is not None:
            self._next_token.cancel(reason)
            self._next_token = None
        self._next = None

    def _enter_empty(self, reason: EmptyReason) -> None:
        self.current = None
        self.empty_reason = reason
        self._set_phase(GamePhase.EMPTY)

    def _set_phase(self, phase: GamePhase) -> None:
        self.phase = phase
        self._notify()

    async def retry(self) -> bool:
        """Leave ``Empty`` (or ``Idle``) by trying to load a round again."""
        if self.phase not in (GamePhase.EMPTY, GamePhase.IDLE):
            return False
        return await self.advance()

    def reset(self) -> None:
        """Drop both rounds and the failure history; back to ``Idle``."""
        self._session += 1
        self._transitioning = False
        self._cancel_all("reset")
        self.current = None
        self.answer.reset()
        self.failure_count = 0
        self.service_degraded = False
        self.empty_reason = None
        self._set_phase(GamePhase.IDLE)

    def close(self) -> None:
        """Tear the session down, cancelling every in-flight generation."""
        if self._closed:
            return
        self._closed = True
        self._cancel_all("closed")
        self._listeners.clear()

    def _cancel_all(self, reason: str) -> None:
        if self._current_token is not None:
            self._current_token.cancel(reason)
            self._current_token = None
        self._cancel_next(reason)
        if self.details_service is not None:
            self.details_service.cancel()

    # ------------------------------------------------------------------
    # Answering
    # ------------------------------------------------------------------
    def set_input(self, text: str) -> bool:
        if self.phase != GamePhase.READY:
            return False
        return self.answer.set_input(text)

    def reveal_hint(self) -> str | None:
        if self.phase != GamePhase.READY or self.current is None:
            return None
        if self.mode != GameMode.TEXT_INPUT:
            return None
        revealed = self.answer.reveal_hint(self.current.question.correct_answer)
        if revealed is not None:
            self._notify()
        return revealed

    async def submit_answer(self, answer: str) -> bool | None:
        """
        Grade *answer* for the current round and record the review.

        Returns the correctness, or None when there is nothing to grade.
        """
        if self.phase != GamePhase.READY or self.current is None:
            return None
        round_ = self.current
        correct = self.answer.submit(answer, round_.question.correct_answer, self.mode)
        if correct is None:
            return None
        rating = self.answer.rating
        self.last_rating = rating
        self._set_phase(GamePhase.ANSWERED)
        self._recording = asyncio.ensure_future(
            self._record(round_, correct, rating, self.answer.elapsed_ms)
        )
        await self._recording
        return correct

    async def _record(self, round_: Round, correct: bool, rating: Rating, elapsed_ms: int) -> None:
        ok = await self.store.update_word_srs(round_.word.id, rating)
        self.last_update_ok = ok
        if not ok:
            logger.warning(f"Review for '{round_.word.text}' was not saved")
        self.quiz_log.record(round_.word.text, correct, elapsed_ms, self.mode.value)
        if self.details_service is not None and not self._closed:
            self._details_task = asyncio.ensure_future(
                self.details_service.fetch(round_.word.text)
            )
        self._notify()
