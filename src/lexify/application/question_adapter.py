"""
Question Generator Adapters.

One adapter per game mode turns a target word (and, for multiple choice,
its decoys) into a ready-to-render question by calling the external
``QuestionService``. Every outcome that is not a question collapses to
``None`` for the caller; ``generate_with_outcome`` keeps the reason
(failure, cancellation, not enough decoys) for logging and the
controller's failure counter.
"""

import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from lexify.application.cancellation import CancellationToken
from lexify.domain.constants import (
    DECOY_COUNT,
    MULTIPLE_CHOICE_MIN_WORDS,
    MULTIPLE_CHOICE_OPTIONS,
    TEXT_INPUT_MIN_WORDS,
)
from lexify.domain.errors import MalformedResponseError, OperationCancelled
from lexify.domain.interfaces import QuestionService
from lexify.domain.models import (
    GameMode,
    MultipleChoiceQuestion,
    Question,
    TextInputQuestion,
    Word,
)

logger = logging.getLogger(__name__)


class GenerationOutcome(str, Enum):
    PRODUCED = "produced"
    FAILED = "failed"
    CANCELLED = "cancelled"
    INSUFFICIENT_DECOYS = "insufficient_decoys"


@dataclass(frozen=True)
class GenerationResult:
    outcome: GenerationOutcome
    question: Question | None = None
    error: str | None = None

    @property
    def produced(self) -> bool:
        return self.outcome == GenerationOutcome.PRODUCED


def _require_text(payload: dict[str, Any], field: str) -> str:
    value = payload.get(field)
    if not isinstance(value, str) or not value.strip():
        raise MalformedResponseError(f"Missing or empty '{field}' in generation response")
    return value.strip()


class QuestionAdapter(ABC):
    """Strategy that produces questions for one game mode."""

    mode: GameMode
    min_words: int = 1
    decoy_count: int = 0

    def __init__(self, service: QuestionService):
        self.service = service

    async def generate(
        self,
        word: Word,
        decoys: Sequence[Word] | None = None,
        token: CancellationToken | None = None,
    ) -> Question | None:
        result = await self.generate_with_outcome(word, decoys, token)
        return result.question

    async def generate_with_outcome(
        self,
        word: Word,
        decoys: Sequence[Word] | None = None,
        token: CancellationToken | None = None,
    ) -> GenerationResult:
        token = token or CancellationToken(f"{self.mode.value}:{word.text}")
        try:
            token.raise_if_cancelled()
            question = await self._build(word, list(decoys or []), token)
        except OperationCancelled as e:
            logger.debug(f"Generation for '{word.text}' cancelled ({e.reason})")
            return GenerationResult(GenerationOutcome.CANCELLED, error=e.reason)
        except _NotEnoughDecoys as e:
            logger.debug(f"Cannot build question for '{word.text}': {e}")
            return GenerationResult(GenerationOutcome.INSUFFICIENT_DECOYS, error=str(e))
        except MalformedResponseError as e:
            logger.warning(f"Malformed question for '{word.text}': {e}")
            return GenerationResult(GenerationOutcome.FAILED, error=str(e))
        except Exception as e:
            logger.warning(f"Question generation failed for '{word.text}': {e}")
            return GenerationResult(GenerationOutcome.FAILED, error=str(e))

        # A result that lands after the token fired is not used.
        if token.cancelled:
            logger.debug(f"Discarding late question for '{word.text}'")
            return GenerationResult(GenerationOutcome.CANCELLED, error=token.reason)
        return GenerationResult(GenerationOutcome.PRODUCED, question=question)

    @abstractmethod
    async def _build(
        self, word: Word, decoys: list[Word], token: CancellationToken
    ) -> Question:
        pass


class _NotEnoughDecoys(Exception):
    pass


class MultipleChoiceAdapter(QuestionAdapter):
    mode = GameMode.MULTIPLE_CHOICE
    min_words = MULTIPLE_CHOICE_MIN_WORDS
    decoy_count = DECOY_COUNT

    def __init__(self, service: QuestionService, rng: random.Random | None = None):
        super().__init__(service)
        self._rng = rng or random.Random()

    async def _build(
        self, word: Word, decoys: list[Word], token: CancellationToken
    ) -> MultipleChoiceQuestion:
        by_key: dict[str, str] = {}
        for decoy in decoys:
            if decoy.key != word.key:
                by_key.setdefault(decoy.key, decoy.text)
        decoy_texts = list(by_key.values())
        if len(decoy_texts) < DECOY_COUNT:
            raise _NotEnoughDecoys(f"need {DECOY_COUNT} decoys, got {len(decoy_texts)}")

        payload = await token.guard(
            self.service.generate_multiple_choice(word.text, decoy_texts, token)
        )
        sentence = _require_text(payload, "sentence")
        raw_options = payload.get("options")
        if not isinstance(raw_options, list) or not raw_options:
            raise MalformedResponseError("Missing or empty 'options' in generation response")

        options = self._assemble_options(word.text, raw_options, decoy_texts)
        return MultipleChoiceQuestion(
            sentence_with_blank=sentence,
            options=tuple(options),
            correct_answer=word.text,
            target_word=word.text,
        )

    def _assemble_options(
        self, target: str, suggested: list[Any], decoy_texts: list[str]
    ) -> list[str]:
        """Three distractors plus the target exactly once, shuffled."""
        seen = {target.lower()}
        distractors: list[str] = []
        for candidate in [*suggested, *decoy_texts]:
            if not isinstance(candidate, str):
                continue
            text = candidate.strip()
            if not text or text.lower() in seen:
                continue
            seen.add(text.lower())
            distractors.append(text)
            if len(distractors) == MULTIPLE_CHOICE_OPTIONS - 1:
                break

        options = [*distractors, target]
        self._rng.shuffle(options)
        return options


class TextInputAdapter(QuestionAdapter):
    mode = GameMode.TEXT_INPUT
    min_words = TEXT_INPUT_MIN_WORDS

    async def _build(
        self, word: Word, decoys: list[Word], token: CancellationToken
    ) -> TextInputQuestion:
        payload = await token.guard(self.service.generate_fill_blank(word.text, token))
        sentence = _require_text(payload, "sentenceWithBlank")
        hint = _require_text(payload, "translatedHint")
        target = _require_text(payload, "targetWord")
        if target.lower() != word.key:
            raise MalformedResponseError(
                f"Service confirmed '{target}' instead of '{word.text}'"
            )
        return TextInputQuestion(
            sentence_with_blank=sentence,
            translated_hint=hint,
            correct_answer=word.text,
            target_word=word.text,
        )


def build_adapter(
    mode: GameMode | str, service: QuestionService, rng: random.Random | None = None
) -> QuestionAdapter:
    mode = GameMode(mode)
    if mode == GameMode.MULTIPLE_CHOICE:
        return MultipleChoiceAdapter(service, rng=rng)
    return TextInputAdapter(service)
