"""Bounded log of graded quiz rounds (most recent last)."""

import logging
from collections import deque

from lexify.domain.constants import QUIZ_LOG_SIZE
from lexify.domain.models import QuizLogEntry

logger = logging.getLogger(__name__)


class QuizLog:
    def __init__(self, max_entries: int = QUIZ_LOG_SIZE):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._entries: deque[QuizLogEntry] = deque(maxlen=max_entries)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, word: str, correct: bool, duration_ms: int, game: str) -> QuizLogEntry:
        entry = QuizLogEntry(word=word, correct=correct, duration_ms=duration_ms, game=game)
        self._entries.append(entry)
        logger.debug(f"Quiz result: {word} correct={correct} {duration_ms}ms ({game})")
        return entry

    @property
    def entries(self) -> list[QuizLogEntry]:
        return list(self._entries)

    def accuracy(self) -> float | None:
        """Share of correct rounds, or None when nothing has been logged."""
        if not self._entries:
            return None
        return sum(1 for e in self._entries if e.correct) / len(self._entries)
