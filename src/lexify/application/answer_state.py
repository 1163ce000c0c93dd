"""
Per-question answer state and the review-rating policy.

    Unanswered --reveal_hint--> Unanswered(hint revealed)
    Unanswered --submit-->      Answered(correct) | Answered(incorrect)

The first grading locks the state until ``reset``.
"""

import logging
import time

from lexify.application.utils.text import answers_match, first_divergence
from lexify.domain.models import GameMode, Rating

logger = logging.getLogger(__name__)


def rating_for_answer(correct: bool, hint_used: bool, attempts: int) -> Rating:
    """First-try correct without a hint is Easy, any other correct is Good, wrong is Again."""
    if not correct:
        return Rating.AGAIN
    if not hint_used and attempts <= 1:
        return Rating.EASY
    return Rating.GOOD


class AnswerState:
    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.user_input = ""
        self.selected_answer: str | None = None
        self.attempts = 0
        self.hint_revealed = False
        self.hint_used = False
        self.is_correct: bool | None = None
        self.show_correct_answer = False
        self.started_at = time.monotonic()

    @property
    def locked(self) -> bool:
        return self.is_correct is not None

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)

    def set_input(self, text: str) -> bool:
        if self.locked:
            return False
        self.user_input = text
        return True

    def reveal_hint(self, correct_answer: str) -> str | None:
        """
        Reveal the answer up to one character past the first mistake.

        Only one reveal is allowed per question. Returns the new input, or
        None when the reveal is rejected or there is nothing left to reveal.
        """
        if self.locked or self.hint_revealed:
            return None
        index = first_divergence(self.user_input, correct_answer)
        if index >= len(correct_answer):
            return None
        revealed = correct_answer[: index + 1]
        self.user_input = revealed
        self.hint_revealed = True
        self.hint_used = True
        return revealed

    def submit(self, answer: str, correct_answer: str, mode: GameMode) -> bool | None:
        """
        Grade *answer* once.

        Multiple choice compares exactly; text input ignores case and
        surrounding whitespace. Returns None if the question is already graded.
        """
        if self.locked:
            logger.debug("Ignoring submission for an already graded question")
            return None
        self.attempts += 1
        if mode == GameMode.MULTIPLE_CHOICE:
            self.selected_answer = answer
            correct = answer == correct_answer
        else:
            self.user_input = answer
            correct = answers_match(answer, correct_answer)
        self.is_correct = correct
        self.show_correct_answer = not correct
        return correct

    @property
    def rating(self) -> Rating | None:
        if self.is_correct is None:
            return None
        return rating_for_answer(self.is_correct, self.hint_used, self.attempts)
