"""
Domain models for words, memory-model cards and quiz questions.

These are pure data structures with no I/O. Timestamps are timezone-aware
UTC datetimes; the dict helpers convert them to ISO-8601 strings so the
records can be stored by any document store.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum, IntEnum
from typing import Any


def ensure_utc(value: datetime) -> datetime:
    """Normalise *value* to a UTC timezone aware datetime."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_date(value: datetime) -> date:
    """Calendar date of *value* in the local timezone."""
    return ensure_utc(value).astimezone().date()


def _format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def _parse_datetime(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


class State(str, Enum):
    """Discrete position of a card in the memory lifecycle."""

    NEW = "New"
    LEARNING = "Learning"
    REVIEW = "Review"
    RELEARNING = "Relearning"


class Rating(IntEnum):
    """Recall quality reported for a review. MANUAL is never scheduled."""

    MANUAL = 0
    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


class ReviewChange(str, Enum):
    """Derived, non-authoritative direction of the last state transition."""

    UP = "up"
    DOWN = "down"
    NONE = "none"


class GameMode(str, Enum):
    MULTIPLE_CHOICE = "multiple-choice"
    TEXT_INPUT = "text-input"


@dataclass(frozen=True)
class FSRSCard:
    """
    Memory-model state for one word.

    Attributes:
        due: When the word should next be reviewed.
        stability: Days until recall probability drops to the retention target.
        difficulty: Intrinsic difficulty on the 1-10 scale (0 until first review).
        elapsed_days: Whole days between the last two reviews.
        scheduled_days: Whole days of the interval assigned by the last review.
        learning_steps: Index into the (re)learning step ladder.
        reps: Total reviews.
        lapses: Times the word was forgotten after graduating.
        state: Lifecycle state.
        last_review: Timestamp of the last review, None for new cards.
    """

    due: datetime
    stability: float = 0.0
    difficulty: float = 0.0
    elapsed_days: int = 0
    scheduled_days: int = 0
    learning_steps: int = 0
    reps: int = 0
    lapses: int = 0
    state: State = State.NEW
    last_review: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "due": _format_datetime(self.due),
            "stability": self.stability,
            "difficulty": self.difficulty,
            "elapsed_days": self.elapsed_days,
            "scheduled_days": self.scheduled_days,
            "learning_steps": self.learning_steps,
            "reps": self.reps,
            "lapses": self.lapses,
            "state": self.state.value,
            "last_review": _format_datetime(self.last_review),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "FSRSCard":
        state = payload.get("state", State.NEW.value)
        if isinstance(state, int):
            state = list(State)[state]
        return cls(
            due=_parse_datetime(payload.get("due")) or utcnow(),
            stability=float(payload.get("stability", 0.0)),
            difficulty=float(payload.get("difficulty", 0.0)),
            elapsed_days=int(payload.get("elapsed_days", 0)),
            scheduled_days=int(payload.get("scheduled_days", 0)),
            learning_steps=int(payload.get("learning_steps", 0)),
            reps=int(payload.get("reps", 0)),
            lapses=int(payload.get("lapses", 0)),
            state=State(state),
            last_review=_parse_datetime(payload.get("last_review")),
        )


@dataclass(frozen=True)
class Word:
    """
    A vocabulary entry owned by the Word Store.

    ``review_change`` is recomputed on every review from the state
    transition and is kept beside the card, not inside it.
    """

    id: str
    text: str
    date_added: datetime
    fsrs_card: FSRSCard
    review_change: ReviewChange | None = None

    @property
    def key(self) -> str:
        return self.text.lower()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "dateAdded": _format_datetime(self.date_added),
            "fsrsCard": self.fsrs_card.to_dict(),
        }
        if self.review_change is not None:
            data["reviewChange"] = self.review_change.value
        return data

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Word":
        card_payload = dict(payload.get("fsrsCard") or {})
        # Older records kept the annotation inside the card.
        change = payload.get("reviewChange", card_payload.pop("reviewChange", None))
        return cls(
            id=str(payload["id"]),
            text=str(payload["text"]),
            date_added=_parse_datetime(payload.get("dateAdded")) or utcnow(),
            fsrs_card=FSRSCard.from_dict(card_payload),
            review_change=ReviewChange(change) if change else None,
        )


@dataclass(frozen=True)
class MultipleChoiceQuestion:
    sentence_with_blank: str
    options: tuple[str, ...]
    correct_answer: str
    target_word: str


@dataclass(frozen=True)
class TextInputQuestion:
    sentence_with_blank: str
    translated_hint: str
    correct_answer: str
    target_word: str


Question = MultipleChoiceQuestion | TextInputQuestion


@dataclass(frozen=True)
class QuizLogEntry:
    word: str
    correct: bool
    duration_ms: int
    game: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "word": self.word,
            "correct": self.correct,
            "duration": self.duration_ms,
            "game": self.game,
            "timestamp": _format_datetime(self.timestamp),
        }
