"""
Domain models for vocabulary insights.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass

from lexify.domain.models import State


@dataclass(frozen=True)
class StageDistributionDatum:
    """
    One slice of the stage distribution.

    Attributes:
        name: Display label for the state.
        value: Number of words in the state.
        percent: Share of the library, rounded to a whole percent.
        state: The lifecycle state.
    """

    name: str
    value: int
    percent: int
    state: State


@dataclass
class WordStats:
    """
    Library-wide learning statistics for a single calendar day.

    avg_state scores New=1, Learning=2, Review=3, Relearning=4.
    """

    total_words: int
    new: int
    learning: int
    review: int
    relearning: int
    avg_state: float
    leveled_up_today: int
    leveled_down_today: int
    added_today: int
    due_today: int
