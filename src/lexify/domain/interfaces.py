"""
Ports (interfaces) for Lexify's external collaborators.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .models import FSRSCard, ReviewChange, Word

if TYPE_CHECKING:
    from lexify.application.cancellation import CancellationToken

SnapshotListener = Callable[[list[Word]], None]


class WordRepository(ABC):
    """
    Port for the per-user word document store.

    Implementations:
        - InMemoryWordRepository: Process-local store for tests and guest sessions.
        - JsonFileWordRepository: Local-only store persisted to a JSON file.
    """

    @abstractmethod
    async def list_words(self) -> list[Word]:
        """Return every word for the current user."""

    @abstractmethod
    async def put_word(self, word: Word) -> None:
        """Insert or replace a single word document."""

    @abstractmethod
    async def put_words(self, words: list[Word]) -> None:
        """Write several word documents as one batch."""

    @abstractmethod
    async def update_card(
        self, word_id: str, card: FSRSCard, review_change: ReviewChange | None
    ) -> None:
        """Replace the card (and its derived annotation) of an existing word."""

    @abstractmethod
    async def delete_word(self, word_id: str) -> None:
        pass

    @abstractmethod
    async def delete_words(self, word_ids: list[str]) -> None:
        """Delete several word documents as one batch."""

    @abstractmethod
    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Register a live-feed listener that receives full snapshots.

        Returns:
            A callable that removes the listener.
        """


class QuestionService(ABC):
    """Port for the AI capability that writes quiz sentences."""

    @abstractmethod
    async def generate_multiple_choice(
        self, word: str, decoys: list[str], token: "CancellationToken"
    ) -> dict[str, Any]:
        """Return ``{"sentence": str, "options": list[str]}``."""

    @abstractmethod
    async def generate_fill_blank(self, word: str, token: "CancellationToken") -> dict[str, Any]:
        """Return ``{"sentenceWithBlank": str, "translatedHint": str, "targetWord": str}``."""


class WordDetailsProvider(ABC):
    """Port for the AI capability that writes long-form word explanations."""

    @abstractmethod
    async def generate_details(self, word: str, token: "CancellationToken") -> str:
        pass
