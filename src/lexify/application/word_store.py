"""
Word Store: the in-memory word collection and its narrow mutation contract.

All mutations go through the store. With a repository attached, a mutation
is applied to the in-memory view only after the repository confirms the
write; without one, mutations are applied directly (local-only session).
Repository failures are logged and reported as ``False`` / ``0`` and leave
the in-memory view untouched.
"""

import logging
import random
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import replace
from datetime import datetime

from lexify.application.id_service import generate_word_id
from lexify.application.scheduler import Scheduler, coerce_rating
from lexify.application.selector import pick_decoys
from lexify.application.utils.text import is_valid_word_text, normalize_word_text, word_key
from lexify.domain.constants import MAX_WORD_LENGTH
from lexify.domain.interfaces import WordRepository
from lexify.domain.models import Rating, ReviewChange, State, Word, utcnow

logger = logging.getLogger(__name__)

StoreListener = Callable[[list[Word]], None]

# Learning progress, lowest first. A lapse (Review -> Relearning) is a step down.
_STATE_PROGRESS = {
    State.NEW: 0,
    State.LEARNING: 1,
    State.RELEARNING: 2,
    State.REVIEW: 3,
}


def review_change(previous: State, current: State) -> ReviewChange:
    """
    Direction of a state transition.

    Only the coarse state is compared; an interval change within the same
    state is reported as ``none``. States are ranked New, Learning,
    Relearning, Review rather than in lifecycle order (New, Learning,
    Review, Relearning), so a lapse from Review into Relearning is ``down``
    and graduating out of Relearning is ``up``.
    """
    before = _STATE_PROGRESS[previous]
    after = _STATE_PROGRESS[current]
    if after > before:
        return ReviewChange.UP
    if after < before:
        return ReviewChange.DOWN
    return ReviewChange.NONE


class WordStore:
    def __init__(
        self,
        repository: WordRepository | None = None,
        scheduler: Scheduler | None = None,
        *,
        max_word_length: int = MAX_WORD_LENGTH,
        clock: Callable[[], datetime] = utcnow,
        rng: random.Random | None = None,
    ):
        self._repository = repository
        self._scheduler = scheduler or Scheduler()
        self._max_word_length = max_word_length
        self._clock = clock
        self._rng = rng or random.Random()
        self._words: list[Word] = []
        self._pending_keys: set[str] = set()
        self._listeners: list[StoreListener] = []
        self._unsubscribe: Callable[[], None] | None = None
        self.is_loading = repository is not None
        self.is_syncing = False

    # ------------------------------------------------------------------
    # Reactive view
    # ------------------------------------------------------------------
    @property
    def words(self) -> list[Word]:
        """Snapshot of the collection, newest first."""
        return list(self._words)

    @property
    def is_local_only(self) -> bool:
        return self._repository is None

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def load(self) -> bool:
        """Read the initial snapshot and follow the repository's live feed."""
        if self._repository is None:
            self.is_loading = False
            return True
        try:
            words = await self._repository.list_words()
        except Exception as e:
            logger.error(f"Failed to load words: {e}")
            return False
        finally:
            self.is_loading = False
        self._replace(words)
        if self._unsubscribe is None:
            self._unsubscribe = self._repository.subscribe(self._on_snapshot)
        logger.debug(f"Loaded {len(words)} words")
        return True

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_snapshot(self, words: list[Word]) -> None:
        logger.debug(f"Repository republished {len(words)} words")
        self._replace(words)

    def _replace(self, words: Iterable[Word]) -> None:
        self._words = sorted(words, key=lambda w: w.date_added, reverse=True)
        self._notify()

    def _upsert(self, words: Iterable[Word]) -> None:
        by_id = {w.id: w for w in self._words}
        for word in words:
            by_id[word.id] = word
        self._replace(by_id.values())

    def _remove(self, word_ids: set[str]) -> None:
        self._replace(w for w in self._words if w.id not in word_ids)

    def _notify(self) -> None:
        snapshot = self.words
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning(f"Store listener failed: {e}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_by_id(self, word_id: str) -> Word | None:
        return next((w for w in self._words if w.id == word_id), None)

    def get_by_text(self, text: str) -> Word | None:
        key = word_key(text)
        return next((w for w in self._words if w.key == key), None)

    def get_decoy_words(self, target_id: str, count: int) -> list[Word]:
        return pick_decoys(self._words, target_id, count, rng=self._rng)

    def _taken_keys(self) -> set[str]:
        return {w.key for w in self._words} | self._pending_keys

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def add_word(self, text: str) -> bool:
        normalized = normalize_word_text(text)
        if not is_valid_word_text(normalized, self._max_word_length):
            logger.debug(f"Rejected word text of length {len(normalized)}")
            return False
        key = normalized.lower()
        if key in self._taken_keys():
            logger.debug(f"Rejected duplicate word '{normalized}'")
            return False

        word = self._new_word(normalized)
        self._pending_keys.add(key)
        try:
            ok = await self._persist(lambda repo: repo.put_word(word), f"add '{normalized}'")
        finally:
            self._pending_keys.discard(key)
        if not ok:
            return False
        self._upsert([word])
        logger.info(f"Added word '{normalized}'")
        return True

    async def add_words_batch(self, texts: Iterable[str]) -> int:
        """Add every valid, not-yet-known text; returns how many were added."""
        taken = self._taken_keys()
        new_words: list[Word] = []
        for text in texts or []:
            normalized = normalize_word_text(text)
            if not is_valid_word_text(normalized, self._max_word_length):
                continue
            key = normalized.lower()
            if key in taken:
                continue
            taken.add(key)
            new_words.append(self._new_word(normalized))
        if not new_words:
            return 0

        keys = {w.key for w in new_words}
        self._pending_keys |= keys
        try:
            ok = await self._persist(
                lambda repo: repo.put_words(new_words), f"add batch of {len(new_words)}"
            )
        finally:
            self._pending_keys -= keys
        if not ok:
            return 0
        self._upsert(new_words)
        logger.info(f"Added {len(new_words)} words in batch")
        return len(new_words)

    async def update_word_srs(self, word_id: str, rating: int | Rating) -> bool:
        """Schedule the word's next review from *rating* and store the new card."""
        word = self.get_by_id(word_id)
        if word is None:
            logger.debug(f"update_word_srs: unknown word id {word_id}")
            return False
        try:
            safe_rating = coerce_rating(rating)
        except ValueError as e:
            logger.warning(f"update_word_srs: {e}")
            return False

        card = self._scheduler.schedule(word.fsrs_card, safe_rating, self._clock())
        change = review_change(word.fsrs_card.state, card.state)
        ok = await self._persist(
            lambda repo: repo.update_card(word_id, card, change), f"update SRS for '{word.text}'"
        )
        if not ok:
            return False
        current = self.get_by_id(word_id)
        if current is None:
            logger.debug(f"'{word.text}' was deleted while its review was saving")
            return True
        self._upsert([replace(current, fsrs_card=card, review_change=change)])
        logger.debug(
            f"Reviewed '{word.text}' rating={safe_rating.name} "
            f"{word.fsrs_card.state.value}->{card.state.value} due={card.due.isoformat()}"
        )
        return True

    async def delete_word(self, word_id: str) -> bool:
        word = self.get_by_id(word_id)
        if word is None:
            return False
        if not await self._persist(lambda repo: repo.delete_word(word_id), f"delete '{word.text}'"):
            return False
        self._remove({word_id})
        logger.info(f"Deleted word '{word.text}'")
        return True

    async def delete_words(self, word_ids: Iterable[str]) -> int:
        known = [i for i in dict.fromkeys(word_ids) if self.get_by_id(i) is not None]
        if not known:
            return 0
        if not await self._persist(
            lambda repo: repo.delete_words(known), f"delete batch of {len(known)}"
        ):
            return 0
        self._remove(set(known))
        logger.info(f"Deleted {len(known)} words")
        return len(known)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _new_word(self, text: str) -> Word:
        now = self._clock()
        return Word(
            id=generate_word_id(),
            text=text,
            date_added=now,
            fsrs_card=self._scheduler.initial_card(now),
        )

    async def _persist(
        self, operation: Callable[[WordRepository], Awaitable[None]], description: str
    ) -> bool:
        if self._repository is None:
            return True
        self.is_syncing = True
        try:
            await operation(self._repository)
            return True
        except Exception as e:
            logger.error(f"Failed to {description}: {e}")
            return False
        finally:
            self.is_syncing = False
