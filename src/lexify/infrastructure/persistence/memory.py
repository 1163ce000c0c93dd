import logging
from collections.abc import Callable, Iterable
from dataclasses import replace

from lexify.domain.interfaces import SnapshotListener, WordRepository
from lexify.domain.models import FSRSCard, ReviewChange, Word

logger = logging.getLogger(__name__)


class InMemoryWordRepository(WordRepository):
    """
    Process-local word repository.

    Every successful write republishes a full snapshot to subscribers,
    the same way a live document feed would.
    """

    def __init__(self, words: Iterable[Word] = ()):
        self._words: dict[str, Word] = {w.id: w for w in words}
        self._listeners: list[SnapshotListener] = []

    def snapshot(self) -> list[Word]:
        return list(self._words.values())

    async def list_words(self) -> list[Word]:
        return self.snapshot()

    async def put_word(self, word: Word) -> None:
        await self._mutate(lambda: self._put([word]))

    async def put_words(self, words: list[Word]) -> None:
        await self._mutate(lambda: self._put(words))

    async def update_card(
        self, word_id: str, card: FSRSCard, review_change: ReviewChange | None
    ) -> None:
        await self._mutate(lambda: self._update(word_id, card, review_change))

    async def delete_word(self, word_id: str) -> None:
        await self._mutate(lambda: self._delete([word_id]))

    async def delete_words(self, word_ids: list[str]) -> None:
        await self._mutate(lambda: self._delete(word_ids))

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _mutate(self, apply: Callable[[], None]) -> None:
        apply()
        self._publish()

    def _put(self, words: Iterable[Word]) -> None:
        for word in words:
            self._words[word.id] = word

    def _update(self, word_id: str, card: FSRSCard, review_change: ReviewChange | None) -> None:
        word = self._words.get(word_id)
        if word is None:
            raise KeyError(f"Unknown word id: {word_id}")
        self._words[word_id] = replace(word, fsrs_card=card, review_change=review_change)

    def _delete(self, word_ids: Iterable[str]) -> None:
        for word_id in word_ids:
            self._words.pop(word_id, None)

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(list(snapshot))
            except Exception as e:
                logger.warning(f"Snapshot listener failed: {e}")
