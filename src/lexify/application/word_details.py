"""
Post-answer word details.

Details are fetched from a ``WordDetailsProvider`` and cached by
case-insensitive word text. Starting a fetch for another word cancels the
one in flight, and only the details of the most recently requested word
are exposed.
"""

import logging

from lexify.application.cancellation import CancellationToken
from lexify.application.utils.text import word_key
from lexify.domain.errors import OperationCancelled
from lexify.domain.interfaces import WordDetailsProvider

logger = logging.getLogger(__name__)


class WordDetailsService:
    def __init__(self, provider: WordDetailsProvider):
        self.provider = provider
        self._cache: dict[str, str] = {}
        self._token: CancellationToken | None = None
        self.current_word: str | None = None
        self.is_loading = False
        self.error: str | None = None

    def cached(self, word: str) -> str | None:
        return self._cache.get(word_key(word))

    def details_for(self, word: str) -> str | None:
        """Details of *word* if it is the word currently on display."""
        if self.current_word is None or word_key(word) != word_key(self.current_word):
            return None
        return self.cached(word)

    async def fetch(self, word: str) -> str | None:
        key = word_key(word)
        if not key:
            return None
        self.current_word = word
        self.error = None
        if key in self._cache:
            logger.debug(f"Word details cache hit for '{word}'")
            return self._cache[key]

        if self._token is not None:
            self._token.cancel("superseded")
        token = CancellationToken(f"details:{key}")
        self._token = token
        self.is_loading = True
        try:
            details = await token.guard(self.provider.generate_details(word, token))
        except OperationCancelled:
            logger.debug(f"Word details fetch for '{word}' cancelled")
            return None
        except Exception as e:
            logger.warning(f"Word details fetch failed for '{word}': {e}")
            if self._token is token:
                self.error = str(e)
            return None
        finally:
            if self._token is token:
                self._token = None
                self.is_loading = False

        self._cache[key] = details
        return details

    def cancel(self) -> None:
        if self._token is not None:
            self._token.cancel("closed")
            self._token = None
        self.is_loading = False

    def clear(self) -> None:
        self.cancel()
        self._cache.clear()
        self.current_word = None
        self.error = None
