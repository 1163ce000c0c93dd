import asyncio
import json
import logging
import os
import tempfile
from collections.abc import Callable
from pathlib import Path

from lexify.domain.models import Word
from lexify.infrastructure.persistence.memory import InMemoryWordRepository

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


class JsonFileWordRepository(InMemoryWordRepository):
    """
    Local-only word repository persisted to a single JSON file.

    The file is rewritten atomically (temp file + replace) after each write.
    A failed write rolls the in-memory copy back and nothing is published.
    """

    def __init__(self, path: Path | str):
        super().__init__()
        self.path = Path(path)
        self._lock = asyncio.Lock()
        self._loaded = False

    def _read_file(self) -> list[Word]:
        if not self.path.exists():
            return []
        raw = json.loads(self.path.read_text(encoding="utf-8"))
        records = raw.get("words", []) if isinstance(raw, dict) else raw
        words = []
        for record in records:
            try:
                words.append(Word.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable word record in {self.path}: {e}")
        return words

    def _write_file(self, words: list[Word]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"version": FORMAT_VERSION, "words": [w.to_dict() for w in words]}
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        words = await asyncio.to_thread(self._read_file)
        self._words = {w.id: w for w in words}
        self._loaded = True
        logger.debug(f"Loaded {len(words)} words from {self.path}")

    async def list_words(self) -> list[Word]:
        async with self._lock:
            await self._ensure_loaded()
            return self.snapshot()

    async def _mutate(self, apply: Callable[[], None]) -> None:
        async with self._lock:
            await self._ensure_loaded()
            previous = dict(self._words)
            try:
                apply()
                await asyncio.to_thread(self._write_file, self.snapshot())
            except Exception:
                self._words = previous
                raise
        self._publish()
