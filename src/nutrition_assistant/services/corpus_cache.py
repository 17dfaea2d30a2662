"""TTL cache in front of the corpus repository.

The cache holds one immutable ``CorpusSnapshot``. Reloads build a complete
new snapshot off the event loop and swap it in with a single assignment,
so a reader sees either the old tree or the new one.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from loguru import logger

from nutrition_assistant.domain.models import CorpusSnapshot
from nutrition_assistant.domain.protocols import ICorpusRepository

DEFAULT_TTL_MS = 300_000


class CorpusCache:
    """Lazily loaded, time-limited view of the active corpus.

    Parameters
    ----------
    repository:
        Source of truth for intents, examples and responses.
    ttl_ms:
        How long a loaded snapshot is served before the next ``load()`` reloads it.
    clock:
        Monotonic clock in seconds; injectable for tests.
    """

    def __init__(
        self,
        repository: ICorpusRepository,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.repository = repository
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._snapshot: CorpusSnapshot | None = None
        self._loaded_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> CorpusSnapshot | None:
        """The currently held snapshot without triggering a load."""
        return self._snapshot

    def is_fresh(self) -> bool:
        if self._snapshot is None or self._loaded_at is None:
            return False
        return (self._clock() - self._loaded_at) * 1000 < self.ttl_ms

    async def load(self) -> CorpusSnapshot:
        """Return the cached snapshot, reloading it when missing or expired."""
        if self.is_fresh():
            return self._snapshot  # type: ignore[return-value]
        async with self._lock:
            # Another caller may have reloaded while we waited.
            if self.is_fresh():
                return self._snapshot  # type: ignore[return-value]
            return await self._reload()

    async def refresh(self) -> CorpusSnapshot:
        """Force a reload now and restart the TTL timer."""
        async with self._lock:
            return await self._reload()

    def invalidate(self) -> None:
        self._loaded_at = None

    async def _reload(self) -> CorpusSnapshot:
        t0 = time.perf_counter()
        try:
            snapshot = await asyncio.to_thread(self.repository.load_snapshot)
        except Exception:
            logger.exception("Corpus reload failed; keeping the previous snapshot")
            if self._snapshot is None:
                return CorpusSnapshot()
            return self._snapshot

        self._snapshot = snapshot
        self._loaded_at = self._clock()
        logger.info(
            "Corpus loaded: {} intents, {} examples in {:.1f} ms",
            len(snapshot.intents),
            snapshot.example_count,
            (time.perf_counter() - t0) * 1000,
        )
        return snapshot
