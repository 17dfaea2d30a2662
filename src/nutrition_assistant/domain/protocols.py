"""Domain service interfaces (ports).

These protocols define the contracts that infrastructure implementations
must satisfy. The cascade and the responders depend on these abstractions,
not on concrete classes, so each collaborator can be swapped in tests.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from nutrition_assistant.domain.models import (
    CallerContext,
    Candidate,
    ChatMessage,
    ClassifierPrediction,
    CorpusSnapshot,
    Document,
    IntentMatchStats,
    SearchResult,
    StoreStats,
)

# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


@runtime_checkable
class IEmbeddingService(Protocol):
    """Interface for turning text into fixed-length vectors.

    Implementations: AzureOpenAIEmbeddingService, LocalEmbeddingService.
    """

    def embed_text(self, text: str) -> list[float]: ...

    def embed_batch(self, texts: list[str], batch_size: int = 100) -> list[list[float]]: ...

    @property
    def dimension(self) -> int: ...


# ---------------------------------------------------------------------------
# Vector store
# ---------------------------------------------------------------------------


@runtime_checkable
class IVectorStore(Protocol):
    """Interface for the document store.

    Implementations: VectorStore (numpy + JSON snapshot file).
    """

    async def add(self, document: Document, embedding: Sequence[float]) -> None: ...

    async def add_batch(
        self, documents: Sequence[Document], embeddings: Sequence[Sequence[float]]
    ) -> None: ...

    async def search(
        self,
        query_embedding: Sequence[float],
        max_results: int = 5,
        min_similarity: float = 0.5,
        category: str | None = None,
        goals: Sequence[str] | None = None,
    ) -> SearchResult: ...

    async def clear(self) -> None: ...

    def stats(self) -> StoreStats: ...


# ---------------------------------------------------------------------------
# Corpus
# ---------------------------------------------------------------------------


@runtime_checkable
class ICorpusRepository(Protocol):
    """Interface for the curated intent/example/response corpus.

    Implementations: CorpusRepository (SQLModel over SQLite).
    """

    def load_snapshot(self) -> CorpusSnapshot: ...

    def increment_usage(self, response_id: int) -> None: ...

    def record_match(
        self,
        user_input: str,
        intent_id: int,
        confidence: float,
        response_preview: str,
        matched_keywords: list[str],
        context: dict,
    ) -> None: ...

    def match_statistics(self, limit: int = 10) -> list[IntentMatchStats]: ...

    def upsert_preference(
        self,
        subject_id: str,
        category: str,
        key: str,
        value: str,
        confidence: float,
    ) -> None: ...


# ---------------------------------------------------------------------------
# Candidate generators
# ---------------------------------------------------------------------------


@runtime_checkable
class IRuleEngine(Protocol):
    """Profile-aware conversational rules (greetings, small talk, follow-ups)."""

    def respond(
        self, message: str, context: CallerContext, history: Sequence[ChatMessage]
    ) -> Candidate | None: ...


@runtime_checkable
class IIntentClassifier(Protocol):
    """External scorer mapping a message to an intent id with a confidence."""

    def classify(self, message: str, snapshot: CorpusSnapshot) -> ClassifierPrediction | None: ...
