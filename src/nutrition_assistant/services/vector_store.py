"""In-memory vector store with a JSON snapshot file.

Documents are held in an immutable ``_Collection`` (id map plus a dense
embedding matrix). Writers serialize on one lock, build a new collection and
swap it in; searches grab the current collection once and never see a torn
state. After every mutating call the whole collection is rewritten to a
single JSON file as a list of ``{id, text, metadata, embedding}`` records.

Duplicate ids overwrite the stored entry (last write wins).
"""

from __future__ import annotations

import asyncio
import json
import os
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from loguru import logger
from pydantic import ValidationError

from nutrition_assistant.application.exceptions import EmbeddingDimensionError
from nutrition_assistant.domain.models import Document, SearchResult, StoreStats


_UNIT_TOLERANCE = 1e-9


def _snap_unit(scores: np.ndarray) -> np.ndarray:
    """Clip to [-1, 1] and round values within rounding error of +-1 onto it."""
    scores = np.clip(scores, -1.0, 1.0)
    scores[np.abs(scores - 1.0) <= _UNIT_TOLERANCE] = 1.0
    scores[np.abs(scores + 1.0) <= _UNIT_TOLERANCE] = -1.0
    return scores


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """``dot(a, b) / (|a| * |b|)``, or 0.0 when either vector has zero norm.

    A non-zero vector scores exactly 1.0 against itself.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise EmbeddingDimensionError(va.shape[0], vb.shape[0])
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(_snap_unit(np.array([np.dot(va, vb) / denom]))[0])


@dataclass(frozen=True, eq=False)
class _Collection:
    """One immutable version of the store's contents."""

    documents: dict[str, Document] = field(default_factory=dict)
    ids: tuple[str, ...] = ()
    matrix: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))
    norms: np.ndarray = field(default_factory=lambda: np.zeros(0))

    @property
    def dimension(self) -> int | None:
        return int(self.matrix.shape[1]) if self.ids else None

    @classmethod
    def build(cls, entries: dict[str, tuple[Document, np.ndarray]]) -> _Collection:
        if not entries:
            return cls()
        ids = tuple(entries)
        matrix = np.vstack([entries[i][1] for i in ids])
        return cls(
            documents={i: entries[i][0] for i in ids},
            ids=ids,
            matrix=matrix,
            norms=np.linalg.norm(matrix, axis=1),
        )

    def entries(self) -> dict[str, tuple[Document, np.ndarray]]:
        return {doc_id: (self.documents[doc_id], self.matrix[row]) for row, doc_id in enumerate(self.ids)}


class VectorStore:
    """Cosine top-K search over document embeddings, persisted to one JSON file.

    Parameters
    ----------
    path:
        Snapshot file location, or None for a purely in-memory store.
    collection_name:
        Label reported in logs.
    """

    def __init__(self, path: Path | None = None, collection_name: str = "nutrition_knowledge"):
        self.path = Path(path) if path is not None else None
        self.collection_name = collection_name
        self._collection = _Collection()
        self._write_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> int:
        """Read the snapshot file, if any. An unreadable file leaves the store empty."""
        if self.path is None or not self.path.exists():
            return 0
        try:
            collection = await asyncio.to_thread(self._read_snapshot, self.path)
        except (OSError, ValueError, ValidationError, KeyError, TypeError):
            logger.exception("Could not load vector store snapshot from {}", self.path)
            return 0
        async with self._write_lock:
            self._collection = collection
        logger.info(
            "Vector store '{}' loaded {} documents from {}",
            self.collection_name,
            len(collection.ids),
            self.path,
        )
        return len(collection.ids)

    @staticmethod
    def _read_snapshot(path: Path) -> _Collection:
        with open(path, encoding="utf-8") as f:
            records = json.load(f)
        entries: dict[str, tuple[Document, np.ndarray]] = {}
        dimension: int | None = None
        for record in records:
            document = Document.model_validate(
                {"id": record["id"], "text": record["text"], "metadata": record.get("metadata", {})}
            )
            vector = np.asarray(record["embedding"], dtype=np.float64)
            if dimension is None:
                dimension = vector.shape[0]
            elif vector.shape[0] != dimension:
                raise EmbeddingDimensionError(dimension, vector.shape[0])
            entries[document.id] = (document, vector)
        return _Collection.build(entries)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add(self, document: Document, embedding: Sequence[float]) -> None:
        """Store one document and persist."""
        await self.add_batch([document], [embedding])

    async def add_batch(
        self, documents: Sequence[Document], embeddings: Sequence[Sequence[float]]
    ) -> None:
        """Store many documents and persist once at the end.

        Raises:
            ValueError: If the two sequences differ in length.
            EmbeddingDimensionError: If any vector's length differs from the
                store's (or the batch's) dimension. Nothing is stored then.
        """
        if len(documents) != len(embeddings):
            raise ValueError(
                f"Got {len(documents)} documents but {len(embeddings)} embeddings"
            )
        if not documents:
            return

        async with self._write_lock:
            current = self._collection
            dimension = current.dimension
            entries = current.entries()
            for document, embedding in zip(documents, embeddings):
                vector = np.asarray(embedding, dtype=np.float64)
                if vector.ndim != 1 or vector.shape[0] == 0:
                    raise ValueError(f"Embedding for {document.id!r} must be a non-empty vector")
                if dimension is None:
                    dimension = vector.shape[0]
                elif vector.shape[0] != dimension:
                    raise EmbeddingDimensionError(dimension, vector.shape[0])
                if document.id in entries:
                    logger.debug("Overwriting document {}", document.id)
                entries[document.id] = (document, vector)

            collection = _Collection.build(entries)
            self._collection = collection
            await self._persist(collection)

        logger.info(
            "Stored {} documents in '{}' (total {})",
            len(documents),
            self.collection_name,
            len(collection.ids),
        )

    async def clear(self) -> None:
        """Drop every document and delete the snapshot file."""
        async with self._write_lock:
            self._collection = _Collection()
            if self.path is not None:
                try:
                    await asyncio.to_thread(self.path.unlink, missing_ok=True)
                except OSError:
                    logger.exception("Could not delete vector store snapshot {}", self.path)
        logger.info("Vector store '{}' cleared", self.collection_name)

    async def _persist(self, collection: _Collection) -> None:
        if self.path is None:
            return
        try:
            await asyncio.to_thread(self._write_snapshot, self.path, collection)
        except OSError:
            logger.exception("Failed to persist vector store to {}; continuing in memory", self.path)

    @staticmethod
    def _write_snapshot(path: Path, collection: _Collection) -> None:
        records = [
            {
                "id": doc_id,
                "text": collection.documents[doc_id].text,
                "metadata": collection.documents[doc_id].metadata.model_dump(),
                "embedding": collection.matrix[row].tolist(),
            }
            for row, doc_id in enumerate(collection.ids)
        ]
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(records, f)
        os.replace(tmp_path, path)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def search(
        self,
        query_embedding: Sequence[float],
        max_results: int = 5,
        min_similarity: float = 0.5,
        category: str | None = None,
        goals: Sequence[str] | None = None,
    ) -> SearchResult:
        """Top ``max_results`` documents with cosine similarity >= ``min_similarity``.

        ``total_candidates`` counts every qualifying document, which can be more
        than the number returned. An empty store yields an empty result.

        Raises:
            EmbeddingDimensionError: If the query length differs from the store's.
        """
        collection = self._collection
        if not collection.ids:
            return SearchResult()
        return await asyncio.to_thread(
            self._search_collection,
            collection,
            np.asarray(query_embedding, dtype=np.float64),
            max_results,
            min_similarity,
            category,
            tuple(goals) if goals else None,
        )

    @staticmethod
    def _search_collection(
        collection: _Collection,
        query: np.ndarray,
        max_results: int,
        min_similarity: float,
        category: str | None,
        goals: tuple[str, ...] | None,
    ) -> SearchResult:
        t0 = time.perf_counter()
        dimension = collection.dimension
        if query.ndim != 1 or query.shape[0] != dimension:
            raise EmbeddingDimensionError(dimension or 0, int(query.shape[-1]) if query.ndim else 0)

        denom = collection.norms * float(np.linalg.norm(query))
        scores = np.divide(
            collection.matrix @ query,
            denom,
            out=np.zeros(len(collection.ids)),
            where=denom > 0,
        )
        scores = _snap_unit(scores)

        qualifying = np.flatnonzero(scores >= min_similarity)
        if category is not None or goals:
            wanted_goals = set(goals or ())
            qualifying = np.array(
                [
                    row
                    for row in qualifying
                    if _metadata_matches(
                        collection.documents[collection.ids[row]], category, wanted_goals
                    )
                ],
                dtype=np.intp,
            )

        # Stable sort keeps insertion order among equal scores.
        order = qualifying[np.argsort(-scores[qualifying], kind="stable")]
        top = order[: max(max_results, 0)]
        return SearchResult(
            documents=[collection.documents[collection.ids[row]] for row in top],
            scores=[float(scores[row]) for row in top],
            elapsed_ms=(time.perf_counter() - t0) * 1000,
            total_candidates=int(len(qualifying)),
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def stats(self) -> StoreStats:
        collection = self._collection
        return StoreStats(
            count=len(collection.ids),
            is_ready=len(collection.ids) > 0,
            dimension=collection.dimension,
            path=str(self.path) if self.path is not None else None,
        )

    def get(self, document_id: str) -> Document | None:
        return self._collection.documents.get(document_id)

    def __len__(self) -> int:
        return len(self._collection.ids)


def _metadata_matches(document: Document, category: str | None, goals: set[str]) -> bool:
    if category is not None and document.metadata.category != category:
        return False
    if goals and not goals.intersection(document.metadata.goals):
        return False
    return True
