"""Learned intent classifier over the corpus examples.

A nearest-centroid model on bag-of-words vectors: each intent's centroid is
the weighted, L2-normalized sum of its examples' token counts. The predicted
confidence is the cosine similarity between the message and the winning
centroid. The model is refitted whenever the cache hands over a new snapshot.
"""

from __future__ import annotations

import threading

import numpy as np
from loguru import logger

from nutrition_assistant.domain.models import ClassifierPrediction, CorpusSnapshot
from nutrition_assistant.services.text_processing import content_tokens


class CentroidIntentClassifier:
    """Nearest-centroid classifier refitted per corpus snapshot."""

    def __init__(self) -> None:
        self._snapshot: CorpusSnapshot | None = None
        self._vocabulary: dict[str, int] = {}
        self._intent_ids: list[int] = []
        self._centroids: np.ndarray = np.zeros((0, 0))
        self._lock = threading.Lock()

    def fit(self, snapshot: CorpusSnapshot) -> None:
        vocabulary: dict[str, int] = {}
        rows: list[tuple[int, list[tuple[list[str], float]]]] = []
        for intent in snapshot.intents:
            if not intent.is_eligible:
                continue
            samples = []
            for example in intent.examples:
                tokens = content_tokens(example.text)
                for token in tokens:
                    vocabulary.setdefault(token, len(vocabulary))
                samples.append((tokens, example.weight))
            rows.append((intent.id, samples))

        centroids = np.zeros((len(rows), len(vocabulary)))
        for row, (_, samples) in enumerate(rows):
            for tokens, weight in samples:
                for token in tokens:
                    centroids[row, vocabulary[token]] += weight
        norms = np.linalg.norm(centroids, axis=1, keepdims=True)
        np.divide(centroids, norms, out=centroids, where=norms > 0)

        with self._lock:
            self._snapshot = snapshot
            self._vocabulary = vocabulary
            self._intent_ids = [intent_id for intent_id, _ in rows]
            self._centroids = centroids
        logger.debug("Intent classifier fitted: {} intents, {} terms", len(rows), len(vocabulary))

    def classify(self, message: str, snapshot: CorpusSnapshot) -> ClassifierPrediction | None:
        if snapshot is not self._snapshot:
            self.fit(snapshot)

        with self._lock:
            vocabulary = self._vocabulary
            intent_ids = self._intent_ids
            centroids = self._centroids

        if not intent_ids:
            return None
        vector = np.zeros(len(vocabulary))
        for token in content_tokens(message):
            index = vocabulary.get(token)
            if index is not None:
                vector[index] += 1.0
        norm = np.linalg.norm(vector)
        if norm == 0:
            return None

        scores = centroids @ (vector / norm)
        best = int(np.argmax(scores))
        return ClassifierPrediction(
            intent_id=intent_ids[best],
            confidence=float(min(max(scores[best], 0.0), 1.0)),
        )
