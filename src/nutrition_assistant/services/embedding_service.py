"""Embedding providers: Azure OpenAI and a deterministic local fallback."""

from __future__ import annotations

import hashlib
import math

from openai import AzureOpenAI

from nutrition_assistant.config import Settings
from nutrition_assistant.domain.protocols import IEmbeddingService
from nutrition_assistant.services.text_processing import content_tokens

DEFAULT_DIMENSIONS = 384


class AzureOpenAIEmbeddingService:
    """Azure OpenAI implementation of the embedding service."""

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        api_version: str = "2024-10-21",
        deployment_name: str = "text-embedding-3-small",
        dimensions: int = DEFAULT_DIMENSIONS,
    ):
        """
        Initialize Azure OpenAI embedding service.

        Args:
            api_key: Azure OpenAI API key
            endpoint: Azure OpenAI endpoint
            api_version: API version
            deployment_name: Embedding deployment name
            dimensions: Requested embedding dimensions
        """
        if not endpoint:
            raise ValueError("Azure OpenAI embedding endpoint not set.")

        self.client = AzureOpenAI(
            api_key=api_key,
            azure_endpoint=endpoint,
            api_version=api_version,
        )
        self.deployment_name = deployment_name
        self._dimensions = dimensions

    def _create_kwargs(self) -> dict:
        # text-embedding-3-* honour "dimensions"; request the store's size.
        return {"model": self.deployment_name, "dimensions": self._dimensions}

    def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        kwargs = self._create_kwargs()
        kwargs["input"] = text
        response = self.client.embeddings.create(**kwargs)
        return [float(x) for x in response.data[0].embedding]

    def embed_batch(self, texts: list[str], batch_size: int = 100) -> list[list[float]]:
        """
        Generate embeddings for multiple texts in batch.

        Args:
            texts: List of input texts to embed
            batch_size: Maximum batch size for API calls

        Returns:
            List of embedding vectors, in input order
        """
        all_embeddings: list[list[float]] = []
        for i in range(0, len(texts), batch_size):
            kwargs = self._create_kwargs()
            kwargs["input"] = texts[i : i + batch_size]
            response = self.client.embeddings.create(**kwargs)
            for item in response.data:
                all_embeddings.append([float(x) for x in item.embedding])
        return all_embeddings

    @property
    def dimension(self) -> int:
        """Get embedding dimension."""
        return self._dimensions


# Domain vocabulary gets dedicated, spread-out slots so nutrition terms dominate
# the direction of the vector; every other token is hashed into the space.
NUTRITION_VOCABULARY: tuple[str, ...] = (
    "protein", "carbohydrate", "fat", "calorie", "vitamin", "mineral", "nutrition",
    "diet", "healthy", "meal", "food", "supplement", "weight", "loss", "gain", "muscle",
    "fiber", "sodium", "sugar", "organic", "exercise", "metabolism", "energy", "antioxidant",
)  # fmt: skip

_VOCAB_STRIDE = 16
_VOCAB_WEIGHT = 1.0
_NEIGHBOUR_DECAY = (0.5, 0.25, 0.125)
_HASHED_WEIGHT = 0.35


def _stem(token: str) -> str:
    if len(token) > 4 and token.endswith("es") and not token.endswith("ses"):
        return token[:-2] if token[:-2] in NUTRITION_VOCABULARY else token[:-1]
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


class LocalEmbeddingService:
    """Deterministic bag-of-terms embedding that needs no network access.

    Each nutrition vocabulary term lights a fixed slot plus a few decaying
    neighbours; other tokens are hashed into a slot with a smaller weight.
    Vectors are L2-normalized, so texts sharing terms have high cosine
    similarity.
    """

    def __init__(self, dimension: int = DEFAULT_DIMENSIONS):
        if dimension < len(NUTRITION_VOCABULARY):
            raise ValueError(f"dimension must be at least {len(NUTRITION_VOCABULARY)}")
        self._dimension = dimension
        self._vocab_slots = {
            term: (index * _VOCAB_STRIDE) % dimension for index, term in enumerate(NUTRITION_VOCABULARY)
        }

    def _hash_slot(self, token: str) -> int:
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest, "big") % self._dimension

    def embed_text(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for token in content_tokens(text):
            stem = _stem(token)
            slot = self._vocab_slots.get(stem)
            if slot is not None:
                vector[slot] += _VOCAB_WEIGHT
                for offset, decay in enumerate(_NEIGHBOUR_DECAY, start=1):
                    vector[(slot + offset) % self._dimension] += _VOCAB_WEIGHT * decay
            else:
                vector[self._hash_slot(stem)] += _HASHED_WEIGHT

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0.0:
            return vector
        return [v / norm for v in vector]

    def embed_batch(self, texts: list[str], batch_size: int = 100) -> list[list[float]]:
        return [self.embed_text(text) for text in texts]

    @property
    def dimension(self) -> int:
        return self._dimension


def create_embedding_service(settings: Settings) -> IEmbeddingService:
    """Build the provider selected by ``settings.embedding_provider``."""
    if settings.embedding_provider == "azure":
        settings.validate_runtime()
        return AzureOpenAIEmbeddingService(
            api_key=settings.azure_openai_embedding_api_key or "",
            endpoint=settings.azure_openai_embedding_endpoint or "",
            api_version=settings.azure_openai_embedding_api_version,
            deployment_name=settings.azure_openai_embedding_deployment,
            dimensions=settings.embedding_dimensions,
        )
    return LocalEmbeddingService(dimension=settings.embedding_dimensions)
