"""Shared fixtures for the nutrition assistant tests."""

import random
from datetime import datetime
from pathlib import Path

import pytest

from nutrition_assistant.application.use_cases.assistant import NutritionAssistant
from nutrition_assistant.application.use_cases.retrieval_responder import RetrievalResponder
from nutrition_assistant.database.corpus_repository import CorpusRepository
from nutrition_assistant.services.corpus_cache import CorpusCache
from nutrition_assistant.services.embedding_service import LocalEmbeddingService
from nutrition_assistant.services.intent_classifier import CentroidIntentClassifier
from nutrition_assistant.services.rule_engine import ConversationRuleEngine
from nutrition_assistant.services.task_queue import InMemoryTaskQueue
from nutrition_assistant.services.vector_store import VectorStore


def pytest_configure(config):
    """Set pytest-asyncio mode to auto so async test functions work without markers."""
    config.option.asyncio_mode = "auto"


NUTRITION_CORPUS = [
    {
        "name": "nutrition_facts",
        "priority": 10,
        "examples": ["Tell me about protein"],
        "responses": [
            {
                "text": "Protein builds and repairs muscle. Good sources are eggs, fish and legumes.",
                "priority": 1,
            }
        ],
    },
    {
        "name": "hydration",
        "priority": 2,
        "examples": [
            {"text": "How much water should I drink every day", "weight": 1.0},
            {"text": "Is drinking water important", "weight": 0.8},
        ],
        "responses": ["Most adults need about 2-3 litres of fluid a day, {{user_name}}."],
    },
]


@pytest.fixture()
def repository(tmp_path: Path):
    """Empty corpus repository backed by a temporary SQLite file."""
    repo = CorpusRepository(tmp_path / "corpus.sqlite")
    repo.connect()
    repo.create_tables()
    yield repo
    repo.close()


@pytest.fixture()
def seeded_repository(repository: CorpusRepository) -> CorpusRepository:
    repository.seed(NUTRITION_CORPUS)
    return repository


@pytest.fixture()
def embedding_service() -> LocalEmbeddingService:
    return LocalEmbeddingService()


@pytest.fixture()
def vector_store(tmp_path: Path) -> VectorStore:
    return VectorStore(tmp_path / "rag-store.json")


@pytest.fixture()
def rule_engine() -> ConversationRuleEngine:
    return ConversationRuleEngine(rng=random.Random(0), clock=lambda: datetime(2025, 1, 1, 9, 0))


@pytest.fixture()
async def assistant(seeded_repository, embedding_service, vector_store, rule_engine):
    """Fully wired assistant with the sample corpus and an empty knowledge base."""
    assistant = NutritionAssistant(
        responder=RetrievalResponder(embedding_service, vector_store, top_k=3, min_similarity=0.5),
        corpus_cache=CorpusCache(seeded_repository),
        repository=seeded_repository,
        vector_store=vector_store,
        embedding_service=embedding_service,
        rule_engine=rule_engine,
        classifier=CentroidIntentClassifier(),
        task_queue=InMemoryTaskQueue(),
    )
    yield assistant
    await assistant.aclose()
