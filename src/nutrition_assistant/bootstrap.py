"""Composition root: wires settings into a ready-to-use assistant."""

from __future__ import annotations

from nutrition_assistant.application.use_cases.assistant import NutritionAssistant
from nutrition_assistant.application.use_cases.retrieval_responder import RetrievalResponder
from nutrition_assistant.config import Settings, get_settings
from nutrition_assistant.database.corpus_repository import CorpusRepository
from nutrition_assistant.domain.protocols import IEmbeddingService
from nutrition_assistant.services.corpus_cache import CorpusCache
from nutrition_assistant.services.default_responder import DefaultResponder
from nutrition_assistant.services.embedding_service import create_embedding_service
from nutrition_assistant.services.intent_classifier import CentroidIntentClassifier
from nutrition_assistant.services.lexical_matcher import LexicalMatcher
from nutrition_assistant.services.rule_engine import ConversationRuleEngine
from nutrition_assistant.services.task_queue import InMemoryTaskQueue
from nutrition_assistant.services.vector_store import VectorStore


def create_repository(settings: Settings) -> CorpusRepository:
    repository = CorpusRepository(settings.corpus_db_path)
    repository.connect()
    repository.create_tables()
    return repository


def create_assistant(
    settings: Settings | None = None,
    *,
    embedding_service: IEmbeddingService | None = None,
    repository: CorpusRepository | None = None,
) -> NutritionAssistant:
    """Build every collaborator from *settings*. Call ``await assistant.start()`` before use."""
    settings = settings or get_settings()
    embedding_service = embedding_service or create_embedding_service(settings)
    repository = repository or create_repository(settings)
    vector_store = VectorStore(settings.vector_store_path)

    return NutritionAssistant(
        responder=RetrievalResponder(
            embedding_service,
            vector_store,
            top_k=settings.retrieval_top_k,
            min_similarity=settings.min_similarity,
            context_chars=settings.retrieval_context_chars,
        ),
        corpus_cache=CorpusCache(repository, ttl_ms=settings.cache_ttl_ms),
        repository=repository,
        vector_store=vector_store,
        embedding_service=embedding_service,
        rule_engine=ConversationRuleEngine(),
        classifier=CentroidIntentClassifier(),
        lexical_matcher=LexicalMatcher(),
        default_responder=DefaultResponder(confidence=settings.default_confidence),
        task_queue=InMemoryTaskQueue(),
        high_confidence_threshold=settings.high_confidence_threshold,
        learned_min_confidence=settings.learned_min_confidence,
        lexical_min_confidence=settings.lexical_min_confidence,
        max_message_length=settings.max_message_length,
    )
