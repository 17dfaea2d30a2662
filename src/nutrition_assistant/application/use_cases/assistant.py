"""Assistant use case: the single entry point callers talk to.

Validates the message, runs the fallback cascade (retrieval, rule engine,
learned classifier, lexical matcher, default), hands analytics and
preference learning to the background queue, and exposes the corpus and
knowledge-base management operations. It has no dependency on any transport
layer and can be driven from HTTP handlers, the CLI or tests.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence

from loguru import logger

from nutrition_assistant.application.use_cases.cascade import Stage, run_cascade
from nutrition_assistant.application.use_cases.retrieval_responder import RetrievalResponder
from nutrition_assistant.application.validation import DEFAULT_MAX_LENGTH, validate_message
from nutrition_assistant.domain.models import (
    AssistantReply,
    CallerContext,
    Candidate,
    ChatMessage,
    CorpusSnapshot,
    Document,
    IntentMatchStats,
    StoreStats,
)
from nutrition_assistant.domain.protocols import (
    ICorpusRepository,
    IEmbeddingService,
    IIntentClassifier,
    IRuleEngine,
)
from nutrition_assistant.services.corpus_cache import CorpusCache
from nutrition_assistant.services.default_responder import DefaultResponder
from nutrition_assistant.services.lexical_matcher import LexicalMatcher
from nutrition_assistant.services.preference_learner import infer_preferences
from nutrition_assistant.services.task_queue import InMemoryTaskQueue
from nutrition_assistant.services.templating import personalize_greeting, render_response
from nutrition_assistant.services.text_processing import normalize
from nutrition_assistant.services.vector_store import VectorStore

LAST_RESORT_REPLY = (
    "I'm here to help with your nutrition questions. "
    "Could you tell me a bit more about what you'd like to know?"
)

RECORD_MATCH_JOB = "record_match"
LEARN_PREFERENCES_JOB = "learn_preferences"


class NutritionAssistant:
    """Multi-strategy response engine.

    Parameters
    ----------
    responder:
        Retrieval-augmented responder over the vector store.
    corpus_cache:
        TTL cache of the curated intent corpus.
    repository:
        Corpus repository; receives analytics, usage counters and preferences.
    vector_store / embedding_service:
        Knowledge base and the provider used to embed ingested documents.
    rule_engine / classifier / lexical_matcher / default_responder:
        The remaining cascade generators, in order.
    task_queue:
        Background queue for fire-and-forget writes.
    """

    def __init__(
        self,
        *,
        responder: RetrievalResponder,
        corpus_cache: CorpusCache,
        repository: ICorpusRepository,
        vector_store: VectorStore,
        embedding_service: IEmbeddingService,
        rule_engine: IRuleEngine,
        classifier: IIntentClassifier,
        lexical_matcher: LexicalMatcher | None = None,
        default_responder: DefaultResponder | None = None,
        task_queue: InMemoryTaskQueue | None = None,
        high_confidence_threshold: float = 0.6,
        learned_min_confidence: float = 0.8,
        lexical_min_confidence: float = 0.7,
        max_message_length: int = DEFAULT_MAX_LENGTH,
    ) -> None:
        self.responder = responder
        self.corpus_cache = corpus_cache
        self.repository = repository
        self.vector_store = vector_store
        self.embedding_service = embedding_service
        self.rule_engine = rule_engine
        self.classifier = classifier
        self.lexical_matcher = lexical_matcher or LexicalMatcher()
        self.default_responder = default_responder or DefaultResponder()
        self.task_queue = task_queue or InMemoryTaskQueue()
        self.high_confidence_threshold = high_confidence_threshold
        self.learned_min_confidence = learned_min_confidence
        self.lexical_min_confidence = lexical_min_confidence
        self.max_message_length = max_message_length

        self.task_queue.register(RECORD_MATCH_JOB, self._record_match)
        self.task_queue.register(LEARN_PREFERENCES_JOB, self._learn_preferences)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load the persisted knowledge base."""
        await self.vector_store.load()

    async def aclose(self) -> None:
        """Finish background work and release the database."""
        await self.task_queue.aclose()
        close = getattr(self.repository, "close", None)
        if callable(close):
            close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate_response(
        self,
        message: str,
        context: CallerContext | None = None,
        history: Sequence[ChatMessage] | None = None,
    ) -> AssistantReply:
        """Return the best reply for *message*.

        Raises:
            InvalidMessageError: If the message is empty, too long or contains
                unsafe markup. No generator runs in that case.
        """
        message = validate_message(message, self.max_message_length)
        context = context or CallerContext()
        history = list(history or [])
        t0 = time.perf_counter()

        documents_found = 0

        async def retrieval() -> Candidate | None:
            nonlocal documents_found
            answer = await self.responder.answer(message, context, history)
            documents_found = answer.documents_found
            return Candidate(
                text=answer.text,
                confidence=answer.confidence,
                method="retrieval",
                documents_found=answer.documents_found,
            )

        async def rule_engine() -> Candidate | None:
            return self.rule_engine.respond(message, context, history)

        async def learned() -> Candidate | None:
            return await self._learned_candidate(message, context)

        async def lexical() -> Candidate | None:
            return await self._lexical_candidate(message, context)

        async def default() -> Candidate | None:
            return self.default_responder.respond(message, context)

        outcome = await run_cascade(
            [
                Stage("retrieval", retrieval, stop_at=self.high_confidence_threshold),
                Stage("rule_engine", rule_engine),
                Stage("learned", learned),
                Stage("lexical", lexical),
                Stage("default", default),
            ]
        )

        best = outcome.best or Candidate(
            text=LAST_RESORT_REPLY,
            confidence=self.default_responder.confidence,
            method="default",
        )
        self._submit(LEARN_PREFERENCES_JOB, message=message, subject_id=context.subject_id)

        elapsed_ms = (time.perf_counter() - t0) * 1000
        logger.info(
            "Reply via {} (confidence {:.2f}, {} docs) in {:.1f} ms",
            best.method,
            best.confidence,
            documents_found,
            elapsed_ms,
        )
        return AssistantReply(
            text=best.text,
            confidence=best.confidence,
            method=best.method,
            elapsed_ms=elapsed_ms,
            documents_found=documents_found,
        )

    async def refresh_corpus_cache(self) -> CorpusSnapshot:
        return await self.corpus_cache.refresh()

    def get_match_statistics(self, limit: int = 10) -> list[IntentMatchStats]:
        """Most frequently matched intents with their average confidence."""
        return self.repository.match_statistics(limit)

    async def ingest(self, documents: Sequence[Document]) -> int:
        """Embed and store documents; an existing id is overwritten.

        Returns:
            Number of documents written.
        """
        if not documents:
            return 0
        embeddings = await asyncio.to_thread(
            self.embedding_service.embed_batch, [d.text for d in documents]
        )
        await self.vector_store.add_batch(documents, embeddings)
        return len(documents)

    async def clear_knowledge_base(self) -> None:
        await self.vector_store.clear()

    def get_store_stats(self) -> StoreStats:
        return self.vector_store.stats()

    # ------------------------------------------------------------------
    # Corpus-backed generators
    # ------------------------------------------------------------------

    async def _learned_candidate(self, message: str, context: CallerContext) -> Candidate | None:
        snapshot = await self.corpus_cache.load()
        prediction = self.classifier.classify(message, snapshot)
        if prediction is None or prediction.confidence <= self.learned_min_confidence:
            return None
        intent = snapshot.get_intent(prediction.intent_id)
        if intent is None or not intent.responses:
            return None
        response = intent.pick_response(context.facts())
        if response is None:
            return None
        text = render_response(response, context, message)
        return Candidate(
            text=personalize_greeting(text, context.first_name),
            confidence=prediction.confidence,
            method="learned",
        )

    async def _lexical_candidate(self, message: str, context: CallerContext) -> Candidate | None:
        snapshot = await self.corpus_cache.load()
        match = self.lexical_matcher.match(message, snapshot, context)
        if match is None:
            return None

        self._submit(
            RECORD_MATCH_JOB,
            response_id=match.response_id,
            user_input=normalize(message),
            intent_id=match.intent_id,
            confidence=match.confidence,
            response_preview=match.text[:200],
            matched_keywords=list(match.matched_keywords),
            context={"session_id": context.session_id, **context.facts()},
        )

        if match.confidence <= self.lexical_min_confidence:
            return None
        return Candidate(
            text=personalize_greeting(match.text, context.first_name),
            confidence=match.confidence,
            method="lexical",
        )

    # ------------------------------------------------------------------
    # Background jobs
    # ------------------------------------------------------------------

    def _submit(self, job_type: str, **kwargs) -> None:
        try:
            self.task_queue.submit(job_type, **kwargs)
        except Exception:
            logger.exception("Could not queue background job {}", job_type)

    def _record_match(
        self,
        response_id: int,
        user_input: str,
        intent_id: int,
        confidence: float,
        response_preview: str,
        matched_keywords: list[str],
        context: dict,
    ) -> None:
        self.repository.record_match(
            user_input=user_input,
            intent_id=intent_id,
            confidence=confidence,
            response_preview=response_preview,
            matched_keywords=matched_keywords,
            context=context,
        )
        self.repository.increment_usage(response_id)

    def _learn_preferences(self, message: str, subject_id: str) -> None:
        for signal in infer_preferences(message):
            self.repository.upsert_preference(
                subject_id=subject_id,
                category=signal.category,
                key=signal.key,
                value=signal.value,
                confidence=signal.confidence,
            )
