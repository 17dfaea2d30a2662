"""Retrieval-augmented responder.

Embeds the message, pulls the most similar knowledge documents and renders
them into a templated explanation. Nothing here writes to the store.
"""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Sequence

from loguru import logger

from nutrition_assistant.domain.models import (
    CallerContext,
    ChatMessage,
    Document,
    RetrievalAnswer,
)
from nutrition_assistant.domain.protocols import IEmbeddingService, IVectorStore
from nutrition_assistant.services import nutrition_metrics

NO_CONTEXT_CONFIDENCE = 0.3
FLOOR_CONFIDENCE = 0.3

# Checked in order; the first topic with a trigger in the message wins.
TOPIC_TRIGGERS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("nutrition_info", ("nutrition", "nutrient", "vitamin", "mineral")),
    ("calorie_calculation", ("calorie", "energy", "bmi", "tdee")),
    ("meal_planning", ("meal", "plan", "diet", "menu")),
    ("supplement_advice", ("supplement", "pill", "dosage", "recommended")),
    ("recipe_request", ("recipe", "cook", "prepare", "ingredient")),
    ("weight_management", ("weight", "lose", "gain", "muscle")),
    ("health_condition", ("diabetes", "pressure", "cholesterol", "condition")),
)

_INTROS: dict[str, str] = {
    "nutrition_info": "Here is what our nutrition library says:",
    "calorie_calculation": "Here is calorie and energy information that should help:",
    "meal_planning": "Here is meal planning guidance from our nutrition library:",
    "supplement_advice": "Here is evidence-based supplement information:",
    "recipe_request": "Here are some nutritious ideas from our recipe notes:",
    "weight_management": "Here is guidance on managing your weight:",
    "health_condition": "Here is general nutrition guidance related to that condition:",
    "general": "Here is what I found on that topic:",
}

_GUIDANCE: dict[str, tuple[str, ...]] = {
    "nutrition_info": (
        "Focus on whole, minimally processed foods",
        "Eat a varied diet so you cover all nutrients",
    ),
    "calorie_calculation": (
        "These figures are estimates; individual needs vary",
        "Calorie quality matters as much as quantity",
    ),
    "meal_planning": (
        "Include protein, healthy fats and complex carbs in each meal",
        "Prep ingredients ahead to make the plan easier to follow",
    ),
    "supplement_advice": (
        "Food first: supplements complement a healthy diet, they do not replace it",
        "Check with a healthcare provider before starting a new supplement",
    ),
    "recipe_request": (
        "Steam, grill or roast to keep more nutrients",
        "Season with herbs and spices instead of extra salt",
    ),
    "weight_management": (
        "Aim for steady progress of about 0.5-1 kg per week",
        "Keep protein high and stay hydrated",
    ),
    "health_condition": (
        "This is general information, not medical advice",
        "Talk to your doctor before changing your diet for a medical condition",
    ),
    "general": (),
}

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


def analyze_topic(message: str) -> str:
    lowered = message.lower()
    for topic, triggers in TOPIC_TRIGGERS:
        if any(trigger in lowered for trigger in triggers):
            return topic
    return "general"


def retrieval_confidence(top_score: float, min_similarity: float) -> float:
    """Map the best similarity onto [FLOOR_CONFIDENCE, 1.0].

    The curve rises with the score and flattens as the score approaches 1.0.
    """
    span = max(1.0 - min_similarity, 1e-9)
    relevance = min(max((top_score - min_similarity) / span, 0.0), 1.0)
    saturated = 1.0 - (1.0 - relevance) ** 2
    return min(max(FLOOR_CONFIDENCE + (1.0 - FLOOR_CONFIDENCE) * saturated, 0.0), 1.0)


def _excerpt(text: str, budget: int) -> str:
    """Trim to whole sentences within *budget* characters (at least one sentence)."""
    text = " ".join(text.split())
    if len(text) <= budget:
        return text
    kept: list[str] = []
    used = 0
    for sentence in _SENTENCE_END.split(text):
        if kept and used + len(sentence) + 1 > budget:
            break
        kept.append(sentence)
        used += len(sentence) + 1
    excerpt = " ".join(kept)
    if len(excerpt) > budget:
        excerpt = excerpt[: max(budget - 3, 0)].rstrip() + "..."
    return excerpt


def _mentions_weight_loss(history: Sequence[ChatMessage]) -> bool:
    for message in list(history)[-6:]:
        if message.role != "user":
            continue
        lowered = message.content.lower()
        if "weight loss" in lowered or "lose weight" in lowered:
            return True
    return False


class RetrievalResponder:
    """Answers from stored knowledge documents.

    Parameters
    ----------
    embedding_service:
        Turns the message into a query vector (called in a worker thread).
    vector_store:
        Document store searched with cosine similarity.
    top_k:
        Maximum number of documents combined into one answer.
    min_similarity:
        Documents below this cosine similarity are ignored.
    context_chars:
        Total character budget for document excerpts.
    """

    def __init__(
        self,
        embedding_service: IEmbeddingService,
        vector_store: IVectorStore,
        top_k: int = 3,
        min_similarity: float = 0.5,
        context_chars: int = 1500,
    ) -> None:
        self.embedding_service = embedding_service
        self.vector_store = vector_store
        self.top_k = top_k
        self.min_similarity = min_similarity
        self.context_chars = context_chars

    async def answer(
        self,
        message: str,
        context: CallerContext,
        history: Sequence[ChatMessage] = (),
    ) -> RetrievalAnswer:
        """Build an answer from the nearest documents, or a low-confidence generic reply."""
        t0 = time.perf_counter()
        query = await asyncio.to_thread(self.embedding_service.embed_text, message)
        result = await self.vector_store.search(
            query, max_results=self.top_k, min_similarity=self.min_similarity
        )
        elapsed_ms = (time.perf_counter() - t0) * 1000

        if not result.documents:
            logger.debug("Retrieval found no documents above {}", self.min_similarity)
            return RetrievalAnswer(
                text=self._no_context_reply(context),
                confidence=NO_CONTEXT_CONFIDENCE,
                used_retrieval=False,
                elapsed_ms=elapsed_ms,
                documents_found=0,
            )

        topic = analyze_topic(message)
        text = self._synthesize(topic, result.documents, context, history)
        confidence = retrieval_confidence(result.scores[0], self.min_similarity)
        logger.debug(
            "Retrieval: topic={} docs={} top_score={:.3f} confidence={:.3f}",
            topic,
            len(result.documents),
            result.scores[0],
            confidence,
        )
        return RetrievalAnswer(
            text=text,
            confidence=confidence,
            used_retrieval=True,
            elapsed_ms=(time.perf_counter() - t0) * 1000,
            documents_found=len(result.documents),
        )

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def _synthesize(
        self,
        topic: str,
        documents: Sequence[Document],
        context: CallerContext,
        history: Sequence[ChatMessage],
    ) -> str:
        first_name = context.first_name
        parts: list[str] = []
        greeting = f"Hi {first_name}! " if first_name else ""
        parts.append(greeting + _INTROS[topic])

        per_doc = max(self.context_chars // max(len(documents), 1), 80)
        for document in documents:
            title = document.metadata.title or document.id
            parts.append(f"• {title} ({document.metadata.category}): {_excerpt(document.text, per_doc)}")

        guidance = _GUIDANCE[topic]
        if guidance:
            parts.append("\n".join(f"• {line}" for line in guidance))

        personal = self._personalize(topic, context)
        if personal:
            parts.append(personal)

        if topic != "weight_management" and _mentions_weight_loss(history):
            parts.append(
                "Since you mentioned weight loss earlier, keep an eye on portion sizes as you apply this."
            )
        return "\n\n".join(parts)

    @staticmethod
    def _personalize(topic: str, context: CallerContext) -> str:
        profile = context.profile
        plan = context.enrolled_plan
        lines: list[str] = []

        if topic == "calorie_calculation":
            body_mass = nutrition_metrics.profile_bmi(profile)
            if body_mass is not None:
                lines.append(
                    f"Your BMI is {body_mass:.1f} ({nutrition_metrics.bmi_category(body_mass)})."
                )
            energy = nutrition_metrics.profile_energy(profile)
            if energy is not None:
                base, daily = energy
                lines.append(
                    f"Your estimated BMR is {round(base)} calories/day and TDEE {round(daily)} calories/day."
                )

        if plan is not None:
            if topic == "meal_planning" and plan.meals_per_day and plan.calories:
                lines.append(
                    f"Your {plan.name} plan has {plan.meals_per_day} meals per day "
                    f"targeting {plan.calories} calories."
                )
            else:
                lines.append(f"This fits well with your {plan.name} plan.")
        elif profile is not None and profile.goals:
            lines.append(f"This supports your {profile.goals[0].replace('_', ' ')} goal.")
        elif not context.is_authenticated:
            lines.append("Sign up for a personalized meal plan to get advice tailored to you.")
        return " ".join(lines)

    @staticmethod
    def _no_context_reply(context: CallerContext) -> str:
        name = context.first_name
        opener = f"Hi {name}! " if name else ""
        reply = (
            opener
            + "I don't have detailed material on that yet, but I can help with meal planning, "
            "calorie needs, macronutrients and healthy eating habits."
        )
        plan = context.enrolled_plan
        if plan is not None:
            reply += f" Ask me anything about your {plan.name} plan."
        return reply
