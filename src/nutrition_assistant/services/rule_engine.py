"""Profile-aware conversation rules: greetings, farewells, small talk, follow-ups.

Nutrition questions are deliberately left unanswered here (``None``) so the
retrieval and corpus stages handle them.
"""

from __future__ import annotations

import random
import re
from collections.abc import Callable, Sequence
from datetime import datetime

from nutrition_assistant.domain.models import CallerContext, Candidate, ChatMessage

_GREETING = re.compile(r"^(hi|hello|hey|howdy|greetings|good (morning|afternoon|evening))\b")
_FAREWELL = re.compile(
    r"^(bye|goodbye|see you|farewell|take care|have a good|nice talking|talk later)\b"
    r"|^(thanks|thank you|thx)\b.*\b(bye|goodbye)\b"
)
_HOW_ARE_YOU = re.compile(r"^(how are you|what'?s up|how'?s it going)\b")
_IDENTITY = re.compile(r"^(who are you|what'?s your name|tell me about yourself|what do you do)\b")
_ARE_YOU_BOT = re.compile(r"^are you (a |an )?(real|human|ai|bot|robot)\b")
_OPINION = re.compile(r"^(what do you think|your opinion|do you like)\b")
_ACKNOWLEDGE = re.compile(r"^(ok|okay|alright|cool|nice|great|awesome)\b[.! ]*$")
_UNDERSTOOD = re.compile(r"^(i see|got it|understood|makes sense)\b")
_CAPABILITY = re.compile(r"^(what|how) (can|could) (you|i)\b")
_CONFUSED = re.compile(r"^(huh|confused|i don'?t understand|unclear)\b")
_CONTINUE = re.compile(r"^(more|continue|tell me more|what else)\b")

_TIME_GREETINGS: dict[str, tuple[str, ...]] = {
    "morning": ("Good morning", "Morning"),
    "afternoon": ("Good afternoon", "Hello"),
    "evening": ("Good evening", "Hello"),
}

_HOW_ARE_YOU_REPLIES = (
    "I'm doing great, thanks for asking! Ready to help with any nutrition questions you have.",
    "I'm wonderful, and always happy to talk about food and health goals.",
)
_IDENTITY_REPLIES = (
    "I'm your nutrition assistant. I help with meal planning, nutrition advice and healthy eating tips.",
    "I'm an AI nutrition guide: ask me about foods, diets, calories or your meal plan.",
)
_BOT_REPLIES = (
    "I'm an AI nutrition assistant. I'm not human, but I draw on curated nutrition knowledge.",
    "Yes, I'm an AI! I'm built specifically to help with nutrition and healthy eating.",
)
_OPINION_REPLIES = (
    "I don't have personal tastes, but I can share evidence-based nutrition facts. What topic interests you?",
)
_ACK_REPLIES = (
    "Great! What nutrition topic would you like to dive into?",
    "Perfect! How can I help with your nutrition goals today?",
)
_UNDERSTOOD_REPLIES = (
    "Wonderful! Let me know if anything needs clarifying or if you have other questions.",
    "Great! Is there anything else about nutrition you'd like to explore?",
)
_FAREWELL_REPLIES = (
    "Goodbye! Keep up the great work on your nutrition journey!",
    "Take care! I'm here whenever you need nutrition guidance.",
    "See you later! Wishing you success with your health goals!",
)


def _time_of_day(hour: int) -> str:
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"


class ConversationRuleEngine:
    """Pattern-driven replies for conversational (non-nutrition) turns.

    ``rng`` and ``clock`` are injectable so tests get deterministic wording.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock

    def respond(
        self,
        message: str,
        context: CallerContext,
        history: Sequence[ChatMessage] = (),
    ) -> Candidate | None:
        text = " ".join(message.lower().split())

        if _GREETING.search(text):
            return self._candidate(self._greeting(context, history), 0.95)
        if _FAREWELL.search(text):
            return self._candidate(self._farewell(context), 0.9)
        if _HOW_ARE_YOU.search(text):
            return self._candidate(self._pick(_HOW_ARE_YOU_REPLIES), 0.85)
        if _IDENTITY.search(text):
            return self._candidate(self._pick(_IDENTITY_REPLIES), 0.9)
        if _ARE_YOU_BOT.search(text):
            return self._candidate(self._pick(_BOT_REPLIES), 0.88)
        if _OPINION.search(text):
            return self._candidate(self._pick(_OPINION_REPLIES), 0.8)
        if _ACKNOWLEDGE.search(text):
            return self._candidate(self._pick(_ACK_REPLIES), 0.75)
        if _UNDERSTOOD.search(text):
            return self._candidate(self._pick(_UNDERSTOOD_REPLIES), 0.8)
        if _CAPABILITY.search(text):
            return self._candidate(
                "I can help with meal planning, dietary advice, BMI and calorie estimates, "
                "and explaining nutrition concepts. What would you like to start with?",
                0.7,
            )
        if _CONFUSED.search(text):
            return self._candidate(
                "Happy to clarify! Which part should I explain differently? "
                "I can break nutrition concepts down into simpler terms.",
                0.8,
            )
        if _CONTINUE.search(text) and any(m.role == "assistant" for m in list(history)[-3:]):
            return self._candidate(
                "I'd love to share more! Which aspect should I expand on?",
                0.75,
            )
        return None

    # ------------------------------------------------------------------

    def _pick(self, options: Sequence[str]) -> str:
        return options[self._rng.randrange(len(options))]

    @staticmethod
    def _candidate(text: str, confidence: float) -> Candidate:
        return Candidate(text=text, confidence=confidence, method="rule_engine")

    def _greeting(self, context: CallerContext, history: Sequence[ChatMessage]) -> str:
        salutation = self._pick(_TIME_GREETINGS[_time_of_day(self._clock().hour)])
        name = context.first_name
        reply = f"{salutation}{', ' + name if name else ''}! I'm your nutrition assistant. "
        plan = context.enrolled_plan
        if plan is not None:
            reply += f"I see you're on our {plan.name} plan, excellent choice! "
        if history and name:
            reply += "Welcome back! Ready to continue your nutrition journey?"
        elif name:
            reply += "Great to meet you! I'm here to help with all your nutrition questions."
        else:
            reply += "I can help with meal planning, nutrition advice and healthy eating tips!"
        return reply

    def _farewell(self, context: CallerContext) -> str:
        reply = self._pick(_FAREWELL_REPLIES)
        if context.first_name:
            reply = reply.replace("!", f", {context.first_name}!", 1)
        plan = context.enrolled_plan
        if plan is not None:
            reply += f" And don't forget your {plan.name} plan meals!"
        return reply
