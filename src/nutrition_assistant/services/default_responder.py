"""Always-available keyword-triggered default replies."""

from __future__ import annotations

import re

from nutrition_assistant.domain.models import CallerContext, Candidate
from nutrition_assistant.services import nutrition_metrics

DEFAULT_CONFIDENCE = 0.5

_GREETING_WORD = re.compile(r"\b(hello|hi|hey)\b")


class DefaultResponder:
    """Deterministic template picked by simple keyword checks; never returns nothing."""

    def __init__(self, confidence: float = DEFAULT_CONFIDENCE) -> None:
        self.confidence = confidence

    def respond(self, message: str, context: CallerContext) -> Candidate:
        return Candidate(
            text=self.render(message, context),
            confidence=self.confidence,
            method="default",
        )

    def render(self, message: str, context: CallerContext) -> str:
        lowered = message.lower()
        name = context.first_name
        greeting = f"Hi {name}! " if name else ""
        plan = context.enrolled_plan

        if _GREETING_WORD.search(lowered):
            reply = f"{greeting or 'Hello! '}I'm your nutrition assistant."
            if plan is not None:
                reply += f" I see you're on our {plan.name} plan, great choice!"
            return reply + " How can I help with your nutrition questions today?"

        if "calorie" in lowered or "bmi" in lowered:
            profile = context.profile
            body_mass = nutrition_metrics.profile_bmi(profile)
            if profile is not None and body_mass is not None:
                return (
                    f"{greeting}Based on your profile ({profile.weight_kg:g}kg, {profile.height_cm:g}cm), "
                    f"your BMI is {body_mass:.1f}. Ask me anything specific and I'll go deeper!"
                )
            return (
                f"{greeting}I can help with calorie and BMI calculations. "
                "Tell me your weight and height, or ask about a specific nutrition topic!"
            )

        if "protein" in lowered:
            return (
                f"{greeting}Protein supports muscle maintenance and overall health. Most adults need "
                "about 0.8-1.2 g per kg of body weight daily. Good sources include lean meats, fish, "
                "eggs, dairy, legumes and nuts. Want recommendations for your goals?"
            )

        if "weight loss" in lowered or "lose weight" in lowered:
            return (
                f"{greeting}For healthy weight loss, aim for a moderate calorie deficit with balanced "
                "meals and regular activity, about 0.5-1 kg per week. Prioritize protein and fiber "
                "and stay hydrated. Would you like meal planning tips?"
            )

        if "meal plan" in lowered or "diet plan" in lowered:
            if plan is not None:
                calories = f" with {plan.calories} calories per day" if plan.calories else ""
                return (
                    f"{greeting}You're currently on our {plan.name} plan{calories}. "
                    "How can I help with your meal planning today?"
                )
            return (
                f"{greeting}I can help with meal planning! Our personalized diet plans give structured "
                "guidance, or ask me about protein needs, meal timing or healthy recipes."
            )

        return (
            f"{greeting}I'm here to help with your nutrition questions: meal planning, calorie "
            "estimates, macronutrients, supplements and healthy eating tips. What would you like to explore?"
        )
