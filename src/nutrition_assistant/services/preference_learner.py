"""Infers lightweight preference signals from what a caller asks about."""

from __future__ import annotations

import re
from dataclasses import dataclass

_FOOD_TERMS = (
    "chicken", "beef", "pork", "fish", "salmon", "tuna", "eggs", "egg", "tofu", "lentils",
    "beans", "rice", "quinoa", "oats", "pasta", "bread", "avocado", "broccoli", "spinach",
    "yogurt", "cheese", "milk", "nuts", "almonds", "fruit", "berries", "banana", "apple",
)  # fmt: skip
_FOOD = re.compile(r"\b(" + "|".join(_FOOD_TERMS) + r")\b")

_LIKED = ("love", "like", "enjoy", "favorite", "favourite", "prefer")
_DISLIKED = ("hate", "dislike", "don't like", "do not like", "allergic", "avoid", "can't stand")
_INTERESTED = ("want", "try", "how about", "what about", "recipe", "benefits")


@dataclass(frozen=True)
class PreferenceSignal:
    category: str
    key: str
    value: str
    confidence: float


def _food_sentiment(lowered: str) -> str:
    if any(term in lowered for term in _DISLIKED):
        return "disliked"
    if any(term in lowered for term in _LIKED):
        return "liked"
    if any(term in lowered for term in _INTERESTED):
        return "interested"
    return "neutral"


def infer_preferences(message: str) -> list[PreferenceSignal]:
    """Keyword-triggered preference signals; empty when nothing applies."""
    lowered = message.lower()
    signals: list[PreferenceSignal] = []

    if "vegetarian" in lowered or "vegan" in lowered:
        signals.append(PreferenceSignal("dietary", "plant_based", "interested", 0.8))
    if "protein" in lowered and ("more" in lowered or "increase" in lowered):
        signals.append(PreferenceSignal("macro_focus", "high_protein", "interested", 0.7))
    if "weight loss" in lowered or "lose weight" in lowered:
        signals.append(PreferenceSignal("goal_focus", "weight_loss", "active", 0.9))
    if "muscle" in lowered and ("gain" in lowered or "build" in lowered):
        signals.append(PreferenceSignal("goal_focus", "muscle_gain", "active", 0.9))
    if "breakfast" in lowered and "skip" in lowered:
        signals.append(PreferenceSignal("meal_timing", "intermittent_fasting", "interested", 0.7))

    foods = dict.fromkeys(_FOOD.findall(lowered))
    if foods:
        sentiment = _food_sentiment(lowered)
        for food in foods:
            signals.append(PreferenceSignal("food_likes", food, sentiment, 0.6))
    return signals
