"""Body metrics used to personalize replies (BMI, BMR, TDEE)."""

from __future__ import annotations

from nutrition_assistant.domain.models import UserProfile

ACTIVITY_MULTIPLIERS: dict[str, float] = {
    "sedentary": 1.2,
    "light": 1.375,
    "moderate": 1.55,
    "active": 1.725,
    "very_active": 1.9,
}
DEFAULT_ACTIVITY = "moderate"


def bmi(weight_kg: float, height_cm: float) -> float:
    """Body-mass index; raises ValueError for a non-positive height."""
    if height_cm <= 0:
        raise ValueError("height_cm must be positive")
    return weight_kg / (height_cm / 100) ** 2


def bmi_category(value: float) -> str:
    if value < 18.5:
        return "underweight"
    if value < 25:
        return "normal weight"
    if value < 30:
        return "overweight"
    return "obese"


def bmr(weight_kg: float, height_cm: float, age: int, gender: str | None) -> float:
    """Basal metabolic rate (revised Harris-Benedict). Unknown gender uses the female formula."""
    if gender == "male":
        return 88.362 + 13.397 * weight_kg + 4.799 * height_cm - 5.677 * age
    return 447.593 + 9.247 * weight_kg + 3.098 * height_cm - 4.330 * age


def tdee(bmr_value: float, activity_level: str | None) -> float:
    multiplier = ACTIVITY_MULTIPLIERS.get(activity_level or DEFAULT_ACTIVITY)
    if multiplier is None:
        multiplier = ACTIVITY_MULTIPLIERS[DEFAULT_ACTIVITY]
    return bmr_value * multiplier


def profile_bmi(profile: UserProfile | None) -> float | None:
    if profile is None or not profile.weight_kg or not profile.height_cm:
        return None
    return bmi(profile.weight_kg, profile.height_cm)


def profile_energy(profile: UserProfile | None) -> tuple[float, float] | None:
    """(BMR, TDEE) when weight, height and age are all known."""
    if profile is None or not (profile.weight_kg and profile.height_cm and profile.age):
        return None
    base = bmr(profile.weight_kg, profile.height_cm, profile.age, profile.gender)
    return base, tdee(base, profile.activity_level)
