"""Unit tests for preference inference."""

from nutrition_assistant.services.preference_learner import PreferenceSignal, infer_preferences


class TestInferPreferences:
    """Test suite for infer_preferences."""

    def test_nothing_to_learn(self):
        """Test a message with no preference signal."""
        assert infer_preferences("How many meals a day is ideal?") == []

    def test_goal_and_macro_signals(self):
        """Test goal and macro signals."""
        signals = infer_preferences("I want to lose weight and eat more protein")

        assert PreferenceSignal("goal_focus", "weight_loss", "active", 0.9) in signals
        assert PreferenceSignal("macro_focus", "high_protein", "interested", 0.7) in signals

    def test_plant_based(self):
        """Test the plant-based signal."""
        assert infer_preferences("Any vegan dinner ideas?") == [
            PreferenceSignal("dietary", "plant_based", "interested", 0.8)
        ]

    def test_muscle_gain_and_fasting(self):
        """Test muscle gain and fasting signals."""
        signals = infer_preferences("Can I skip breakfast and still build muscle?")
        keys = {(s.category, s.key) for s in signals}
        assert keys == {("goal_focus", "muscle_gain"), ("meal_timing", "intermittent_fasting")}

    def test_food_sentiment(self):
        """Test liked and disliked foods."""
        assert infer_preferences("I hate broccoli") == [
            PreferenceSignal("food_likes", "broccoli", "disliked", 0.6)
        ]
        assert infer_preferences("I love salmon and rice") == [
            PreferenceSignal("food_likes", "salmon", "liked", 0.6),
            PreferenceSignal("food_likes", "rice", "liked", 0.6),
        ]
        assert infer_preferences("Give me a tofu recipe")[0].value == "interested"
        assert infer_preferences("Is cheese ok at night")[0].value == "neutral"
