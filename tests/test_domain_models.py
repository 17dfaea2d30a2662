"""Tests for domain value objects: caller context facts and response conditions."""

import pytest
from pydantic import ValidationError

from nutrition_assistant.domain.models import (
    CallerContext,
    CorpusSnapshot,
    EnrolledPlan,
    IntentEntry,
    ResponseConditions,
    ResponseEntry,
    UserProfile,
)


class TestCallerContext:
    """Test suite for CallerContext."""

    def test_anonymous_facts(self):
        """Test condition facts for an anonymous caller."""
        context = CallerContext(session_id="s1")

        assert context.is_authenticated is False
        assert context.subject_id == "s1"
        assert context.facts() == {"is_authenticated": False, "has_enrolled_plan": False}

    def test_authenticated_facts(self):
        """Test condition facts for a signed-in caller."""
        context = CallerContext(
            user_id="u1",
            profile=UserProfile(
                goals=["weight_loss", "energy"],
                enrolled_plan=EnrolledPlan(name="Lean", type="weight_loss"),
            ),
            extra={"region": "eu"},
        )

        assert context.subject_id == "u1"
        assert context.facts() == {
            "region": "eu",
            "is_authenticated": True,
            "has_enrolled_plan": True,
            "plan_type": "weight_loss",
            "goal": "weight_loss",
        }

    def test_session_ids_are_unique(self):
        """Test that session ids are unique."""
        assert CallerContext().session_id != CallerContext().session_id


class TestResponseConditions:
    """Test suite for ResponseConditions."""

    def test_accepts_camel_and_snake_keys(self):
        """Test camelCase and snake_case keys."""
        camel = ResponseConditions.from_mapping({"planType": "keto", "isAuthenticated": True})
        snake = ResponseConditions.from_mapping({"plan_type": "keto", "is_authenticated": True})
        assert camel == snake
        assert camel.required() == {"plan_type": "keto", "is_authenticated": True}

    def test_unknown_keys_go_to_other(self):
        """Test that unknown keys are kept separately."""
        conditions = ResponseConditions.from_mapping({"region": "eu", "goal": "muscle_gain"})
        assert conditions.other == {"region": "eu"}
        assert conditions.required() == {"goal": "muscle_gain", "region": "eu"}

    def test_empty_mapping_means_no_conditions(self):
        """Test that an empty mapping has no conditions."""
        assert ResponseConditions.from_mapping({}) is None
        assert ResponseConditions.from_mapping(None) is None

    def test_missing_fact_fails(self):
        """Test that a missing fact fails the condition."""
        conditions = ResponseConditions(plan_type="weight_loss")
        assert conditions.matches({"plan_type": "weight_loss"}) is True
        assert conditions.matches({"plan_type": "keto"}) is False
        assert conditions.matches({}) is False

    def test_rejects_unexpected_fields(self):
        """Test unexpected field types."""
        with pytest.raises(ValidationError):
            ResponseConditions(region="eu")

    def test_immutable(self):
        """Test that conditions are frozen."""
        conditions = ResponseConditions(goal="energy")
        with pytest.raises(ValidationError):
            conditions.goal = "weight_loss"


class TestIntentEntry:
    """Test suite for IntentEntry."""

    def _intent(self, responses):
        return IntentEntry(id=1, name="plans", priority=0, examples=(), responses=tuple(responses))

    def test_pick_response_by_priority_then_id(self):
        """Test response order by priority then id."""
        intent = self._intent(
            [
                ResponseEntry(id=3, text="c", kind="plain", priority=1),
                ResponseEntry(id=2, text="b", kind="plain", priority=2),
                ResponseEntry(id=1, text="a", kind="plain", priority=2),
            ]
        )
        assert intent.pick_response({}).text == "a"

    def test_conditions_filter_responses(self):
        """Test that conditions filter responses."""
        intent = self._intent(
            [ResponseEntry(id=1, text="plan", kind="plain", priority=9, conditions=ResponseConditions(plan_type="keto"))]
        )
        assert intent.pick_response({"plan_type": "keto"}).text == "plan"
        assert intent.pick_response({"plan_type": "vegan"}) is None

    def test_eligibility_requires_examples(self):
        """Test that eligibility needs examples and responses."""
        intent = self._intent([ResponseEntry(id=1, text="x", kind="plain", priority=0)])
        assert intent.is_eligible is False


class TestCorpusSnapshot:
    """Test suite for CorpusSnapshot."""

    def test_lookup_and_counts(self):
        """Test lookup by id and counts."""
        snapshot = CorpusSnapshot(
            intents=(IntentEntry(id=7, name="fiber", priority=0, examples=(), responses=()),)
        )
        assert snapshot.get_intent(7).name == "fiber"
        assert snapshot.get_intent(8) is None
        assert snapshot.example_count == 0

    def test_load_time_does_not_affect_equality(self):
        """Test that load time is ignored by equality."""
        assert CorpusSnapshot(loaded_at=1.0) == CorpusSnapshot(loaded_at=2.0)
