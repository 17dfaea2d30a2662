"""Unit tests for the nearest-centroid intent classifier."""

import pytest

from nutrition_assistant.domain.models import CorpusSnapshot, ExampleEntry, IntentEntry, ResponseEntry
from nutrition_assistant.services.intent_classifier import CentroidIntentClassifier


def _intent(intent_id: int, examples: list[str]) -> IntentEntry:
    return IntentEntry(
        id=intent_id,
        name=f"intent_{intent_id}",
        priority=0,
        examples=tuple(
            ExampleEntry(id=intent_id * 10 + i, text=t, keywords=(), weight=1.0) for i, t in enumerate(examples)
        ),
        responses=(ResponseEntry(id=intent_id, text="reply", kind="plain", priority=0),),
    )


@pytest.fixture
def snapshot() -> CorpusSnapshot:
    return CorpusSnapshot(
        intents=(
            _intent(1, ["how much water should I drink", "drinking water daily"]),
            _intent(2, ["best protein sources", "protein for muscle"]),
        )
    )


class TestCentroidIntentClassifier:
    """Test suite for CentroidIntentClassifier."""

    def test_predicts_closest_intent(self, snapshot):
        """Test that the closest centroid wins."""
        classifier = CentroidIntentClassifier()

        prediction = classifier.classify("how much water daily", snapshot)

        assert prediction is not None
        assert prediction.intent_id == 1
        assert 0.0 < prediction.confidence <= 1.0

    def test_exact_example_scores_high(self, snapshot):
        """Test that a training example scores high."""
        prediction = CentroidIntentClassifier().classify("protein for muscle", snapshot)
        assert prediction.intent_id == 2
        assert prediction.confidence > 0.7

    def test_no_vocabulary_overlap(self, snapshot):
        """Test a message with no known words."""
        assert CentroidIntentClassifier().classify("recommend a laptop", snapshot) is None

    def test_empty_snapshot(self):
        """Test prediction before any examples exist."""
        assert CentroidIntentClassifier().classify("protein", CorpusSnapshot()) is None

    def test_refits_on_new_snapshot(self, snapshot):
        """Test that a new snapshot refits the model."""
        classifier = CentroidIntentClassifier()
        assert classifier.classify("fiber in oats", snapshot) is None

        updated = CorpusSnapshot(intents=snapshot.intents + (_intent(3, ["fiber in oats and beans"]),))
        prediction = classifier.classify("fiber in oats", updated)

        assert prediction is not None
        assert prediction.intent_id == 3
