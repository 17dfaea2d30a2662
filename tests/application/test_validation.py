"""Unit tests for message validation."""

import pytest

from nutrition_assistant.application.exceptions import InvalidMessageError
from nutrition_assistant.application.validation import find_violations, validate_message


class TestFindViolations:
    """Test suite for find_violations."""

    @pytest.mark.parametrize("message", ["", "   ", "\n\t", None])
    def test_empty(self, message):
        """Test empty and whitespace messages."""
        assert find_violations(message) == ["Message cannot be empty"]

    def test_too_long(self):
        """Test the message length limit."""
        assert find_violations("a" * 2001) == ["Message is too long (maximum 2000 characters)"]
        assert find_violations("a" * 2000) == []

    @pytest.mark.parametrize(
        "message",
        [
            "<script>alert(1)</script>",
            "click javascript:void(0)",
            '<img src=x onerror="steal()">',
            "<IFRAME src='x'>",
            "<embed src=x>",
            "<object data=x>",
        ],
    )
    def test_unsafe_markup(self, message):
        """Test markup injection patterns."""
        assert find_violations(message) == ["Message contains invalid content"]

    def test_multiple_violations_in_order(self):
        """Test that every violation is reported in check order."""
        message = "<script>" + "a" * 30
        assert find_violations(message, max_length=10) == [
            "Message is too long (maximum 10 characters)",
            "Message contains invalid content",
        ]

    def test_ordinary_questions_pass(self):
        """Test that ordinary questions pass."""
        assert find_violations("Is 1 < 2 servings of fruit enough?") == []
        assert find_violations("What's a good post-workout snack?") == []


class TestValidateMessage:
    """Test suite for validate_message."""

    def test_returns_stripped_message(self):
        """Test that the stripped message is returned."""
        assert validate_message("  How much fiber?  ") == "How much fiber?"

    def test_raises_with_violations(self):
        """Test that InvalidMessageError carries the violations."""
        with pytest.raises(InvalidMessageError) as exc_info:
            validate_message("")
        assert exc_info.value.violations == ["Message cannot be empty"]
        assert isinstance(exc_info.value, ValueError)
