"""Input validation for incoming chat messages."""

from __future__ import annotations

import re

from nutrition_assistant.application.exceptions import InvalidMessageError

DEFAULT_MAX_LENGTH = 2000

_UNSAFE_MARKUP = re.compile(r"<script|javascript:|on\w+\s*=|<iframe|<embed|<object", re.IGNORECASE)


def find_violations(message: str | None, max_length: int = DEFAULT_MAX_LENGTH) -> list[str]:
    """Return the list of rules *message* breaks (empty when it is acceptable)."""
    if message is None or not message.strip():
        return ["Message cannot be empty"]

    violations: list[str] = []
    if len(message) > max_length:
        violations.append(f"Message is too long (maximum {max_length} characters)")
    if _UNSAFE_MARKUP.search(message):
        violations.append("Message contains invalid content")
    return violations


def validate_message(message: str | None, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Return the stripped message, or raise ``InvalidMessageError``."""
    violations = find_violations(message, max_length)
    if violations:
        raise InvalidMessageError(violations)
    return (message or "").strip()
