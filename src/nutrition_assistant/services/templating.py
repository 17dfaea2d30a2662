"""Placeholder rendering for corpus responses."""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import UTC, datetime

from nutrition_assistant.domain.models import CallerContext, ResponseEntry

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")
_LEADING_GREETING = re.compile(r"^(Hi|Hello|Hey)\b")

ANONYMOUS_NAME = "there"


def render_template(template: str, values: Mapping[str, str]) -> str:
    """Replace ``{{key}}`` with ``values[key]``; unknown placeholders are left as-is."""

    def _substitute(match: re.Match[str]) -> str:
        key = match.group(1)
        return values[key] if key in values else match.group(0)

    return _PLACEHOLDER.sub(_substitute, template)


def render_response(
    response: ResponseEntry,
    context: CallerContext,
    user_input: str,
    now: datetime | None = None,
) -> str:
    """Render a corpus response with its own variables plus the built-in ones."""
    values = dict(response.variables)
    values.setdefault("user_name", context.first_name or ANONYMOUS_NAME)
    values["user_input"] = user_input
    values["timestamp"] = (now or datetime.now(UTC)).strftime("%Y-%m-%d %H:%M")
    return render_template(response.text, values)


def personalize_greeting(text: str, first_name: str | None) -> str:
    """Insert the caller's first name after a leading "Hi/Hello/Hey"."""
    if not first_name or first_name in text:
        return text
    return _LEADING_GREETING.sub(lambda m: f"{m.group(1)} {first_name}", text, count=1)
