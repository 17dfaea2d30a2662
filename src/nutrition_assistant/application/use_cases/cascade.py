"""Confidence-driven fallback cascade.

Generators run strictly in order. Each one either proposes a ``Candidate``
or returns ``None``; a generator that raises is logged and counts as
``None``. A later candidate replaces the current best only with a strictly
higher confidence, so ties go to the earlier generator. A stage can ask to
stop the cascade early once the best candidate is good enough.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from loguru import logger

from nutrition_assistant.domain.models import Candidate, ResponseMethod

Generator = Callable[[], Awaitable[Candidate | None]]


@dataclass(frozen=True)
class Stage:
    """One step of the cascade.

    ``stop_at``: when set, the cascade ends after this stage if the best
    candidate so far has at least this confidence.
    """

    method: ResponseMethod
    generate: Generator
    stop_at: float | None = None


@dataclass
class CascadeOutcome:
    best: Candidate | None
    attempted: list[ResponseMethod] = field(default_factory=list)
    failed: list[ResponseMethod] = field(default_factory=list)


def clamp_confidence(value: float) -> float:
    return min(max(value, 0.0), 1.0)


async def run_cascade(stages: Sequence[Stage]) -> CascadeOutcome:
    """Fold the stages into the single best candidate."""
    outcome = CascadeOutcome(best=None)
    for stage in stages:
        outcome.attempted.append(stage.method)
        try:
            candidate = await stage.generate()
        except Exception:
            logger.exception("Cascade stage '{}' failed; skipping", stage.method)
            outcome.failed.append(stage.method)
            candidate = None

        if candidate is not None and candidate.text.strip():
            candidate = Candidate(
                text=candidate.text,
                confidence=clamp_confidence(candidate.confidence),
                method=stage.method,
                documents_found=candidate.documents_found,
            )
            if outcome.best is None or candidate.confidence > outcome.best.confidence:
                outcome.best = candidate

        if (
            stage.stop_at is not None
            and outcome.best is not None
            and outcome.best.confidence >= stage.stop_at
        ):
            break
    return outcome
