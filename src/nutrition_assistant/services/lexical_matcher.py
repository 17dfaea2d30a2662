"""Hybrid lexical similarity matcher over the curated example corpus.

Scoring combines keyword overlap, character edit distance and a small
domain boost for texts that talk about the same nutrition topic. Matching
walks every eligible intent in the cached snapshot and keeps the best one
that clears its priority-adjusted threshold.
"""

from __future__ import annotations

from dataclasses import dataclass

from nutrition_assistant.domain.models import CallerContext, CorpusSnapshot, LexicalMatch
from nutrition_assistant.services.templating import render_response
from nutrition_assistant.services.text_processing import (
    content_tokens,
    edit_distance_similarity,
    extract_keywords,
    longest_common_run,
    normalize,
)

EXACT_MATCH_SCORE = 1.0
SUBSTRING_MATCH_SCORE = 0.9

KEYWORD_WEIGHT = 0.6
EDIT_DISTANCE_WEIGHT = 0.3
SEMANTIC_WEIGHT = 0.1

PARTIAL_MATCH_CREDIT = 0.5
RUN_BONUS_PER_TOKEN = 0.1
SEMANTIC_GROUP_SCALE = 0.2

PRIORITY_BOOST = 0.05
BASE_THRESHOLD = 0.3
THRESHOLD_PRIORITY_STEP = 0.02
THRESHOLD_FLOOR = 0.15

SEMANTIC_GROUPS: dict[str, tuple[str, ...]] = {
    "weight_loss": ("lose", "losing", "loss", "slim", "fat", "deficit", "cut", "cutting", "lean"),
    "weight_gain": ("gain", "gaining", "bulk", "bulking", "mass", "surplus", "muscle"),
    "nutrition": (
        "protein", "carb", "carbs", "carbohydrate", "carbohydrates", "fiber", "vitamin",
        "vitamins", "mineral", "minerals", "nutrient", "nutrients", "nutrition", "macro", "macros",
    ),
    "fitness": ("exercise", "workout", "training", "gym", "cardio", "run", "running", "strength"),
    "health": ("health", "healthy", "diabetes", "cholesterol", "pressure", "heart", "sugar"),
    "bmi": ("bmi", "body", "mass", "index", "height", "weight", "tall"),
}  # fmt: skip


@dataclass(frozen=True)
class _Prepared:
    normalized: str
    keywords: tuple[str, ...]
    tokens: tuple[str, ...]


def _prepare(text: str) -> _Prepared:
    return _Prepared(
        normalized=normalize(text),
        keywords=tuple(extract_keywords(text)),
        tokens=tuple(content_tokens(text)),
    )


def keyword_similarity(
    a: tuple[str, ...] | list[str],
    b: tuple[str, ...] | list[str],
    tokens_a: tuple[str, ...] | list[str] = (),
    tokens_b: tuple[str, ...] | list[str] = (),
) -> float:
    """Overlap of two keyword sets, with partial credit for substring keywords."""
    if not a or not b:
        return 0.0
    set_b = set(b)
    exact = 0
    partial = 0
    for keyword in dict.fromkeys(a):
        if keyword in set_b:
            exact += 1
        elif any(keyword in other or other in keyword for other in set_b):
            partial += 1
    score = (exact + PARTIAL_MATCH_CREDIT * partial) / max(len(set(a)), len(set_b))

    run = longest_common_run(list(tokens_a), list(tokens_b))
    if run > 1:
        score += run * RUN_BONUS_PER_TOKEN
    return min(score, 1.0)


def semantic_boost(tokens_a: tuple[str, ...] | list[str], tokens_b: tuple[str, ...] | list[str]) -> float:
    """Largest per-group overlap ratio for topics both texts mention."""
    best = 0.0
    for terms in SEMANTIC_GROUPS.values():
        in_a = sum(1 for t in tokens_a if t in terms)
        in_b = sum(1 for t in tokens_b if t in terms)
        if in_a and in_b:
            best = max(best, min(in_a, in_b) / max(in_a, in_b) * SEMANTIC_GROUP_SCALE)
    return best


def _score_prepared(user: _Prepared, example: _Prepared) -> float:
    if user.normalized == example.normalized:
        return EXACT_MATCH_SCORE
    if user.normalized and example.normalized and (
        user.normalized in example.normalized or example.normalized in user.normalized
    ):
        return SUBSTRING_MATCH_SCORE

    combined = (
        KEYWORD_WEIGHT * keyword_similarity(user.keywords, example.keywords, user.tokens, example.tokens)
        + EDIT_DISTANCE_WEIGHT * edit_distance_similarity(user.normalized, example.normalized)
        + SEMANTIC_WEIGHT * semantic_boost(user.tokens, example.tokens)
    )
    return min(combined, 1.0)


def score(user_text: str, example_text: str) -> float:
    """Similarity of a user utterance to one example utterance, in [0, 1]."""
    return _score_prepared(_prepare(user_text), _prepare(example_text))


def adaptive_threshold(priority: int) -> float:
    """Higher-priority intents are accepted at lower raw scores, down to a floor."""
    return max(BASE_THRESHOLD - priority * THRESHOLD_PRIORITY_STEP, THRESHOLD_FLOOR)


class LexicalMatcher:
    """Finds the best-matching intent for a message and renders its response."""

    def match(
        self,
        message: str,
        snapshot: CorpusSnapshot,
        context: CallerContext,
    ) -> LexicalMatch | None:
        """Return the winning intent's rendered response, or None when nothing clears.

        Intents without examples or responses are skipped, and so are intents
        whose responses are all excluded by their conditions.
        """
        user = _prepare(message)
        facts = context.facts()

        best: LexicalMatch | None = None
        best_score = 0.0
        for intent in snapshot.intents:
            if not intent.is_eligible:
                continue
            response = intent.pick_response(facts)
            if response is None:
                continue

            intent_best = 0.0
            matched: tuple[str, ...] = ()
            for example in intent.examples:
                prepared = _Prepared(
                    normalized=normalize(example.text),
                    keywords=example.keywords or tuple(extract_keywords(example.text)),
                    tokens=tuple(content_tokens(example.text)),
                )
                weighted = _score_prepared(user, prepared) * example.weight
                if weighted > intent_best:
                    intent_best = weighted
                    matched = tuple(k for k in user.keywords if k in prepared.keywords)

            boosted = min(intent_best + intent.priority * PRIORITY_BOOST, 1.0)
            if boosted > adaptive_threshold(intent.priority) and boosted > best_score:
                best_score = boosted
                best = LexicalMatch(
                    intent_id=intent.id,
                    intent_name=intent.name,
                    response_id=response.id,
                    text=render_response(response, context, message),
                    confidence=max(0.0, boosted),
                    matched_keywords=matched,
                )
        return best
