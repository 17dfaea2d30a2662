"""Text normalization, keyword extraction and string distance helpers."""

from __future__ import annotations

import re

from rapidfuzz.distance import Levenshtein

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

MAX_KEYWORDS = 20
MIN_TOKEN_LENGTH = 3

STOP_WORDS: frozenset[str] = frozenset(
    {
        "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
        "is", "are", "was", "were", "be", "been", "have", "has", "had",
        "do", "does", "did", "will", "would", "could", "should", "may", "might", "can",
        "this", "that", "these", "those",
        "i", "you", "he", "she", "it", "we", "they", "me", "him", "her", "us", "them",
        "my", "your", "his", "its", "our", "their",
        "what", "when", "where", "why", "how",
    }
)  # fmt: skip


def normalize(text: str) -> str:
    """Lower-case, turn punctuation into spaces and collapse whitespace."""
    if not text:
        return ""
    lowered = _NON_WORD.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", lowered).strip()


def tokenize(text: str) -> list[str]:
    normalized = normalize(text)
    return normalized.split(" ") if normalized else []


def content_tokens(text: str) -> list[str]:
    """Tokens that survive the length and stop-word filters, in order."""
    return [t for t in tokenize(text) if len(t) >= MIN_TOKEN_LENGTH and t not in STOP_WORDS]


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """Unigrams first, then adjacent bigrams of the surviving tokens, deduplicated.

    >>> extract_keywords("How much protein is in Greek yogurt?")
    ['much', 'protein', 'greek', 'yogurt', 'much protein', 'protein greek', 'greek yogurt']
    """
    tokens = content_tokens(text)
    candidates = tokens + [f"{a} {b}" for a, b in zip(tokens, tokens[1:])]
    keywords: list[str] = []
    seen: set[str] = set()
    for keyword in candidates:
        if keyword in seen:
            continue
        seen.add(keyword)
        keywords.append(keyword)
        if len(keywords) == limit:
            break
    return keywords


def levenshtein(a: str, b: str) -> int:
    """Unit-cost edit distance (insert, delete, substitute)."""
    return Levenshtein.distance(a, b)


def edit_distance_similarity(a: str, b: str) -> float:
    """``1 - levenshtein / longest length``; two empty strings are identical."""
    if not a and not b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


def longest_common_run(a: list[str], b: list[str]) -> int:
    """Length of the longest contiguous token sequence present in both lists."""
    if not a or not b:
        return 0
    best = 0
    previous = [0] * (len(b) + 1)
    for token_a in a:
        current = [0] * (len(b) + 1)
        for j, token_b in enumerate(b, start=1):
            if token_a == token_b:
                current[j] = previous[j - 1] + 1
                best = max(best, current[j])
        previous = current
    return best
