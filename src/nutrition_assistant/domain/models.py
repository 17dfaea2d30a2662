"""Domain entities and value objects.

These are the core data structures of the response engine, independent of
the storage layer and the embedding provider.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ResponseMethod = Literal["retrieval", "rule_engine", "learned", "lexical", "default"]
Scalar = str | int | float | bool

# ---------------------------------------------------------------------------
# Caller context (supplied by the transport layer)
# ---------------------------------------------------------------------------


class ChatMessage(BaseModel):
    """A single prior turn in the conversation."""

    role: Literal["user", "assistant"] = Field(description="Message role")
    content: str = Field(description="Message content")


class EnrolledPlan(BaseModel):
    """Diet plan the caller is currently enrolled in."""

    name: str
    type: str
    calories: int | None = None
    meals_per_day: int | None = None
    duration_days: int | None = None


class UserProfile(BaseModel):
    """Profile fields the engine may use to personalize wording."""

    first_name: str | None = None
    age: int | None = None
    weight_kg: float | None = None
    height_cm: float | None = None
    gender: Literal["male", "female"] | None = None
    activity_level: str | None = None
    goals: list[str] = Field(default_factory=list)
    enrolled_plan: EnrolledPlan | None = None


class CallerContext(BaseModel):
    """Who is asking. Anonymous callers only carry a session id."""

    user_id: str | None = None
    session_id: str = Field(default_factory=lambda: uuid4().hex)
    profile: UserProfile | None = None
    extra: dict[str, Scalar] = Field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def first_name(self) -> str | None:
        return self.profile.first_name if self.profile else None

    @property
    def enrolled_plan(self) -> EnrolledPlan | None:
        return self.profile.enrolled_plan if self.profile else None

    @property
    def subject_id(self) -> str:
        """Key used for per-caller records: the user id, else the session id."""
        return self.user_id or self.session_id

    def facts(self) -> dict[str, Scalar]:
        """Flatten the context into the key set response conditions are checked against.

        Keys whose value is unknown are omitted, so a condition on them never holds.
        """
        facts: dict[str, Scalar] = dict(self.extra)
        facts["is_authenticated"] = self.is_authenticated
        plan = self.enrolled_plan
        facts["has_enrolled_plan"] = plan is not None
        if plan is not None:
            facts["plan_type"] = plan.type
        if self.profile and self.profile.goals:
            facts["goal"] = self.profile.goals[0]
        return facts


# ---------------------------------------------------------------------------
# Response conditions
# ---------------------------------------------------------------------------


class ResponseConditions(BaseModel):
    """Equality predicates a caller context must satisfy for a response to apply.

    Known keys are typed fields; anything else goes into ``other`` and is
    compared against ``CallerContext.extra``. Unset fields impose no constraint.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    plan_type: str | None = None
    is_authenticated: bool | None = None
    has_enrolled_plan: bool | None = None
    goal: str | None = None
    other: dict[str, Scalar] = Field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Scalar] | None) -> ResponseConditions | None:
        """Build conditions from a loose key/value bag, routing unknown keys to ``other``."""
        if not raw:
            return None
        known: dict[str, Scalar] = {}
        other: dict[str, Scalar] = {}
        for key, value in raw.items():
            field_name = _FIELD_BY_KEY.get(key)
            if field_name is None:
                other[key] = value
            else:
                known[field_name] = value
        return cls(**known, other=other)

    def required(self) -> dict[str, Scalar]:
        """Return every key/value pair that must hold, known keys first."""
        required: dict[str, Scalar] = {
            name: value
            for name, value in self.model_dump(exclude={"other"}).items()
            if value is not None
        }
        required.update(self.other)
        return required

    def matches(self, facts: Mapping[str, Scalar]) -> bool:
        for key, expected in self.required().items():
            if key not in facts or facts[key] != expected:
                return False
        return True


def _condition_keys() -> dict[str, str]:
    keys: dict[str, str] = {}
    for name, info in ResponseConditions.model_fields.items():
        if name == "other":
            continue
        keys[name] = name
        keys[info.alias or name] = name
    return keys


_FIELD_BY_KEY = _condition_keys()


# ---------------------------------------------------------------------------
# Corpus snapshot (what the cache holds)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExampleEntry:
    id: int
    text: str
    keywords: tuple[str, ...]
    weight: float


@dataclass(frozen=True)
class ResponseEntry:
    id: int
    text: str
    kind: Literal["plain", "templated"]
    priority: int
    conditions: ResponseConditions | None = None
    variables: tuple[tuple[str, str], ...] = ()

    def applies_to(self, facts: Mapping[str, Scalar]) -> bool:
        return self.conditions is None or self.conditions.matches(facts)


@dataclass(frozen=True)
class IntentEntry:
    id: int
    name: str
    priority: int
    examples: tuple[ExampleEntry, ...]
    responses: tuple[ResponseEntry, ...]

    @property
    def is_eligible(self) -> bool:
        """An intent can only match when it has at least one example and one response."""
        return bool(self.examples) and bool(self.responses)

    def pick_response(self, facts: Mapping[str, Scalar]) -> ResponseEntry | None:
        """Highest-priority response whose conditions hold (ties: lowest id)."""
        applicable = [r for r in self.responses if r.applies_to(facts)]
        if not applicable:
            return None
        return min(applicable, key=lambda r: (-r.priority, r.id))


@dataclass(frozen=True)
class CorpusSnapshot:
    """Immutable view of all active intents; swapped whole on reload."""

    intents: tuple[IntentEntry, ...] = ()
    loaded_at: float = field(default=0.0, compare=False)

    def get_intent(self, intent_id: int) -> IntentEntry | None:
        for intent in self.intents:
            if intent.id == intent_id:
                return intent
        return None

    @property
    def example_count(self) -> int:
        return sum(len(i.examples) for i in self.intents)


# ---------------------------------------------------------------------------
# Knowledge documents
# ---------------------------------------------------------------------------


class DocumentMetadata(BaseModel):
    """Descriptive fields stored alongside each document."""

    category: str = "general"
    title: str = ""
    source: str | None = None
    tags: list[str] = Field(default_factory=list)
    goals: list[str] = Field(default_factory=list)
    credibility_score: float = Field(default=0.5, ge=0.0, le=1.0)


class Document(BaseModel):
    """A unit of retrievable knowledge."""

    id: str
    text: str
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)


@dataclass
class SearchResult:
    """Vector store search output; ``total_candidates`` counts every hit above the cutoff."""

    documents: list[Document] = field(default_factory=list)
    scores: list[float] = field(default_factory=list)
    elapsed_ms: float = 0.0
    total_candidates: int = 0


@dataclass
class StoreStats:
    count: int
    is_ready: bool
    dimension: int | None
    path: str | None


# ---------------------------------------------------------------------------
# Stage results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Candidate:
    """One generator's proposed reply."""

    text: str
    confidence: float
    method: ResponseMethod
    documents_found: int = 0


@dataclass(frozen=True)
class LexicalMatch:
    intent_id: int
    intent_name: str
    response_id: int
    text: str
    confidence: float
    matched_keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class ClassifierPrediction:
    intent_id: int
    confidence: float


@dataclass
class RetrievalAnswer:
    text: str
    confidence: float
    used_retrieval: bool
    elapsed_ms: float
    documents_found: int


@dataclass
class AssistantReply:
    """What the caller gets back from ``generate_response``."""

    text: str
    confidence: float
    method: ResponseMethod
    elapsed_ms: float
    documents_found: int = 0


@dataclass
class IntentMatchStats:
    intent_id: int
    intent_name: str
    match_count: int
    avg_confidence: float
