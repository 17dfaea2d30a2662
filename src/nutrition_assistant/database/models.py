"""SQLModel type definitions for the corpus database tables."""

from datetime import UTC, datetime

from sqlmodel import JSON, Column, Field, SQLModel, UniqueConstraint


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Intent(SQLModel, table=True):
    """A named conversational category."""

    __tablename__ = "intents"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    description: str | None = None
    priority: int = Field(default=0, index=True)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class TrainingExample(SQLModel, table=True):
    """A labeled sample utterance belonging to one intent."""

    __tablename__ = "training_examples"

    id: int | None = Field(default=None, primary_key=True)
    intent_id: int = Field(foreign_key="intents.id", index=True)
    text: str
    keywords: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    weight: float = Field(default=1.0, ge=0.0, le=1.0)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=_utcnow)


class TrainingResponse(SQLModel, table=True):
    """A candidate reply for one intent."""

    __tablename__ = "training_responses"

    id: int | None = Field(default=None, primary_key=True)
    intent_id: int = Field(foreign_key="intents.id", index=True)
    text: str
    kind: str = Field(default="plain")
    priority: int = Field(default=0)
    conditions: dict | None = Field(default=None, sa_column=Column(JSON))
    variables: dict | None = Field(default=None, sa_column=Column(JSON))
    usage_count: int = Field(default=0)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=_utcnow)


class MatchAnalytics(SQLModel, table=True):
    """One successful lexical match, for offline corpus tuning."""

    __tablename__ = "match_analytics"

    id: int | None = Field(default=None, primary_key=True)
    user_input: str
    intent_id: int = Field(foreign_key="intents.id", index=True)
    confidence: float
    response_preview: str
    matched_keywords: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    context: dict = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=_utcnow)


class UserPreference(SQLModel, table=True):
    """A preference signal inferred from what a caller asked about."""

    __tablename__ = "user_preferences"
    __table_args__ = (UniqueConstraint("subject_id", "category", "key"),)

    id: int | None = Field(default=None, primary_key=True)
    subject_id: str = Field(index=True)
    category: str
    key: str
    value: str
    confidence: float
    updated_at: datetime = Field(default_factory=_utcnow)
