"""Relational storage for the curated corpus, match analytics and preferences."""

from __future__ import annotations

import json
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from loguru import logger
from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, col, create_engine, select

from nutrition_assistant.database.models import (
    Intent,
    MatchAnalytics,
    TrainingExample,
    TrainingResponse,
    UserPreference,
    _utcnow,
)
from nutrition_assistant.domain.models import (
    CorpusSnapshot,
    ExampleEntry,
    IntentEntry,
    IntentMatchStats,
    ResponseConditions,
    ResponseEntry,
)
from nutrition_assistant.services.text_processing import extract_keywords

_TABLES = [
    Intent.__table__,
    TrainingExample.__table__,
    TrainingResponse.__table__,
    MatchAnalytics.__table__,
    UserPreference.__table__,
]

RESPONSE_KINDS = ("plain", "templated")


class CorpusRepository:
    """Manages intents, their examples and responses, plus the side tables.

    Every public method opens its own short-lived session so the repository
    can be called from worker threads.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.engine: Engine | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Connect to database."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            echo=False,
            connect_args={"check_same_thread": False},
        )

    def close(self) -> None:
        """Close database connection."""
        if self.engine:
            self.engine.dispose()
            self.engine = None

    def create_tables(self) -> None:
        """Create corpus tables if they do not exist."""
        SQLModel.metadata.create_all(self._require_engine(), tables=_TABLES)

    def reset(self) -> None:
        """Drop and recreate all corpus tables."""
        engine = self._require_engine()
        SQLModel.metadata.drop_all(engine, tables=_TABLES)
        SQLModel.metadata.create_all(engine, tables=_TABLES)

    def _require_engine(self) -> Engine:
        if not self.engine:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self.engine

    def _session(self) -> Session:
        return Session(self._require_engine(), expire_on_commit=False)

    # ------------------------------------------------------------------
    # Curation
    # ------------------------------------------------------------------

    def create_intent(self, name: str, priority: int = 0, description: str | None = None) -> Intent:
        """Insert a new intent (names are unique)."""
        with self._session() as session:
            intent = Intent(name=name, priority=priority, description=description)
            session.add(intent)
            session.commit()
            session.refresh(intent)
            return intent

    def get_intent_by_name(self, name: str) -> Intent | None:
        with self._session() as session:
            return session.exec(select(Intent).where(Intent.name == name)).first()

    def deactivate_intent(self, intent_id: int) -> None:
        """Hide an intent from matching without deleting its history."""
        with self._session() as session:
            intent = session.get(Intent, intent_id)
            if intent is None:
                raise ValueError(f"Intent {intent_id} not found")
            intent.is_active = False
            intent.updated_at = _utcnow()
            session.add(intent)
            session.commit()

    def add_example(self, intent_id: int, text: str, weight: float = 1.0) -> TrainingExample:
        """Attach an example utterance; keywords are extracted here."""
        if not 0.0 <= weight <= 1.0:
            raise ValueError(f"Example weight must be within [0, 1], got {weight}")
        with self._session() as session:
            if session.get(Intent, intent_id) is None:
                raise ValueError(f"Intent {intent_id} not found")
            example = TrainingExample(
                intent_id=intent_id,
                text=text,
                keywords=extract_keywords(text),
                weight=weight,
            )
            session.add(example)
            session.commit()
            session.refresh(example)
            return example

    def update_example(self, example_id: int, text: str) -> TrainingExample:
        """Change an example's text and re-extract its keywords."""
        with self._session() as session:
            example = session.get(TrainingExample, example_id)
            if example is None:
                raise ValueError(f"Example {example_id} not found")
            example.text = text
            example.keywords = extract_keywords(text)
            session.add(example)
            session.commit()
            session.refresh(example)
            return example

    def add_response(
        self,
        intent_id: int,
        text: str,
        kind: str = "plain",
        priority: int = 0,
        conditions: dict[str, Any] | None = None,
        variables: dict[str, str] | None = None,
    ) -> TrainingResponse:
        """Attach a candidate response to an intent."""
        if kind not in RESPONSE_KINDS:
            raise ValueError(f"Unknown response kind {kind!r}; expected one of {RESPONSE_KINDS}")
        parsed = ResponseConditions.from_mapping(conditions)
        with self._session() as session:
            if session.get(Intent, intent_id) is None:
                raise ValueError(f"Intent {intent_id} not found")
            response = TrainingResponse(
                intent_id=intent_id,
                text=text,
                kind=kind,
                priority=priority,
                conditions=parsed.required() if parsed else None,
                variables=variables or None,
            )
            session.add(response)
            session.commit()
            session.refresh(response)
            return response

    def seed(self, intents: Iterable[dict[str, Any]]) -> int:
        """Create intents with their examples and responses; existing names are skipped.

        Each item looks like ``{"name", "priority", "examples", "responses"}`` where
        examples are strings or ``{"text", "weight"}`` and responses are strings or
        ``{"text", "kind", "priority", "conditions", "variables"}``.

        Returns:
            Number of intents created.
        """
        created = 0
        for item in intents:
            if self.get_intent_by_name(item["name"]) is not None:
                logger.debug("Intent {} already present, skipping", item["name"])
                continue
            intent_id = self.create_intent(
                item["name"], priority=item.get("priority", 0), description=item.get("description")
            ).id
            for example in item.get("examples", []):
                if isinstance(example, str):
                    example = {"text": example}
                self.add_example(intent_id, example["text"], weight=example.get("weight", 1.0))
            for response in item.get("responses", []):
                if isinstance(response, str):
                    response = {"text": response}
                self.add_response(
                    intent_id,
                    response["text"],
                    kind=response.get("kind", "plain"),
                    priority=response.get("priority", 0),
                    conditions=response.get("conditions"),
                    variables=response.get("variables"),
                )
            created += 1
        return created

    def seed_from_file(self, path: Path) -> int:
        """Seed from a JSON file holding a list of intents (or ``{"intents": [...]}``)."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("intents", [])
        return self.seed(data)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def load_snapshot(self) -> CorpusSnapshot:
        """Read every active intent with its active examples and responses."""
        with self._session() as session:
            intents = session.exec(
                select(Intent).where(col(Intent.is_active).is_(True)).order_by(
                    col(Intent.priority).desc(), col(Intent.id)
                )
            ).all()
            examples = session.exec(
                select(TrainingExample)
                .where(col(TrainingExample.is_active).is_(True))
                .order_by(col(TrainingExample.weight).desc(), col(TrainingExample.id))
            ).all()
            responses = session.exec(
                select(TrainingResponse)
                .where(col(TrainingResponse.is_active).is_(True))
                .order_by(col(TrainingResponse.priority).desc(), col(TrainingResponse.id))
            ).all()

        examples_by_intent: dict[int, list[ExampleEntry]] = {}
        for ex in examples:
            examples_by_intent.setdefault(ex.intent_id, []).append(
                ExampleEntry(
                    id=ex.id,  # type: ignore[arg-type]
                    text=ex.text,
                    keywords=tuple(ex.keywords or ()),
                    weight=ex.weight,
                )
            )
        responses_by_intent: dict[int, list[ResponseEntry]] = {}
        for resp in responses:
            responses_by_intent.setdefault(resp.intent_id, []).append(
                ResponseEntry(
                    id=resp.id,  # type: ignore[arg-type]
                    text=resp.text,
                    kind="templated" if resp.kind == "templated" else "plain",
                    priority=resp.priority,
                    conditions=ResponseConditions.from_mapping(resp.conditions),
                    variables=tuple(sorted((k, str(v)) for k, v in (resp.variables or {}).items())),
                )
            )

        return CorpusSnapshot(
            intents=tuple(
                IntentEntry(
                    id=intent.id,  # type: ignore[arg-type]
                    name=intent.name,
                    priority=intent.priority,
                    examples=tuple(examples_by_intent.get(intent.id, [])),  # type: ignore[arg-type]
                    responses=tuple(responses_by_intent.get(intent.id, [])),  # type: ignore[arg-type]
                )
                for intent in intents
            ),
            loaded_at=time.time(),
        )

    # ------------------------------------------------------------------
    # Side effects of matching
    # ------------------------------------------------------------------

    def increment_usage(self, response_id: int) -> None:
        with self._session() as session:
            response = session.get(TrainingResponse, response_id)
            if response is None:
                logger.warning("Usage increment for unknown response {}", response_id)
                return
            response.usage_count += 1
            session.add(response)
            session.commit()

    def get_usage_count(self, response_id: int) -> int:
        with self._session() as session:
            response = session.get(TrainingResponse, response_id)
            return response.usage_count if response else 0

    def record_match(
        self,
        user_input: str,
        intent_id: int,
        confidence: float,
        response_preview: str,
        matched_keywords: list[str],
        context: dict,
    ) -> None:
        """Append one analytics row for a successful match."""
        with self._session() as session:
            session.add(
                MatchAnalytics(
                    user_input=user_input,
                    intent_id=intent_id,
                    confidence=confidence,
                    response_preview=response_preview[:200],
                    matched_keywords=list(matched_keywords),
                    context=context,
                )
            )
            session.commit()

    def match_statistics(self, limit: int = 10) -> list[IntentMatchStats]:
        """Per-intent match counts and average confidence, most matched first."""
        with self._session() as session:
            rows = session.exec(
                select(
                    MatchAnalytics.intent_id,
                    func.count(col(MatchAnalytics.id)),
                    func.avg(MatchAnalytics.confidence),
                )
                .group_by(col(MatchAnalytics.intent_id))
                .order_by(func.count(col(MatchAnalytics.id)).desc(), col(MatchAnalytics.intent_id))
                .limit(limit)
            ).all()
            names = {
                intent.id: intent.name
                for intent in session.exec(
                    select(Intent).where(col(Intent.id).in_([r[0] for r in rows]))
                ).all()
            }
        return [
            IntentMatchStats(
                intent_id=intent_id,
                intent_name=names.get(intent_id, "Unknown"),
                match_count=int(count),
                avg_confidence=float(avg or 0.0),
            )
            for intent_id, count, avg in rows
        ]

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    def upsert_preference(
        self,
        subject_id: str,
        category: str,
        key: str,
        value: str,
        confidence: float,
    ) -> None:
        """Insert or update a preference (unique per subject, category and key)."""
        with self._session() as session:
            existing = session.exec(
                select(UserPreference).where(
                    UserPreference.subject_id == subject_id,
                    UserPreference.category == category,
                    UserPreference.key == key,
                )
            ).first()
            if existing:
                existing.value = value
                existing.confidence = max(confidence, 0.1)
                existing.updated_at = _utcnow()
                session.add(existing)
            else:
                session.add(
                    UserPreference(
                        subject_id=subject_id,
                        category=category,
                        key=key,
                        value=value,
                        confidence=max(confidence, 0.1),
                    )
                )
            session.commit()

    def get_preferences(self, subject_id: str) -> list[UserPreference]:
        with self._session() as session:
            return list(
                session.exec(
                    select(UserPreference)
                    .where(UserPreference.subject_id == subject_id)
                    .order_by(col(UserPreference.category), col(UserPreference.key))
                ).all()
            )

    def get_stats(self) -> dict:
        """Get counts for the corpus tables."""
        with self._session() as session:
            return {
                "total_intents": len(session.exec(select(Intent)).all()),
                "active_intents": len(
                    session.exec(select(Intent).where(col(Intent.is_active).is_(True))).all()
                ),
                "total_examples": len(session.exec(select(TrainingExample)).all()),
                "total_responses": len(session.exec(select(TrainingResponse)).all()),
                "total_matches": len(session.exec(select(MatchAnalytics)).all()),
            }
