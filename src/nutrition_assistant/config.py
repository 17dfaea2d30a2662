"""Configuration for the nutrition assistant using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PACKAGE_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _PACKAGE_DIR.parent.parent  # src/nutrition_assistant/ → project root


class Settings(BaseSettings):
    """All engine settings, loaded from ``NUTRIBOT_*`` environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_prefix="NUTRIBOT_",
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Corpus cache
    # ------------------------------------------------------------------
    cache_ttl_ms: int = 300_000

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------
    min_similarity: float = 0.5
    retrieval_top_k: int = 3
    retrieval_context_chars: int = 1500

    # ------------------------------------------------------------------
    # Cascade thresholds
    # ------------------------------------------------------------------
    high_confidence_threshold: float = 0.6
    learned_min_confidence: float = 0.8
    lexical_min_confidence: float = 0.7
    default_confidence: float = 0.5

    # ------------------------------------------------------------------
    # Input validation
    # ------------------------------------------------------------------
    max_message_length: int = 2000

    # ------------------------------------------------------------------
    # Embedding provider
    # "local" needs no credentials; "azure" calls Azure OpenAI.
    # ------------------------------------------------------------------
    embedding_provider: Literal["local", "azure"] = "local"
    embedding_dimensions: int = 384
    azure_openai_embedding_api_key: str | None = None
    azure_openai_embedding_endpoint: str | None = None
    azure_openai_embedding_api_version: str = "2024-10-21"
    azure_openai_embedding_deployment: str = "text-embedding-3-small"

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    corpus_db_path: Path = _PROJECT_ROOT / "database" / "corpus.sqlite"
    vector_store_path: Path = _PROJECT_ROOT / "database" / "rag-store.json"

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = "INFO"
    log_json: bool = False
    log_file: Path | None = None
    log_rotation: str = "10 MB"
    log_retention: str = "7 days"

    @model_validator(mode="after")
    def _check_thresholds(self) -> "Settings":
        for name in (
            "min_similarity",
            "high_confidence_threshold",
            "learned_min_confidence",
            "lexical_min_confidence",
            "default_confidence",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.cache_ttl_ms < 0:
            raise ValueError("cache_ttl_ms must not be negative")
        return self

    def validate_runtime(self) -> None:
        """Check that the selected embedding provider is usable.

        Call this at startup (not at import time) so that tests can
        override settings before validation runs.
        """
        if self.embedding_provider == "azure":
            if not self.azure_openai_embedding_endpoint:
                raise ValueError(
                    "NUTRIBOT_AZURE_OPENAI_EMBEDDING_ENDPOINT not set. Add it to .env"
                )
            if not self.azure_openai_embedding_api_key:
                raise ValueError(
                    "NUTRIBOT_AZURE_OPENAI_EMBEDDING_API_KEY not set. Add it to .env"
                )


@lru_cache
def get_settings() -> Settings:
    """Return the cached Settings singleton."""
    return Settings()
