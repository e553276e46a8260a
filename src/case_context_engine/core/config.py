"""
Engine configuration.

Loaded from environment variables once at startup and passed explicitly
into the engine, rather than read by each client at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from case_context_engine.core.errors import ConfigurationError


def env_bool(name: str, default: bool = False) -> bool:
    """True for "true", "1" or "yes" (any case); `default` when unset."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes")


@dataclass
class EngineConfig:
    """Configuration for the case context engine.

    Environment Variables:
        OPENAI_API_KEY: Key for embeddings and chat completions
        EMBEDDING_MODEL: Embedding model (default: text-embedding-3-small)
        EMBEDDING_DIM: Embedding dimensions (default: 1536)
        CHAT_MODEL: Generative model (default: gpt-4-turbo-preview)
        CHAT_TEMPERATURE: Sampling temperature (default: 0.7)
        USE_MOCK_EMBEDDINGS: Use the deterministic test embeddings (default: false)
        USE_POSTGRES: Use Postgres stores instead of in-memory (default: false)
        DATABASE_URL: Postgres connection string
        UPSTREAM_TIMEOUT_S: Timeout per upstream call (default: 30)
        RETRY_BACKOFF_S: Delay before the single retry (default: 0.5)
        MAX_CONCURRENT_GENERATIONS: In-flight generation bound (default: 4)
    """

    openai_api_key: str | None = None
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = 1536
    chat_model: str = "gpt-4-turbo-preview"
    chat_temperature: float = 0.7
    use_mock_embeddings: bool = False
    use_postgres: bool = False
    database_url: str | None = None
    upstream_timeout_s: float = 30.0
    retry_backoff_s: float = 0.5
    max_concurrent_generations: int = 4

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load config from environment variables."""
        return cls(
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            embedding_model=os.environ.get("EMBEDDING_MODEL", "text-embedding-3-small"),
            embedding_dim=int(os.environ.get("EMBEDDING_DIM", "1536")),
            chat_model=os.environ.get("CHAT_MODEL", "gpt-4-turbo-preview"),
            chat_temperature=float(os.environ.get("CHAT_TEMPERATURE", "0.7")),
            use_mock_embeddings=env_bool("USE_MOCK_EMBEDDINGS"),
            use_postgres=env_bool("USE_POSTGRES"),
            database_url=os.environ.get("DATABASE_URL") or None,
            upstream_timeout_s=float(os.environ.get("UPSTREAM_TIMEOUT_S", "30")),
            retry_backoff_s=float(os.environ.get("RETRY_BACKOFF_S", "0.5")),
            max_concurrent_generations=int(os.environ.get("MAX_CONCURRENT_GENERATIONS", "4")),
        )

    def validate(self, require_generation: bool = True) -> None:
        """
        Fail fast on missing credentials or endpoints.

        Args:
            require_generation: Whether a generative model key is needed.
                The ingestion-only path with mock embeddings does not need one.

        Raises:
            ConfigurationError: listing every missing setting
        """
        missing = []
        needs_key = require_generation or not self.use_mock_embeddings
        if needs_key and not self.openai_api_key:
            missing.append("OPENAI_API_KEY")
        if self.use_postgres and not self.database_url:
            missing.append("DATABASE_URL")
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )
        if self.max_concurrent_generations < 1:
            raise ConfigurationError("MAX_CONCURRENT_GENERATIONS must be at least 1")
