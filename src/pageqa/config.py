"""Runtime configuration for the PageQA pipeline."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="pageqa_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"

    # Credentials are passed through verbatim as the Authorization header value
    jina_auth_token: str | None = None
    gemini_api_key: str | None = None

    reader_endpoint: str = "https://r.jina.ai"
    segmenter_endpoint: str = "https://segment.jina.ai/"
    embeddings_endpoint: str = "https://api.jina.ai/v1/embeddings"

    embedding_model: str = "jina-clip-v2"
    generator_model: str = "gemini-1.5-flash"
    generator_temperature: float | None = None

    http_timeout_seconds: float = 30.0
    # None disables the per-stage deadline
    stage_timeout_seconds: float | None = 120.0

    persist_embeddings: bool = False
    chroma_persist_dir: Path = Path("./.chroma")
    chroma_collection: str = "embeddings"
    chroma_host: str | None = None
    chroma_port: int | None = None
    chroma_ssl: bool = False

    # Security
    api_key: str | None = None  # if set, required in X-API-Key header

    log_json: bool = True


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
