"""Embedding stage and storage."""

from .service import MAX_INPUT_CHARS, Embedder, EmbedderConfig, normalize_input
from .store import ChromaEmbeddingStore

__all__ = [
    "MAX_INPUT_CHARS",
    "ChromaEmbeddingStore",
    "Embedder",
    "EmbedderConfig",
    "normalize_input",
]
