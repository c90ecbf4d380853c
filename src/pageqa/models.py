"""Shared domain models used across the PageQA pipeline."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class ContentType(str, Enum):
    """Declared content type of an acquired page, reduced to a parsing branch."""

    JSON = "json"
    HTML = "html"
    TEXT = "text"


def to_json(value: Any) -> str:
    """Compact JSON serialization used wherever a value is turned into text."""

    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)


@dataclass(frozen=True)
class Document:
    """Content acquired for a single URL."""

    source_url: str
    content_type: ContentType
    payload: Any
    normalized_text: str

    @classmethod
    def from_payload(cls, source_url: str, content_type: ContentType, payload: Any) -> "Document":
        text = payload if isinstance(payload, str) else to_json(payload)
        return cls(source_url=source_url, content_type=content_type, payload=payload, normalized_text=text)


@dataclass(frozen=True)
class Chunk:
    """Bounded-length slice of document text produced by segmentation."""

    text: str
    order: int
    token_count: int | None = None


@dataclass(frozen=True)
class Segmentation:
    """Ordered chunk set returned by the segmentation service."""

    chunks: tuple[Chunk, ...]
    num_tokens: int | None = None
    tokenizer: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict)

    def texts(self) -> list[str]:
        return [chunk.text for chunk in self.chunks]


@dataclass(frozen=True)
class EmbeddingVector:
    """Vector returned for the input at ``index``."""

    index: int
    values: tuple[float, ...]


@dataclass(frozen=True)
class EmbeddingResponse:
    """Embedding batch aligned 1:1 with the submitted inputs."""

    model: str
    vectors: tuple[EmbeddingVector, ...]
    usage: Mapping[str, Any] = field(default_factory=dict)
    raw: Mapping[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.vectors)


@dataclass(frozen=True)
class Answer:
    """Grounded answer produced by the generative model."""

    text: str
    question: str
    model: str
    latency_ms: float

