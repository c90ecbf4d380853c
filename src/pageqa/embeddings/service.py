"""Embedding generation through the remote embeddings service."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import httpx

from pageqa.http import auth_headers, send
from pageqa.metrics.observability import PipelineMetrics, get_logger
from pageqa.models import EmbeddingResponse, EmbeddingVector, to_json
from pageqa.results import InvalidInputError, StageError, StageResult, UpstreamError

MAX_INPUT_CHARS = 1000


@dataclass(frozen=True)
class EmbedderConfig:
    """Configuration for the embedder."""

    endpoint: str = "https://api.jina.ai/v1/embeddings"
    model: str = "jina-clip-v2"
    auth_token: str | None = None
    timeout_seconds: float = 30.0


def truncate(text: str) -> str:
    return text[:MAX_INPUT_CHARS]


def _text_field(item: Any) -> str | None:
    if isinstance(item, Mapping):
        value = item.get("text")
    else:
        value = getattr(item, "text", None)
    if not value:
        return None
    return value if isinstance(value, str) else str(value)


def normalize_input(item: Any) -> str:
    """Coerce one embedding input to a string of at most ``MAX_INPUT_CHARS`` characters.

    Strings are used as-is, objects carrying a non-empty ``text`` field use that
    field, and anything else is serialized to JSON. The checks run in that order.
    """

    if isinstance(item, str):
        return truncate(item)
    text = _text_field(item)
    if text is not None:
        return truncate(text)
    return truncate(to_json(item))


def build_request(model: str, texts: Sequence[str]) -> dict[str, Any]:
    return {
        "model": model,
        "normalized": True,
        "embedding_type": "float",
        "input": [{"text": text} for text in texts],
    }


def parse_embeddings(payload: Mapping[str, Any], *, expected: int, model: str) -> EmbeddingResponse:
    data = payload.get("data")
    if not isinstance(data, list):
        raise UpstreamError("Embedding response is missing data")
    if len(data) != expected:
        raise UpstreamError(f"Embedding service returned {len(data)} vectors for {expected} inputs")
    items = list(data)
    if all(isinstance(item, Mapping) and isinstance(item.get("index"), int) for item in items):
        items.sort(key=lambda item: item["index"])
    vectors: list[EmbeddingVector] = []
    for position, item in enumerate(items):
        values = item.get("embedding") if isinstance(item, Mapping) else None
        if not isinstance(values, list):
            raise UpstreamError(f"Embedding {position} is not a float vector")
        vectors.append(EmbeddingVector(index=position, values=tuple(float(v) for v in values)))
    return EmbeddingResponse(
        model=str(payload.get("model") or model),
        vectors=tuple(vectors),
        usage=dict(payload.get("usage") or {}),
        raw=dict(payload),
    )


class Embedder:
    """Embeds a batch of inputs; the whole batch succeeds or the stage fails."""

    def __init__(self, config: EmbedderConfig | None = None, *, client: httpx.AsyncClient | None = None) -> None:
        self._config = config or EmbedderConfig()
        self._client = client
        self._logger = get_logger("embeddings")

    async def embed(self, inputs: Sequence[Any] | None) -> StageResult[EmbeddingResponse]:
        start = time.perf_counter()
        try:
            response = await self._embed(inputs)
        except StageError as exc:
            self._logger.warning("embeddings.failed", kind=exc.kind.value, detail=str(exc))
            PipelineMetrics.observe_stage("embed", time.perf_counter() - start, exc.kind.value)
            return StageResult.from_error(exc)
        duration = time.perf_counter() - start
        PipelineMetrics.observe_stage("embed", duration, "success")
        self._logger.info(
            "embeddings.complete",
            model=response.model,
            vector_count=len(response),
            duration_seconds=duration,
        )
        return StageResult.success(response)

    async def generate_embeddings(self, inputs: Sequence[Any] | None) -> Mapping[str, Any] | None:
        """Return the raw embeddings payload, or ``None`` when the stage failed."""

        result = await self.embed(inputs)
        response = result.unwrap_or_none()
        return response.raw if response is not None else None

    async def _embed(self, inputs: Sequence[Any] | None) -> EmbeddingResponse:
        if inputs is None or isinstance(inputs, (str, bytes, Mapping)) or len(inputs) == 0:
            raise InvalidInputError("No inputs provided for embedding generation")
        texts = [normalize_input(item) for item in inputs]
        self._logger.info("embeddings.start", input_count=len(texts), model=self._config.model)
        try:
            response = await send(
                self._client,
                "POST",
                self._config.endpoint,
                timeout=self._config.timeout_seconds,
                headers=auth_headers(self._config.auth_token, json_body=True),
                json=build_request(self._config.model, texts),
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise UpstreamError(f"Error generating embeddings: {exc}") from exc
        except ValueError as exc:
            raise UpstreamError(f"Embedding service returned invalid JSON: {exc}") from exc
        if not isinstance(payload, Mapping):
            raise UpstreamError("Embedding service returned a non-object payload")
        return parse_embeddings(payload, expected=len(texts), model=self._config.model)
