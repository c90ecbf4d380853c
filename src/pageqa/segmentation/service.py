"""Text segmentation through the remote segmenter service."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import httpx

from pageqa.http import auth_headers, send
from pageqa.metrics.observability import PipelineMetrics, get_logger
from pageqa.models import Chunk, Document, Segmentation, to_json
from pageqa.results import InvalidInputError, StageError, StageResult, UpstreamError

# Fixed for every request, not configurable per call
MAX_CHUNK_LENGTH = 1500


@dataclass(frozen=True)
class SegmentationConfig:
    """Configuration for the segmenter."""

    endpoint: str = "https://segment.jina.ai/"
    auth_token: str | None = None
    timeout_seconds: float = 30.0


def content_to_text(content: Any) -> str:
    if isinstance(content, Document):
        return content.normalized_text
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return to_json(content)


def build_request(text: str) -> dict[str, Any]:
    return {
        "content": text,
        "return_chunks": True,
        "return_tokens": True,
        "max_chunk_length": MAX_CHUNK_LENGTH,
    }


def parse_segmentation(payload: Mapping[str, Any]) -> Segmentation:
    raw_chunks = payload.get("chunks") or []
    if not isinstance(raw_chunks, list):
        raise UpstreamError("Segmenter returned malformed chunks")
    tokens = payload.get("tokens")
    aligned_tokens: Sequence[Any] | None = None
    if isinstance(tokens, list) and len(tokens) == len(raw_chunks):
        aligned_tokens = tokens
    chunks = []
    for order, text in enumerate(raw_chunks):
        token_count = None
        if aligned_tokens is not None and isinstance(aligned_tokens[order], list):
            token_count = len(aligned_tokens[order])
        chunks.append(Chunk(text=str(text), order=order, token_count=token_count))
    num_tokens = payload.get("num_tokens")
    return Segmentation(
        chunks=tuple(chunks),
        num_tokens=int(num_tokens) if isinstance(num_tokens, (int, float)) else None,
        tokenizer=payload.get("tokenizer"),
        raw=dict(payload),
    )


class Segmenter:
    """Splits text into chunks of at most ``MAX_CHUNK_LENGTH`` characters."""

    def __init__(self, config: SegmentationConfig | None = None, *, client: httpx.AsyncClient | None = None) -> None:
        self._config = config or SegmentationConfig()
        self._client = client
        self._logger = get_logger("segmentation")

    async def segment(self, content: Any) -> StageResult[Segmentation]:
        start = time.perf_counter()
        try:
            segmentation = await self._segment(content)
        except StageError as exc:
            self._logger.warning("segmentation.failed", kind=exc.kind.value, detail=str(exc))
            PipelineMetrics.observe_stage("segment", time.perf_counter() - start, exc.kind.value)
            return StageResult.from_error(exc)
        duration = time.perf_counter() - start
        PipelineMetrics.observe_stage("segment", duration, "success")
        PipelineMetrics.observe_segmentation(len(segmentation.chunks))
        self._logger.info(
            "segmentation.complete",
            chunk_count=len(segmentation.chunks),
            num_tokens=segmentation.num_tokens,
            duration_seconds=duration,
        )
        return StageResult.success(segmentation)

    async def segment_text(self, content: Any) -> Mapping[str, Any] | None:
        """Return the raw segmenter payload, or ``None`` when the stage failed."""

        result = await self.segment(content)
        segmentation = result.unwrap_or_none()
        return segmentation.raw if segmentation is not None else None

    async def _segment(self, content: Any) -> Segmentation:
        text = content_to_text(content)
        if not text.strip():
            raise InvalidInputError("No text provided")
        self._logger.info("segmentation.start", characters=len(text))
        try:
            response = await send(
                self._client,
                "POST",
                self._config.endpoint,
                timeout=self._config.timeout_seconds,
                headers=auth_headers(self._config.auth_token, json_body=True),
                json=build_request(text),
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise UpstreamError(f"Error segmenting text: {exc}") from exc
        except ValueError as exc:
            raise UpstreamError(f"Segmenter returned invalid JSON: {exc}") from exc
        if not isinstance(payload, Mapping):
            raise UpstreamError("Segmenter returned a non-object payload")
        return parse_segmentation(payload)
