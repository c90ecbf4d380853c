"""Tests for the segmentation stage."""

from __future__ import annotations

import json

import httpx
import pytest

from fakes import recording_client, segments, unreachable
from pageqa.models import ContentType, Document
from pageqa.results import FailureKind
from pageqa.segmentation import MAX_CHUNK_LENGTH, SegmentationConfig, Segmenter, parse_segmentation


def _segmenter(responder) -> tuple[list[httpx.Request], Segmenter]:
    seen, client = recording_client(responder)
    return seen, Segmenter(SegmentationConfig(auth_token="Bearer seg-token"), client=client)


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [None, "", "   ", "\n\t  \n"])
async def test_blank_text_is_rejected_without_a_call(content) -> None:
    seen, segmenter = _segmenter(segments)

    assert await segmenter.segment_text(content) is None
    result = await segmenter.segment(content)

    assert result.kind is FailureKind.INVALID_INPUT
    assert seen == []


@pytest.mark.asyncio
async def test_request_carries_fixed_options() -> None:
    seen, segmenter = _segmenter(segments)

    payload = await segmenter.segment_text("Hello segmented world")

    assert payload["chunks"] == ["Hello", "segmented world"]
    request = seen[0]
    assert request.method == "POST"
    assert request.headers["Authorization"] == "Bearer seg-token"
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.content) == {
        "content": "Hello segmented world",
        "return_chunks": True,
        "return_tokens": True,
        "max_chunk_length": MAX_CHUNK_LENGTH,
    }
    assert MAX_CHUNK_LENGTH == 1500


@pytest.mark.asyncio
async def test_structured_content_is_serialized_first() -> None:
    seen, segmenter = _segmenter(segments)

    await segmenter.segment({"title": "Doc", "items": [1, 2]})

    assert json.loads(seen[0].content)["content"] == '{"title":"Doc","items":[1,2]}'


@pytest.mark.asyncio
async def test_document_input_uses_normalized_text() -> None:
    seen, segmenter = _segmenter(segments)
    document = Document.from_payload("https://example.com", ContentType.JSON, {"a": "b"})

    result = await segmenter.segment(document)

    assert result.ok
    assert json.loads(seen[0].content)["content"] == '{"a":"b"}'


@pytest.mark.asyncio
async def test_chunks_keep_source_order_and_token_counts() -> None:
    _, segmenter = _segmenter(segments)

    result = await segmenter.segment("alpha beta gamma")

    chunks = result.value.chunks
    assert [chunk.text for chunk in chunks] == ["alpha", "beta gamma"]
    assert [chunk.order for chunk in chunks] == [0, 1]
    assert [chunk.token_count for chunk in chunks] == [1, 2]
    assert result.value.num_tokens == 3
    assert result.value.tokenizer == "cl100k_base"


@pytest.mark.asyncio
async def test_unreachable_service_is_soft_failure() -> None:
    _, segmenter = _segmenter(unreachable)

    assert await segmenter.segment_text("Hello world") is None
    result = await segmenter.segment("Hello world")
    assert result.kind is FailureKind.UPSTREAM_FAILURE


def test_parse_segmentation_without_tokens() -> None:
    segmentation = parse_segmentation({"chunks": ["one", "two"]})

    assert segmentation.texts() == ["one", "two"]
    assert all(chunk.token_count is None for chunk in segmentation.chunks)
    assert segmentation.num_tokens is None


@pytest.mark.asyncio
async def test_malformed_endpoint_is_soft_failure() -> None:
    _, client = recording_client(segments)
    segmenter = Segmenter(SegmentationConfig(endpoint="https://segment.jina.ai/\x01"), client=client)

    assert await segmenter.segment_text("Hello world") is None
    result = await segmenter.segment("Hello world")

    assert result.kind is FailureKind.UPSTREAM_FAILURE
