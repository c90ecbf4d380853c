"""Tests for grounded answer generation."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.language_models import FakeListChatModel
from langchain_core.messages import AIMessage

from pageqa.models import Chunk, ContentType, Document, Segmentation
from pageqa.results import FailureKind
from pageqa.services.generation import AnswerGenerator, GenerationConfig, message_text, render_prompt


def _segmentation(*texts: str) -> Segmentation:
    return Segmentation(chunks=tuple(Chunk(text=text, order=i) for i, text in enumerate(texts)))


def _recording_model(reply: object = "A grounded answer.") -> MagicMock:
    model = MagicMock()
    model.ainvoke = AsyncMock(return_value=AIMessage(content=reply))
    return model


@pytest.mark.asyncio
async def test_returns_model_text() -> None:
    generator = AnswerGenerator(chat_model=FakeListChatModel(responses=["Paris is the capital of France."]))

    text = await generator.generate_answer(_segmentation("Paris is the capital of France."), "What is the capital?")

    assert text == "Paris is the capital of France."


@pytest.mark.asyncio
async def test_prompt_carries_serialized_chunks_and_question() -> None:
    model = _recording_model()
    generator = AnswerGenerator(GenerationConfig(model="gemini-test"), chat_model=model)

    result = await generator.answer(_segmentation("chunk one", "chunk two"), "What is in the chunks?")

    assert result.ok
    assert result.value.model == "gemini-test"
    prompt = model.ainvoke.await_args.args[0]
    assert '*DOCUMENT:* ["chunk one","chunk two"]' in prompt
    assert "*QUESTION:* What is in the chunks?" in prompt
    assert "2-3 sentences" in prompt
    assert "{document}" not in prompt and "{question}" not in prompt


@pytest.mark.asyncio
async def test_document_is_not_truncated() -> None:
    model = _recording_model()
    long_text = "word " * 2000
    document = Document.from_payload("https://example.com", ContentType.TEXT, long_text)

    await AnswerGenerator(chat_model=model).answer(document, "Summarize")

    assert long_text in model.ainvoke.await_args.args[0]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "document",
    [
        None,
        "",
        "   ",
        [],
        {},
        Segmentation(chunks=()),
        Document.from_payload("https://example.com", ContentType.TEXT, "  "),
    ],
)
async def test_empty_document_never_reaches_the_model(document) -> None:
    model = _recording_model()
    generator = AnswerGenerator(chat_model=model)

    assert await generator.generate_answer(document, "Anything?") is None
    result = await generator.answer(document, "Anything?")

    assert result.kind is FailureKind.INVALID_INPUT
    model.ainvoke.assert_not_called()


@pytest.mark.asyncio
async def test_missing_question_is_invalid_input() -> None:
    model = _recording_model()

    result = await AnswerGenerator(chat_model=model).answer(_segmentation("text"), None)

    assert result.kind is FailureKind.INVALID_INPUT
    model.ainvoke.assert_not_called()


@pytest.mark.asyncio
async def test_model_errors_are_soft_failures() -> None:
    model = MagicMock()
    model.ainvoke = AsyncMock(side_effect=RuntimeError("quota exceeded"))
    generator = AnswerGenerator(chat_model=model)

    assert await generator.generate_answer(_segmentation("text"), "Q?") is None
    result = await generator.answer(_segmentation("text"), "Q?")
    assert result.kind is FailureKind.UPSTREAM_FAILURE
    assert "quota exceeded" in result.detail
    assert model.ainvoke.await_count == 2


@pytest.mark.asyncio
async def test_blank_reply_is_upstream_failure() -> None:
    result = await AnswerGenerator(chat_model=_recording_model("  ")).answer(_segmentation("text"), "Q?")

    assert result.kind is FailureKind.UPSTREAM_FAILURE


def test_message_text_joins_text_parts() -> None:
    message = AIMessage(content=[{"type": "text", "text": "Hello "}, "world", {"type": "image_url", "image_url": "x"}])

    assert message_text(message) == "Hello world"


def test_render_prompt_serializes_plain_strings_as_json() -> None:
    prompt = render_prompt('He said "hi"', "Who spoke?")

    assert '*DOCUMENT:* "He said \\"hi\\""' in prompt
