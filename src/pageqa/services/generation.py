"""Grounded answer generation with a chat model."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.prompts import PromptTemplate

from pageqa.metrics.observability import PipelineMetrics, get_logger
from pageqa.models import Answer, Chunk, Document, Segmentation, to_json
from pageqa.results import InvalidInputError, StageError, StageResult, UpstreamError

ANSWER_TEMPLATE = """You are a knowledgeable assistant that answers user questions accurately and concisely using a retrieved document.
*DOCUMENT:* {document}
---*QUESTION:* {question}
---*INSTRUCTIONS:*
- Answer the user's question using the information from the document above
- Ensure your response is factual, specific, and relevant to the question
- Keep your answer clear and concise, ideally within 2-3 sentences"""

ANSWER_PROMPT = PromptTemplate.from_template(ANSWER_TEMPLATE)


@dataclass(frozen=True)
class GenerationConfig:
    """Configuration for answer generation."""

    model: str = "gemini-1.5-flash"
    api_key: str | None = None
    temperature: float | None = None


def _is_empty(document: Any) -> bool:
    if document is None:
        return True
    if isinstance(document, Document):
        return not document.normalized_text.strip()
    if isinstance(document, Segmentation):
        return not document.chunks
    if isinstance(document, str):
        return not document.strip()
    if isinstance(document, (Sequence, Mapping)):
        return len(document) == 0
    return False


def serialize_document(document: Any) -> str:
    """Render the document for the prompt; the text is never truncated here."""

    if isinstance(document, Document):
        return to_json(document.normalized_text)
    if isinstance(document, Segmentation):
        return to_json(document.texts())
    if isinstance(document, (list, tuple)) and all(isinstance(item, Chunk) for item in document):
        return to_json([chunk.text for chunk in document])
    return to_json(document)


def render_prompt(document: Any, question: str) -> str:
    return ANSWER_PROMPT.format(document=serialize_document(document), question=question)


def message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, Mapping) and part.get("type", "text") == "text":
            parts.append(str(part.get("text", "")))
    return "".join(parts)


class AnswerGenerator:
    """Fills the answer prompt and submits it to the chat model once."""

    def __init__(self, config: GenerationConfig | None = None, *, chat_model: BaseChatModel | None = None) -> None:
        self._config = config or GenerationConfig()
        self._chat_model = chat_model
        self._logger = get_logger("generation")

    @property
    def model_name(self) -> str:
        return self._config.model

    async def answer(self, document: Any, question: str | None) -> StageResult[Answer]:
        start = time.perf_counter()
        try:
            text = await self._generate(document, question)
        except StageError as exc:
            self._logger.warning("generation.failed", kind=exc.kind.value, detail=str(exc))
            PipelineMetrics.observe_stage("answer", time.perf_counter() - start, exc.kind.value)
            return StageResult.from_error(exc)
        duration = time.perf_counter() - start
        PipelineMetrics.observe_stage("answer", duration, "success")
        self._logger.info("generation.complete", model=self._config.model, duration_seconds=duration)
        return StageResult.success(
            Answer(text=text, question=question or "", model=self._config.model, latency_ms=duration * 1000),
        )

    async def generate_answer(self, document: Any, question: str | None) -> str | None:
        """Return the answer text, or ``None`` when generation failed."""

        result = await self.answer(document, question)
        answer = result.unwrap_or_none()
        return answer.text if answer is not None else None

    async def _generate(self, document: Any, question: str | None) -> str:
        if _is_empty(document):
            raise InvalidInputError("No document content to answer from")
        if question is None:
            raise InvalidInputError("No question provided")
        prompt = render_prompt(document, question)
        self._logger.info("generation.start", model=self._config.model, prompt_characters=len(prompt))
        try:
            message = await self._model().ainvoke(prompt)
        except Exception as exc:
            raise UpstreamError(f"Error generating response: {exc}") from exc
        text = message_text(message).strip()
        if not text:
            raise UpstreamError("Model returned an empty response")
        return text

    def _model(self) -> BaseChatModel:
        if self._chat_model is None:
            from langchain_google_genai import ChatGoogleGenerativeAI

            kwargs: dict[str, Any] = {"model": self._config.model}
            if self._config.api_key:
                kwargs["google_api_key"] = self._config.api_key
            if self._config.temperature is not None:
                kwargs["temperature"] = self._config.temperature
            self._chat_model = ChatGoogleGenerativeAI(**kwargs)
        return self._chat_model
