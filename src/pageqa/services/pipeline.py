"""Four-stage pipeline orchestration: acquire, segment, embed, answer."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Sequence

import httpx
from langchain_core.language_models.chat_models import BaseChatModel

from pageqa.acquisition import AcquisitionConfig, ContentAcquirer
from pageqa.config import Settings
from pageqa.embeddings import ChromaEmbeddingStore, Embedder, EmbedderConfig
from pageqa.metrics.observability import PipelineMetrics, get_logger
from pageqa.models import Answer, Document, EmbeddingResponse, Segmentation
from pageqa.results import FailureKind, StageResult
from pageqa.segmentation import SegmentationConfig, Segmenter
from pageqa.services.generation import AnswerGenerator, GenerationConfig

QUESTION_PROMPT = "Ask a question about the fetched content: "


class PipelineState(str, Enum):
    START = "start"
    CONTENT_FETCHED = "content_fetched"
    SEGMENTED = "segmented"
    EMBEDDED = "embedded"
    ANSWERED = "answered"
    DONE = "done"
    FAILED = "failed"


_ORDER = (
    PipelineState.START,
    PipelineState.CONTENT_FETCHED,
    PipelineState.SEGMENTED,
    PipelineState.EMBEDDED,
    PipelineState.ANSWERED,
    PipelineState.DONE,
)


class Stage(str, Enum):
    ACQUIRE = "acquire"
    SEGMENT = "segment"
    EMBED = "embed"
    ANSWER = "answer"

    @property
    def step(self) -> int:
        return list(Stage).index(self) + 1

    @property
    def heading(self) -> str:
        return _STAGE_TEXT[self][0]

    @property
    def description(self) -> str:
        return _STAGE_TEXT[self][1]

    @property
    def failure_line(self) -> str:
        return _STAGE_TEXT[self][2]


_STAGE_TEXT = {
    Stage.ACQUIRE: ("Fetching Content", "content fetching", "Content fetching failed. Exiting."),
    Stage.SEGMENT: ("Segmenting Text", "text segmentation", "Text segmentation failed. Exiting."),
    Stage.EMBED: (
        "Generating Embeddings",
        "embedding generation",
        "Embedding generation failed. Continuing without embeddings.",
    ),
    Stage.ANSWER: ("Generating AI Response", "AI response generation", "AI response generation failed."),
}


class InvalidTransition(RuntimeError):
    """Raised when the pipeline would move backwards or leave a terminal state."""


@dataclass(frozen=True)
class PipelineConfig:
    """Run-level policy for the orchestrator."""

    stage_timeout_seconds: float | None = 120.0
    persist_embeddings: bool = False


@dataclass(frozen=True)
class PipelineOutcome:
    """Terminal report of one pipeline run."""

    state: PipelineState
    history: tuple[PipelineState, ...]
    results: Mapping[Stage, StageResult[Any]]
    summary: str
    document: Document | None = None
    segmentation: Segmentation | None = None
    embeddings: EmbeddingResponse | None = None
    answer: Answer | None = None
    failed_stage: Stage | None = None
    failure: FailureKind | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.DONE


@dataclass
class _RunRecord:
    state: PipelineState = PipelineState.START
    history: list[PipelineState] = field(default_factory=lambda: [PipelineState.START])
    results: dict[Stage, StageResult[Any]] = field(default_factory=dict)
    document: Document | None = None
    segmentation: Segmentation | None = None
    embeddings: EmbeddingResponse | None = None
    answer: Answer | None = None

    def advance(self, target: PipelineState) -> None:
        if self.state in (PipelineState.DONE, PipelineState.FAILED):
            raise InvalidTransition(f"Run already finished in state {self.state.value}")
        if target is not PipelineState.FAILED and _ORDER.index(target) != _ORDER.index(self.state) + 1:
            raise InvalidTransition(f"Cannot move from {self.state.value} to {target.value}")
        self.state = target
        self.history.append(target)


class PipelineOrchestrator:
    """Drives the stages in fixed order and short-circuits on a failed stage.

    A failed embedding stage does not stop the run: embeddings are a side
    artifact and the answer is generated from the segmented text regardless.
    """

    def __init__(
        self,
        acquirer: ContentAcquirer,
        segmenter: Segmenter,
        embedder: Embedder,
        generator: AnswerGenerator,
        *,
        config: PipelineConfig | None = None,
        store: ChromaEmbeddingStore | None = None,
        echo: Callable[[str], None] = print,
        prompt: Callable[[str], str] = input,
    ) -> None:
        self._acquirer = acquirer
        self._segmenter = segmenter
        self._embedder = embedder
        self._generator = generator
        self._config = config or PipelineConfig()
        self._store = store
        self._echo = echo
        self._prompt = prompt
        self._logger = get_logger("pipeline")

    async def run(
        self,
        url: str | None,
        question: str | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> PipelineOutcome:
        record = _RunRecord()

        fetched = await self._run_stage(Stage.ACQUIRE, self._acquirer.fetch_document(url), record, cancel_event)
        if not fetched.ok:
            return self._fail(record, Stage.ACQUIRE, fetched)
        record.document = fetched.value
        record.advance(PipelineState.CONTENT_FETCHED)

        segmented = await self._run_stage(Stage.SEGMENT, self._segmenter.segment(record.document), record, cancel_event)
        if not segmented.ok:
            return self._fail(record, Stage.SEGMENT, segmented)
        record.segmentation = segmented.value
        record.advance(PipelineState.SEGMENTED)

        inputs = self._embedding_inputs(record.segmentation)
        embedded = await self._run_stage(Stage.EMBED, self._embedder.embed(inputs), record, cancel_event)
        if embedded.kind is FailureKind.ABORTED:
            return self._fail(record, Stage.EMBED, embedded)
        if embedded.ok:
            record.embeddings = embedded.value
            await self._persist(record)
        else:
            self._echo(Stage.EMBED.failure_line)
            self._logger.warning("pipeline.embeddings_skipped", kind=embedded.kind.value, detail=embedded.detail)
        record.advance(PipelineState.EMBEDDED)

        self._echo(self._header(Stage.ANSWER))
        if question is None:
            question = await asyncio.to_thread(self._prompt, QUESTION_PROMPT)
        answered = await self._run_stage(
            Stage.ANSWER,
            self._generator.answer(record.segmentation, question),
            record,
            cancel_event,
            announce=False,
        )
        if not answered.ok:
            return self._fail(record, Stage.ANSWER, answered)
        record.answer = answered.value
        record.advance(PipelineState.ANSWERED)
        return self._finish(record)

    async def _run_stage(
        self,
        stage: Stage,
        call: Awaitable[StageResult[Any]],
        record: _RunRecord,
        cancel_event: asyncio.Event | None,
        *,
        announce: bool = True,
    ) -> StageResult[Any]:
        if announce:
            self._echo(self._header(stage))
        if cancel_event is not None and cancel_event.is_set():
            if asyncio.iscoroutine(call):
                call.close()
            result: StageResult[Any] = StageResult.aborted(f"Cancelled before {stage.description}")
        else:
            timeout = self._config.stage_timeout_seconds
            try:
                result = await asyncio.wait_for(self._guard(stage, call, cancel_event), timeout=timeout)
            except asyncio.TimeoutError:
                result = StageResult.timed_out(f"{stage.description} exceeded {timeout} seconds")
        record.results[stage] = result
        return result

    @staticmethod
    async def _guard(
        stage: Stage,
        call: Awaitable[StageResult[Any]],
        cancel_event: asyncio.Event | None,
    ) -> StageResult[Any]:
        if cancel_event is None:
            return await call
        stage_task = asyncio.ensure_future(call)
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({stage_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            pending = [task for task in (stage_task, cancel_task) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        if stage_task in done:
            return stage_task.result()
        return StageResult.aborted(f"Cancelled during {stage.description}")

    @staticmethod
    def _embedding_inputs(segmentation: Segmentation) -> Sequence[Any]:
        if segmentation.chunks:
            return list(segmentation.chunks)
        return [segmentation.raw]

    async def _persist(self, record: _RunRecord) -> None:
        if self._store is None or not self._config.persist_embeddings:
            return
        try:
            ids = await asyncio.to_thread(self._store.add, record.document, record.segmentation, record.embeddings)
        except Exception as exc:
            self._logger.warning("pipeline.persist_failed", detail=str(exc))
            return
        self._logger.info("pipeline.persisted", collection=self._store.name, record_count=len(ids))

    @staticmethod
    def _header(stage: Stage) -> str:
        return f"\n--- Step {stage.step}: {stage.heading} ---"

    def _fail(self, record: _RunRecord, stage: Stage, result: StageResult[Any]) -> PipelineOutcome:
        record.advance(PipelineState.FAILED)
        summary = f"Workflow encountered an error during {stage.description}."
        self._echo(stage.failure_line)
        self._echo(f"\n{summary}")
        self._logger.warning(
            "pipeline.stage_failed",
            stage=stage.value,
            kind=result.kind.value if result.kind else None,
            detail=result.detail,
        )
        PipelineMetrics.observe_run(PipelineState.FAILED.value)
        return self._outcome(record, summary, failed_stage=stage, failure=result.kind)

    def _finish(self, record: _RunRecord) -> PipelineOutcome:
        record.advance(PipelineState.DONE)
        summary = "Workflow completed successfully!"
        self._echo("\n--- Answer ---")
        self._echo(record.answer.text)
        self._echo(f"\n{summary}")
        self._logger.info(
            "pipeline.complete",
            url=record.document.source_url,
            chunk_count=len(record.segmentation.chunks),
            embedded=record.embeddings is not None,
        )
        PipelineMetrics.observe_run(PipelineState.DONE.value)
        return self._outcome(record, summary)

    @staticmethod
    def _outcome(
        record: _RunRecord,
        summary: str,
        *,
        failed_stage: Stage | None = None,
        failure: FailureKind | None = None,
    ) -> PipelineOutcome:
        return PipelineOutcome(
            state=record.state,
            history=tuple(record.history),
            results=dict(record.results),
            summary=summary,
            document=record.document,
            segmentation=record.segmentation,
            embeddings=record.embeddings,
            answer=record.answer,
            failed_stage=failed_stage,
            failure=failure,
        )


def build_pipeline(
    settings: Settings,
    *,
    client: httpx.AsyncClient | None = None,
    chat_model: BaseChatModel | None = None,
    store: ChromaEmbeddingStore | None = None,
    echo: Callable[[str], None] = print,
    prompt: Callable[[str], str] = input,
) -> PipelineOrchestrator:
    """Resolve settings once into per-stage configuration and wire the stages."""

    timeout = settings.http_timeout_seconds
    acquirer = ContentAcquirer(
        AcquisitionConfig(endpoint=settings.reader_endpoint, auth_token=settings.jina_auth_token, timeout_seconds=timeout),
        client=client,
    )
    segmenter = Segmenter(
        SegmentationConfig(
            endpoint=settings.segmenter_endpoint,
            auth_token=settings.jina_auth_token,
            timeout_seconds=timeout,
        ),
        client=client,
    )
    embedder = Embedder(
        EmbedderConfig(
            endpoint=settings.embeddings_endpoint,
            model=settings.embedding_model,
            auth_token=settings.jina_auth_token,
            timeout_seconds=timeout,
        ),
        client=client,
    )
    generator = AnswerGenerator(
        GenerationConfig(
            model=settings.generator_model,
            api_key=settings.gemini_api_key,
            temperature=settings.generator_temperature,
        ),
        chat_model=chat_model,
    )
    if store is None and settings.persist_embeddings:
        store = ChromaEmbeddingStore.connect(settings)
    return PipelineOrchestrator(
        acquirer,
        segmenter,
        embedder,
        generator,
        config=PipelineConfig(
            stage_timeout_seconds=settings.stage_timeout_seconds,
            persist_embeddings=settings.persist_embeddings,
        ),
        store=store,
        echo=echo,
        prompt=prompt,
    )
