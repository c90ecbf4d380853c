"""FastAPI application exposing the PageQA pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from pageqa.api.schemas import AnswerRequest, AnswerResponse, StageReport
from pageqa.config import Settings, get_settings
from pageqa.metrics.observability import bind_correlation_id, clear_correlation_id, configure_logging, get_logger
from pageqa.results import FailureKind
from pageqa.services.pipeline import PipelineOrchestrator, PipelineOutcome, build_pipeline


@dataclass(frozen=True)
class AppDependencies:
    pipeline: PipelineOrchestrator


def _silent(_: str) -> None:
    return None


def _no_prompt(_: str) -> str:
    return ""


def _build_dependencies(settings: Settings) -> AppDependencies:
    return AppDependencies(pipeline=build_pipeline(settings, echo=_silent, prompt=_no_prompt))


def _status_for(outcome: PipelineOutcome) -> int:
    if outcome.succeeded:
        return status.HTTP_200_OK
    if outcome.failure is FailureKind.INVALID_INPUT:
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_502_BAD_GATEWAY


def _to_response(outcome: PipelineOutcome) -> AnswerResponse:
    document = outcome.document
    return AnswerResponse(
        state=outcome.state.value,
        summary=outcome.summary,
        answer=outcome.answer.text if outcome.answer else None,
        failed_stage=outcome.failed_stage.value if outcome.failed_stage else None,
        failure=outcome.failure.value if outcome.failure else None,
        content_type=document.content_type.value if document else None,
        chunk_count=len(outcome.segmentation.chunks) if outcome.segmentation else 0,
        embedded=outcome.embeddings is not None,
        stages={
            stage.value: StageReport(ok=result.ok, kind=result.kind.value if result.kind else None, detail=result.detail)
            for stage, result in outcome.results.items()
        },
    )


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(json_logs=settings.log_json)
    deps = dependencies or _build_dependencies(settings)

    logger = get_logger("api")
    app = FastAPI(title="PageQA API", version="0.1.0")
    app.state.dependencies = deps

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    def require_api_key(request: Request) -> None:
        expected = settings.api_key
        if not expected:
            return
        provided = request.headers.get("X-API-Key")
        if provided != expected:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error", "correlation_id": correlation_id},
        )

    def get_pipeline(request: Request) -> PipelineOrchestrator:
        return request.app.state.dependencies.pipeline

    @app.post("/answers", response_model=AnswerResponse)
    async def answer_question(
        payload: AnswerRequest,
        pipeline: PipelineOrchestrator = Depends(get_pipeline),
        _auth: None = Depends(require_api_key),
    ) -> JSONResponse:
        outcome = await pipeline.run(payload.url, payload.question)
        body = _to_response(outcome)
        logger.info("answers.complete", state=body.state, failed_stage=body.failed_stage)
        return JSONResponse(status_code=_status_for(outcome), content=body.model_dump())

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        from pageqa import __version__

        return {"status": "ok", "version": __version__, "environment": settings.environment}

    @app.head("/healthz")
    async def healthcheck_head() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    return app


app = create_app()
