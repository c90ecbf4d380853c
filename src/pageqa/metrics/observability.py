"""Observability helpers for PageQA."""

from __future__ import annotations

import logging

import structlog
from prometheus_client import Counter, Histogram

_logger_configured = False


def configure_logging(level: int = logging.INFO, *, json_logs: bool = True) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    logging.basicConfig(level=level, format="%(message)s")
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = "pageqa") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


class PipelineMetrics:
    """Prometheus metrics for pipeline stages."""

    stage_latency = Histogram(
        "pageqa_stage_duration_seconds",
        "Time spent in each pipeline stage.",
        ["stage"],
        buckets=(0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    )
    stage_outcomes = Counter(
        "pageqa_stage_outcomes_total",
        "Stage results by outcome.",
        ["stage", "outcome"],
    )
    chunk_count = Histogram(
        "pageqa_chunk_count",
        "Chunks produced per segmented document.",
        buckets=(0, 1, 5, 10, 20, 40, 80, 160),
    )
    pipeline_runs = Counter(
        "pageqa_pipeline_runs_total",
        "Completed pipeline runs by terminal state.",
        ["state"],
    )

    @classmethod
    def observe_stage(cls, stage: str, duration_seconds: float, outcome: str) -> None:
        cls.stage_latency.labels(stage=stage).observe(duration_seconds)
        cls.stage_outcomes.labels(stage=stage, outcome=outcome).inc()

    @classmethod
    def observe_segmentation(cls, chunk_count: int) -> None:
        cls.chunk_count.observe(chunk_count)

    @classmethod
    def observe_run(cls, state: str) -> None:
        cls.pipeline_runs.labels(state=state).inc()


__all__ = [
    "PipelineMetrics",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_logger",
]
