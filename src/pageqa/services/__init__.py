"""Service layer orchestrations for PageQA."""

from .generation import AnswerGenerator, GenerationConfig
from .pipeline import (
    PipelineConfig,
    PipelineOrchestrator,
    PipelineOutcome,
    PipelineState,
    Stage,
    build_pipeline,
)

__all__ = [
    "AnswerGenerator",
    "GenerationConfig",
    "PipelineConfig",
    "PipelineOrchestrator",
    "PipelineOutcome",
    "PipelineState",
    "Stage",
    "build_pipeline",
]
