"""Pydantic models for the PageQA API."""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, Field


class AnswerRequest(BaseModel):
    url: str = Field(..., description="Page to fetch through the reader proxy")
    question: str = Field(..., description="Question to answer from the page content")


class StageReport(BaseModel):
    ok: bool
    kind: Optional[str] = None
    detail: str = ""


class AnswerResponse(BaseModel):
    state: str = Field(..., description="Terminal pipeline state (done or failed)")
    summary: str
    answer: Optional[str] = None
    failed_stage: Optional[str] = None
    failure: Optional[str] = None
    content_type: Optional[str] = None
    chunk_count: int = Field(default=0, ge=0)
    embedded: bool = False
    stages: Dict[str, StageReport] = Field(default_factory=dict)
