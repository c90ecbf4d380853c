"""Content acquisition through the reader proxy."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Mapping

import httpx
from bs4 import BeautifulSoup

from pageqa.http import auth_headers, send
from pageqa.metrics.observability import PipelineMetrics, get_logger
from pageqa.models import ContentType, Document
from pageqa.results import InvalidInputError, StageError, StageResult, UpstreamError

ACCEPTED_SCHEMES = ("http://", "https://")
_NON_CONTENT_TAGS = ["script", "style", "noscript", "template"]


@dataclass(frozen=True)
class AcquisitionConfig:
    """Configuration for the content acquirer."""

    endpoint: str = "https://r.jina.ai"
    auth_token: str | None = None
    timeout_seconds: float = 30.0


def classify_content_type(header: str | None) -> ContentType:
    if not header:
        raise UpstreamError("Response is missing a content-type header")
    lowered = header.lower()
    if "application/json" in lowered:
        return ContentType.JSON
    if "text/html" in lowered:
        return ContentType.HTML
    return ContentType.TEXT


def is_empty_content(payload: Any, text: str) -> bool:
    """Null, blank text and empty JSON objects or arrays carry nothing to answer from."""

    if payload is None:
        return True
    if isinstance(payload, (Mapping, list)) and not payload:
        return True
    return not text.strip()


def extract_body_text(markup: str) -> str:
    """Return the text content of the document body with scripts and styles removed."""

    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup.find_all(_NON_CONTENT_TAGS):
        tag.decompose()
    root = soup.body if soup.body is not None else soup
    return root.get_text().strip()


class ContentAcquirer:
    """Fetches a URL through the reader proxy and normalizes the response to text."""

    def __init__(self, config: AcquisitionConfig | None = None, *, client: httpx.AsyncClient | None = None) -> None:
        self._config = config or AcquisitionConfig()
        self._client = client
        self._logger = get_logger("acquisition")

    async def fetch_document(self, url: str | None) -> StageResult[Document]:
        start = time.perf_counter()
        try:
            document = await self._fetch(url)
        except StageError as exc:
            self._logger.warning("acquisition.failed", url=url, kind=exc.kind.value, detail=str(exc))
            PipelineMetrics.observe_stage("acquire", time.perf_counter() - start, exc.kind.value)
            return StageResult.from_error(exc)
        duration = time.perf_counter() - start
        PipelineMetrics.observe_stage("acquire", duration, "success")
        self._logger.info(
            "acquisition.complete",
            url=url,
            content_type=document.content_type.value,
            characters=len(document.normalized_text),
            duration_seconds=duration,
        )
        return StageResult.success(document)

    async def fetch_content(self, url: str | None) -> Any | None:
        """Return the parsed content for ``url`` or ``None`` when acquisition failed."""

        result = await self.fetch_document(url)
        document = result.unwrap_or_none()
        return document.payload if document is not None else None

    async def _fetch(self, url: str | None) -> Document:
        if not url or not url.lower().startswith(ACCEPTED_SCHEMES):
            raise InvalidInputError(f"Invalid URL: {url!r}")
        self._logger.info("acquisition.start", url=url)
        target = f"{self._config.endpoint.rstrip('/')}/{url}"
        try:
            response = await send(
                self._client,
                "GET",
                target,
                timeout=self._config.timeout_seconds,
                headers=auth_headers(self._config.auth_token),
            )
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise UpstreamError(f"Error fetching content: {exc}") from exc

        content_type = classify_content_type(response.headers.get("content-type"))
        try:
            if content_type is ContentType.JSON:
                payload: Any = response.json()
            elif content_type is ContentType.HTML:
                payload = extract_body_text(response.text)
            else:
                payload = response.text
        except ValueError as exc:
            raise UpstreamError(f"Error parsing {content_type.value} content: {exc}") from exc
        document = Document.from_payload(url, content_type, payload)
        if is_empty_content(payload, document.normalized_text):
            raise UpstreamError(f"Empty {content_type.value} content")
        return document
