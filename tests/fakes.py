"""Recording fakes for the remote services used by the pipeline."""

from __future__ import annotations

import json
from typing import Callable, Mapping

import httpx

READER_HOST = "r.jina.ai"
SEGMENTER_HOST = "segment.jina.ai"
EMBEDDINGS_HOST = "api.jina.ai"

HTML_PAGE = (
    "<html><head><title>Article</title><script>track('view')</script></head>"
    "<body>Hello world</body></html>"
)


def html_page(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, headers={"content-type": "text/html; charset=utf-8"}, text=HTML_PAGE)


def segments(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    words = body["content"].split()
    chunks = [" ".join(words[:1]), " ".join(words[1:])] if len(words) > 1 else [body["content"]]
    return httpx.Response(
        200,
        json={
            "num_tokens": len(words),
            "tokenizer": "cl100k_base",
            "num_chunks": len(chunks),
            "chunks": chunks,
            "tokens": [[[word, [index]] for index, word in enumerate(chunk.split())] for chunk in chunks],
        },
    )


def embeddings(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    data = [
        {"object": "embedding", "index": index, "embedding": [float(index), 0.5, 0.25]}
        for index, _ in enumerate(body["input"])
    ]
    return httpx.Response(
        200,
        json={"model": body["model"], "object": "list", "usage": {"total_tokens": 7}, "data": data},
    )


def unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def server_error(request: httpx.Request) -> httpx.Response:
    return httpx.Response(500, json={"detail": "boom"})


class ServiceRouter:
    """Routes requests by host and records every request it sees."""

    def __init__(self, overrides: Mapping[str, Callable] | None = None) -> None:
        self.routes: dict[str, Callable] = {
            READER_HOST: html_page,
            SEGMENTER_HOST: segments,
            EMBEDDINGS_HOST: embeddings,
        }
        self.routes.update(overrides or {})
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        return self.routes[request.url.host](request)

    @property
    def hosts(self) -> list[str]:
        return [request.url.host for request in self.requests]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def recording_client(responder: Callable) -> tuple[list[httpx.Request], httpx.AsyncClient]:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request):
        seen.append(request)
        return responder(request)

    return seen, httpx.AsyncClient(transport=httpx.MockTransport(handler))
