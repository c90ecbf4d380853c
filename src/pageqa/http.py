"""Thin wrapper over httpx shared by the service stages."""

from __future__ import annotations

from typing import Any, Mapping

import httpx


def auth_headers(token: str | None, *, json_body: bool = False) -> dict[str, str]:
    headers: dict[str, str] = {}
    if token:
        headers["Authorization"] = token
    if json_body:
        headers["Content-Type"] = "application/json"
    return headers


async def send(
    client: httpx.AsyncClient | None,
    method: str,
    url: str,
    *,
    timeout: float,
    headers: Mapping[str, str] | None = None,
    json: Any = None,
) -> httpx.Response:
    """Issue one request, using ``client`` when given or a short-lived client otherwise."""

    if client is not None:
        return await client.request(method, url, headers=headers, json=json, timeout=timeout)
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as owned:
        return await owned.request(method, url, headers=headers, json=json)
