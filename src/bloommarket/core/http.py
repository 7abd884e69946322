"""
HTTP helpers.

Centralizes the small amount of HTTP logic used by the marketplace API client.

Design goals:
- Small surface area (GET JSON, POST JSON), async so location/fetch waits never block.
- Deterministic defaults (timeout + User-Agent, optional bearer token).
- Every failure (transport error, non-2xx, undecodable body) surfaces as `FetchFailed`
  so callers have one recoverable error to handle.
"""

from __future__ import annotations

from typing import Any

import httpx

from bloommarket.core.errors import FetchFailed

DEFAULT_USER_AGENT = "bloommarket/0.1.0 (+https://local)"


def build_headers(*, token: str | None = None, extra: dict[str, str] | None = None) -> dict[str, str]:
    headers = {"User-Agent": DEFAULT_USER_AGENT, "Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    if extra:
        headers.update(extra)
    return headers


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    json_body: Any | None = None,
    headers: dict[str, str] | None = None,
) -> Any:
    """Send a request and return the decoded JSON body (None for empty 2xx bodies).

    Raises:
        FetchFailed: On transport errors, non-2xx status codes, or invalid JSON.
    """
    try:
        resp = await client.request(method, url, json=json_body, headers=headers)
        resp.raise_for_status()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        raise FetchFailed(f"{method} {url} returned {status}", status_code=status) from exc
    except httpx.HTTPError as exc:
        raise FetchFailed(f"{method} {url} failed: {exc}") from exc

    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError as exc:
        raise FetchFailed(f"{method} {url} returned a non-JSON body") from exc
