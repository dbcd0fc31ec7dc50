"""JSON-over-HTTP helper with a small bounded retry for provider calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_RETRIES = 2
DEFAULT_BACKOFF_SECONDS = 0.3


class HttpError(Exception):
    """Non-2xx response from an upstream API."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}")


async def _send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None,
    params: dict[str, Any] | None,
    data: dict[str, Any] | None,
    json_body: Any,
    timeout: float,
) -> httpx.Response:
    return await client.request(
        method,
        url,
        headers=headers,
        params=params,
        data=data,
        json=json_body,
        timeout=timeout,
    )


async def request_json(
    url: str,
    method: str = "GET",
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    data: dict[str, Any] | None = None,
    json_body: Any = None,
    timeout: float = DEFAULT_TIMEOUT,
    retries: int = DEFAULT_RETRIES,
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    client: httpx.AsyncClient | None = None,
) -> Any:
    """Send a request and decode the JSON body.

    5xx responses and transport errors are retried ``retries`` times with a
    linear backoff of ``backoff_seconds * (attempt + 1)``. Other non-2xx
    responses raise :class:`HttpError` immediately.

    Pass ``client`` to reuse a connection pool (or a mock transport in tests);
    otherwise a short-lived client is opened per call.
    """
    for attempt in range(retries + 1):
        try:
            if client is not None:
                response = await _send(
                    client, method, url,
                    headers=headers, params=params, data=data, json_body=json_body, timeout=timeout,
                )
            else:
                async with httpx.AsyncClient() as own_client:
                    response = await _send(
                        own_client, method, url,
                        headers=headers, params=params, data=data, json_body=json_body, timeout=timeout,
                    )
        except httpx.TransportError as exc:
            if attempt >= retries:
                raise
            logger.warning("HTTP %s %s failed (attempt %d): %s", method, url, attempt + 1, exc)
            await asyncio.sleep(backoff_seconds * (attempt + 1))
            continue

        if response.is_success:
            if not response.content:
                return None
            return response.json()

        if response.status_code >= 500 and attempt < retries:
            logger.warning(
                "HTTP %s %s returned %s (attempt %d), retrying",
                method, url, response.status_code, attempt + 1,
            )
            await asyncio.sleep(backoff_seconds * (attempt + 1))
            continue

        raise HttpError(response.status_code, response.text)

    raise RuntimeError("HTTP retry limit reached")
