"""Shared plumbing for outbound provider clients."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from src.syncflow.core.exceptions import ProviderError

Sleep = Callable[[float], Awaitable[None]]


def build_http_client(timeout: float, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """HTTP client used for provider and relay calls.

    Every request carries a timeout; a timeout surfaces as a ProviderError
    like any other failed call.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)),
        limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
        headers={"Accept": "application/json", "User-Agent": "syncflow/0.1"},
        transport=transport,
    )


class ProviderClient:
    """Base for provider clients: owns the httpx client and the sleep hook."""

    name = "provider"

    def __init__(self, client: httpx.AsyncClient, sleep: Sleep = asyncio.sleep) -> None:
        self._client = client
        self._sleep = sleep

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        try:
            return await self._client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise ProviderError(f"{self.name} request timed out", retryable=True) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.name} request failed: {e}", retryable=True) from e

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                f"{self.name} returned a malformed response", status_code=response.status_code
            ) from e
        if not isinstance(data, dict):
            raise ProviderError(
                f"{self.name} returned an unexpected payload", status_code=response.status_code
            )
        return data
