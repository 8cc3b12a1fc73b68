"""Pancake POS client for per-shop daily order listings."""

from datetime import date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

import httpx
from tenacity import AsyncRetrying, RetryError, retry_if_exception, stop_after_attempt, wait_chain, wait_fixed

from src.syncflow.core.exceptions import ProviderError
from src.syncflow.services.providers.base import ProviderClient


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.retryable


def day_window(day: date, tz: str) -> tuple[int, int]:
    """Epoch seconds of the first and last second of `day` in `tz`."""
    zone = ZoneInfo(tz)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = start + timedelta(days=1) - timedelta(seconds=1)
    return int(start.timestamp()), int(end.timestamp())


class PancakePosProvider(ProviderClient):
    name = "pos"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_url: str,
        timezone: str,
        page_size: int = 100,
        retry_backoff_ms: list[int] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(client, **kwargs)
        self._api_url = api_url.rstrip("/")
        self._timezone = timezone
        self._page_size = page_size
        self._backoff = [ms / 1000 for ms in (retry_backoff_ms or [2000, 5000, 10000])]

    async def fetch_orders(self, shop_id: str, api_key: str, day: date) -> list[dict[str, Any]]:
        """Every order inserted in the shop during `day` (tenant-local), all pages."""
        if not api_key:
            raise ProviderError(f"POS store {shop_id} has no API key")

        start, end = day_window(day, self._timezone)
        url = f"{self._api_url}/shops/{shop_id}/orders"
        orders: list[dict[str, Any]] = []
        page = 1
        total_pages = 1

        while page <= total_pages:
            params = {
                "api_key": api_key,
                "updateStatus": "inserted_at",
                "startDateTime": str(start),
                "endDateTime": str(end),
                "page_number": str(page),
                "page_size": str(self._page_size),
            }
            data = await self._get_page(url, params)
            batch = data.get("orders")
            if not isinstance(batch, list):
                batch = data.get("data") if isinstance(data.get("data"), list) else []
            orders.extend(o for o in batch if isinstance(o, dict))

            current = _as_int(data.get("page_number"), page)
            total_pages = _as_int(data.get("total_pages"), total_pages)
            page = current + 1

        return orders

    async def _get_page(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        """One page, retried on 429/5xx/transport errors with the configured backoff."""
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            wait=wait_chain(*(wait_fixed(s) for s in self._backoff)),
            stop=stop_after_attempt(len(self._backoff) + 1),
            sleep=self._sleep,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._get(url, params)
                    if response.status_code == 429 or response.status_code >= 500:
                        raise ProviderError(
                            f"Pancake POS returned {response.status_code}",
                            status_code=response.status_code,
                            retryable=True,
                        )
                    if response.is_error:
                        raise ProviderError(
                            f"Pancake POS orders fetch failed ({response.status_code}): "
                            f"{response.text[:200]}",
                            status_code=response.status_code,
                        )
                    return self._json(response)
        except RetryError as e:
            last = e.last_attempt.exception()
            raise ProviderError(f"Pancake POS retries exhausted: {last}", retryable=True) from e
        raise ProviderError("Pancake POS request was not attempted")


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
