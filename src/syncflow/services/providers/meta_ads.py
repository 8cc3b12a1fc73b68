"""Meta Graph API client for daily ad-level insights."""

import json
from datetime import date
from typing import Any
from urllib.parse import parse_qsl, urlsplit, urlunsplit

import httpx

from src.syncflow.core.exceptions import ProviderError
from src.syncflow.services.providers.base import ProviderClient, Sleep

INSIGHT_FIELDS = (
    "account_id,campaign_id,adset_id,ad_id,ad_name,campaign_name,spend,"
    "inline_link_clicks,clicks,impressions,actions,date_start,date_stop,created_time"
)


class MetaAdsProvider(ProviderClient):
    name = "meta"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        graph_url: str,
        api_version: str,
        timezone: str,
        max_rate_limit_retries: int = 3,
        **kwargs: Any,
    ) -> None:
        super().__init__(client, **kwargs)
        self._base = f"{graph_url.rstrip('/')}/{api_version}"
        self._timezone = timezone
        self._max_rate_limit_retries = max_rate_limit_retries

    async def fetch_insights(self, account_id: str, day: date, access_token: str) -> list[dict[str, Any]]:
        """All ad-level insight rows of one account for one day.

        Follows `paging.next`; on 429 waits for Retry-After and retries the
        same page, up to `max_rate_limit_retries` times.
        """
        if not access_token:
            raise ProviderError("Meta integration has no access token")

        url: str | None = f"{self._base}/act_{account_id}/insights"
        params: dict[str, Any] = {
            "level": "ad",
            "time_increment": "1",
            "time_range": json.dumps({"since": day.isoformat(), "until": day.isoformat()}),
            "fields": INSIGHT_FIELDS,
            "timezone": self._timezone,
            "access_token": access_token,
        }
        rows: list[dict[str, Any]] = []
        rate_limited = 0

        while url:
            response = await self._get(url, params)

            if response.status_code == 429:
                rate_limited += 1
                if rate_limited > self._max_rate_limit_retries:
                    raise ProviderError(
                        f"Meta rate limit persisted for account {account_id}",
                        status_code=429,
                        retryable=True,
                    )
                await self._sleep(_retry_after_seconds(response))
                continue

            if response.is_error:
                raise ProviderError(
                    f"Meta insights fetch failed for account {account_id} "
                    f"(status {response.status_code}): {_graph_error(response)}",
                    status_code=response.status_code,
                )

            data = self._json(response)
            page = data.get("data")
            if isinstance(page, list):
                rows.extend(r for r in page if isinstance(r, dict))

            url, params = _next_page(data, access_token)

        return rows


def _retry_after_seconds(response: httpx.Response) -> float:
    try:
        return max(float(response.headers.get("Retry-After", "2")), 1.0)
    except ValueError:
        return 2.0


def _graph_error(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return str(body["error"].get("message") or response.reason_phrase)
    return response.reason_phrase


def _next_page(data: dict[str, Any], access_token: str) -> tuple[str | None, dict[str, Any]]:
    """Split `paging.next` into base URL and params, re-adding the token."""
    paging = data.get("paging")
    nxt = paging.get("next") if isinstance(paging, dict) else None
    if not nxt:
        return None, {}
    parts = urlsplit(nxt)
    params: dict[str, Any] = dict(parse_qsl(parts.query))
    params["access_token"] = access_token
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", "")), params
