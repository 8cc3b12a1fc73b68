"""Test helper functions for common data creation patterns."""

from datetime import date
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from src.syncflow.api.dependencies.auth import ALL_PERMISSIONS
from src.syncflow.core.exceptions import ProviderError
from src.syncflow.core.security import create_access_token, generate_webhook_key
from src.syncflow.models import (
    Integration,
    MetaAdAccount,
    PosStore,
    WebhookConfig,
    WebhookLog,
    Workflow,
    WorkflowExecution,
)
from tests.factories import (
    IntegrationFactory,
    MetaAdAccountFactory,
    PosStoreFactory,
    WebhookConfigFactory,
    WorkflowFactory,
)


class RecordingDispatcher:
    """Stands in for JobDispatcher: records what would have been queued."""

    def __init__(self) -> None:
        self.executions: list[UUID] = []
        self.webhooks: list[UUID] = []

    async def dispatch_execution(self, execution: WorkflowExecution) -> str:
        self.executions.append(execution.id)
        return f"test:sync-execution-{execution.id}"

    async def dispatch_webhook(self, log: WebhookLog) -> str:
        self.webhooks.append(log.id)
        return f"test:webhook-{log.id}"


def auth_headers(
    tenant_id: UUID,
    permissions: list[str] | None = None,
    team_ids: list[str] | None = None,
    user_id: UUID | None = None,
) -> dict[str, str]:
    """Bearer header for a token in the identity service's format."""
    token = create_access_token(
        user_id or uuid4(),
        tenant_id,
        permissions=permissions if permissions is not None else [ALL_PERMISSIONS],
        team_ids=team_ids,
    )
    return {"Authorization": f"Bearer {token}"}


def workflow_config(
    *,
    meta: bool = False,
    pos: bool = True,
    date_range: dict[str, Any] | None = None,
    meta_delay_ms: int = 0,
    pos_delay_ms: int = 0,
) -> dict[str, Any]:
    """Stored (camelCase) workflow config."""
    return {
        "dateRange": date_range or {"type": "relative", "days": 1},
        "sources": {"meta": {"enabled": meta}, "pos": {"enabled": pos}},
        "rateLimit": {"metaDelayMs": meta_delay_ms, "posDelayMs": pos_delay_ms},
    }


def pos_order(
    order_id: str = "1001",
    shop_id: str = "shop-1",
    *,
    inserted_at: str = "2026-03-10T02:30:00",
    status: int = 1,
    cod: Any = "150000",
    **extra: Any,
) -> dict[str, Any]:
    """A raw Pancake POS order as returned by the API or pushed by webhook."""
    order: dict[str, Any] = {
        "id": order_id,
        "shop_id": shop_id,
        "inserted_at": inserted_at,
        "status": status,
        "status_name": "confirmed",
        "cod": cod,
        "items": [{"product_id": "p-1", "quantity": 2}, {"product_id": "p-2", "quantity": 1}],
        "partner": {"extend_code": "TRK-1"},
        "p_utm_campaign": "spring",
        "p_utm_content": "ad-7",
    }
    order.update(extra)
    return order


def meta_row(ad_id: str = "ad-1", spend: str = "12.50", day: date | None = None, **extra: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "account_id": "act-1",
        "campaign_id": "c-1",
        "campaign_name": "Campaign",
        "adset_id": "as-1",
        "ad_id": ad_id,
        "ad_name": "Ad",
        "spend": spend,
        "clicks": "10",
        "inline_link_clicks": "7",
        "impressions": "1000",
        "actions": [{"action_type": "landing_page_view", "value": "4"}],
        "date_start": (day or date(2026, 3, 10)).isoformat(),
    }
    row.update(extra)
    return row


async def create_workflow(session: AsyncSession, tenant_id: UUID, **kwargs: Any) -> Workflow:
    workflow = WorkflowFactory.build(tenant_id=tenant_id, **kwargs)
    session.add(workflow)
    await session.commit()
    await session.refresh(workflow)
    return workflow


async def create_pos_store(session: AsyncSession, tenant_id: UUID, shop_id: str = "shop-1", **kwargs: Any) -> PosStore:
    store = PosStoreFactory.build(tenant_id=tenant_id, shop_id=shop_id, **kwargs)
    session.add(store)
    await session.commit()
    return store


async def create_meta_integration(
    session: AsyncSession, tenant_id: UUID, account_ids: tuple[str, ...] = ("act-1",)
) -> tuple[Integration, list[MetaAdAccount]]:
    integration = IntegrationFactory.build(tenant_id=tenant_id)
    session.add(integration)
    accounts = [
        MetaAdAccountFactory.build(tenant_id=tenant_id, integration_id=integration.id, account_id=a)
        for a in account_ids
    ]
    session.add_all(accounts)
    await session.commit()
    return integration, accounts


async def create_webhook_config(
    session: AsyncSession, tenant_id: UUID, **kwargs: Any
) -> tuple[WebhookConfig, str]:
    """Enabled config with a fresh key. Returns (config, plaintext key)."""
    plaintext, key_hash, last4 = generate_webhook_key()
    config = WebhookConfigFactory.build(
        tenant_id=tenant_id, api_key_hash=key_hash, api_key_last4=last4, **kwargs
    )
    session.add(config)
    await session.commit()
    await session.refresh(config)
    return config, plaintext


class FakeMeta:
    """Meta provider double: rows per account, optional failing accounts."""

    def __init__(self, rows: dict[str, list[dict[str, Any]]] | None = None, failing: set[str] | None = None):
        self.rows = rows or {}
        self.failing = failing or set()
        self.calls: list[tuple[str, date]] = []

    async def fetch_insights(self, account_id: str, day: date, access_token: str) -> list[dict[str, Any]]:
        self.calls.append((account_id, day))
        if account_id in self.failing:
            raise ProviderError(f"Meta insights fetch failed for account {account_id} (status 400)", 400)
        return self.rows.get(account_id, [])


class FakePos:
    """POS provider double: orders per shop, optional failing shops and a per-call hook."""

    def __init__(
        self,
        orders: dict[str, list[dict[str, Any]]] | None = None,
        failing: set[str] | None = None,
        on_call=None,
    ):
        self.orders = orders or {}
        self.failing = failing or set()
        self.on_call = on_call
        self.calls: list[tuple[str, date]] = []

    async def fetch_orders(self, shop_id: str, api_key: str, day: date) -> list[dict[str, Any]]:
        self.calls.append((shop_id, day))
        if self.on_call is not None:
            await self.on_call(shop_id, day)
        if shop_id in self.failing:
            raise ProviderError("Pancake POS retries exhausted: Pancake POS returned 503", retryable=True)
        return self.orders.get(shop_id, [])


