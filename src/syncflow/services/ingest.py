"""Normalization and upsert of provider records into the destination tables.

Shared by the execution engine (bulk daily fetches) and the webhook
processor (pushed orders). Both paths key rows the same way, so replaying
a day or a webhook never duplicates data.
"""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.syncflow.core.logging import get_logger
from src.syncflow.models import MetaAdInsight, PosOrder, UpsertStatus
from src.syncflow.models.base import utc_now
from src.syncflow.repositories import MetaAdInsightRepository, PosOrderRepository

logger = get_logger(__name__)


class OrderRejected(ValueError):
    """Order payload is missing fields needed to store it."""


@dataclass
class NormalizedOrder:
    shop_id: str
    pos_order_id: str
    inserted_at: datetime | None
    date_local: str | None
    status: int | None
    status_name: str | None
    cod: Decimal | None
    total_quantity: int
    tracking: str | None
    p_utm_campaign: str | None
    p_utm_content: str | None
    data: dict[str, Any]
    content_hash: str = ""
    warnings: list[str] = field(default_factory=list)

    def columns(self) -> dict[str, Any]:
        return {
            "inserted_at": self.inserted_at,
            "date_local": self.date_local,
            "status": self.status,
            "status_name": self.status_name,
            "cod": self.cod,
            "total_quantity": self.total_quantity,
            "tracking": self.tracking,
            "p_utm_campaign": self.p_utm_campaign,
            "p_utm_content": self.p_utm_content,
            "data": self.data,
            "content_hash": self.content_hash,
        }


def _text(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _int(value: Any, default: int | None = None) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def order_identity(raw: dict[str, Any]) -> tuple[str | None, str | None]:
    """(shop_id, order_id) of a raw POS order, accepting both key spellings."""
    return (
        _text(raw.get("shop_id", raw.get("shopId"))),
        _text(raw.get("id", raw.get("order_id"))),
    )


def skip_reason(raw: dict[str, Any]) -> str | None:
    """Why an order is deliberately not stored, or None to store it."""
    if _int(raw.get("status")) == 0 and raw.get("shopify_abandon_checkout_id"):
        return "Abandoned checkout"
    source = _text(raw.get("order_sources_name")) or ""
    if source.lower() == "tiktok":
        return "TikTok orders are not synced"
    items = raw.get("items")
    if not isinstance(items, list) or not any(
        isinstance(item, dict) and item.get("product_id") for item in items
    ):
        return "Order has no product items"
    return None


def _parse_inserted_at(value: Any) -> datetime:
    """Provider timestamps are UTC; offsets are honoured when present."""
    if not isinstance(value, str) or not value.strip():
        raise OrderRejected("missing inserted_at")
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as e:
        raise OrderRejected(f"invalid inserted_at {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _content_hash(columns: dict[str, Any]) -> str:
    encoded = json.dumps(columns, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(encoded.encode()).hexdigest()


def normalize_order(raw: dict[str, Any], tz: str = "Asia/Manila") -> NormalizedOrder:
    """Map a raw Pancake order onto the stored columns.

    Raises:
        OrderRejected: no shop/order id or an unusable inserted_at
    """
    shop_id, order_id = order_identity(raw)
    if not shop_id or not order_id:
        raise OrderRejected("order is missing id or shop_id")

    inserted = _parse_inserted_at(raw.get("inserted_at"))
    warnings: list[str] = []

    cod: Decimal | None = None
    if raw.get("cod") not in (None, ""):
        try:
            cod = Decimal(str(raw["cod"])).quantize(Decimal("0.01"))
        except InvalidOperation:
            warnings.append(f"Unparseable cod value {raw['cod']!r}")

    items = raw.get("items") if isinstance(raw.get("items"), list) else []
    quantity = sum(_int(item.get("quantity"), 0) or 0 for item in items if isinstance(item, dict))

    partner = raw.get("partner")
    tracking = None
    if isinstance(partner, dict):
        tracking = _text(partner.get("extend_code") or partner.get("extendCode"))

    order = NormalizedOrder(
        shop_id=shop_id,
        pos_order_id=order_id,
        inserted_at=inserted.replace(tzinfo=None),
        date_local=inserted.astimezone(ZoneInfo(tz)).date().isoformat(),
        status=_int(raw.get("status")),
        status_name=_text(raw.get("status_name")),
        cod=cod,
        total_quantity=quantity,
        tracking=tracking,
        p_utm_campaign=_text(raw.get("p_utm_campaign")),
        p_utm_content=_text(raw.get("p_utm_content")),
        data=raw,
        warnings=warnings,
    )
    hashed = order.columns()
    hashed.pop("content_hash")
    order.content_hash = _content_hash(hashed)
    return order


class PosOrderIngestor:
    """Upserts POS orders keyed by (tenant, shop, order id)."""

    def __init__(self, session: AsyncSession, tz: str = "Asia/Manila"):
        self.session = session
        self.tz = tz
        self.orders = PosOrderRepository(session)

    async def upsert(self, tenant_id: UUID, order: NormalizedOrder) -> UpsertStatus:
        """Insert or update one normalized order (no commit).

        Returns SKIPPED when the stored row already has the same content hash.
        The insert runs in a savepoint: when a concurrent writer stored the
        same key first, the conflict is undone and the order is compared
        against that row instead, leaving the rest of the transaction intact.
        """
        existing = await self.orders.get_by_key(tenant_id, order.shop_id, order.pos_order_id)
        if existing is None:
            try:
                async with self.session.begin_nested():
                    self.orders.add(
                        PosOrder(
                            tenant_id=tenant_id,
                            shop_id=order.shop_id,
                            pos_order_id=order.pos_order_id,
                            **order.columns(),
                        )
                    )
                return UpsertStatus.CREATED
            except IntegrityError:
                existing = await self.orders.get_by_key(tenant_id, order.shop_id, order.pos_order_id)
                if existing is None:
                    raise
                logger.info(
                    "POS order inserted concurrently", shop_id=order.shop_id, order_id=order.pos_order_id
                )

        if existing.content_hash == order.content_hash:
            return UpsertStatus.SKIPPED

        for key, value in order.columns().items():
            setattr(existing, key, value)
        existing.updated_at = utc_now()
        await self.session.flush()
        return UpsertStatus.UPDATED

    async def ingest_fetched(self, tenant_id: UUID, raw_orders: list[dict[str, Any]]) -> int:
        """Store a day's fetched orders; returns how many were created or updated.

        Orders that are skipped or rejected are logged and left out.
        """
        stored = 0
        for raw in raw_orders:
            if skip_reason(raw):
                continue
            try:
                order = normalize_order(raw, self.tz)
            except OrderRejected as e:
                logger.warning("Dropping POS order", reason=str(e), order_id=order_identity(raw)[1])
                continue
            status = await self.upsert(tenant_id, order)
            if status in (UpsertStatus.CREATED, UpsertStatus.UPDATED):
                stored += 1
        return stored


def leads_from_actions(actions: Any) -> int:
    """Landing page views reported in a Meta `actions` list."""
    if not isinstance(actions, list):
        return 0
    for action in actions:
        if isinstance(action, dict) and action.get("action_type") == "landing_page_view":
            return _int(action.get("value"), 0) or 0
    return 0


def _spend(value: Any) -> Decimal:
    try:
        return Decimal(str(value or "0")).quantize(Decimal("0.01"))
    except InvalidOperation:
        return Decimal("0")


class MetaInsightIngestor:
    """Upserts daily ad insights keyed by (tenant, account, ad, date)."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.insights = MetaAdInsightRepository(session)

    async def ingest_fetched(
        self, tenant_id: UUID, account_id: str, rows: list[dict[str, Any]], day: date
    ) -> int:
        """Store rows with positive spend; returns the number stored."""
        stored = 0
        for raw in rows:
            ad_id = _text(raw.get("ad_id"))
            spend = _spend(raw.get("spend"))
            if not ad_id or spend <= 0:
                continue
            try:
                insight_date = date.fromisoformat(str(raw.get("date_start")))
            except ValueError:
                insight_date = day

            values: dict[str, Any] = {
                "campaign_id": _text(raw.get("campaign_id")),
                "campaign_name": raw.get("campaign_name") or "",
                "adset_id": _text(raw.get("adset_id")),
                "ad_name": raw.get("ad_name") or "",
                "spend": spend,
                "clicks": _int(raw.get("clicks"), 0),
                "link_clicks": _int(raw.get("inline_link_clicks"), 0),
                "impressions": _int(raw.get("impressions"), 0),
                "leads": leads_from_actions(raw.get("actions")),
                "status": _text(raw.get("status")),
            }

            existing = await self.insights.get_by_key(tenant_id, account_id, ad_id, insight_date)
            if existing is None:
                self.insights.add(
                    MetaAdInsight(
                        tenant_id=tenant_id,
                        account_id=account_id,
                        ad_id=ad_id,
                        insight_date=insight_date,
                        **values,
                    )
                )
            else:
                for key, value in values.items():
                    setattr(existing, key, value)
                existing.updated_at = utc_now()
            await self.session.flush()
            stored += 1
        return stored
