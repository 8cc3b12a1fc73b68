"""Destination tables for fetched provider data."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Numeric, UniqueConstraint
from sqlmodel import Column, Field, SQLModel

from src.syncflow.models.base import json_column, utc_now


class PosOrder(SQLModel, table=True):
    """A point-of-sale order, keyed by (tenant, shop, provider order id).

    `content_hash` fingerprints the fields we persist so a replayed
    payload can be recognised as unchanged.
    """

    __tablename__ = "pos_orders"
    __table_args__ = (
        UniqueConstraint("tenant_id", "shop_id", "pos_order_id", name="uq_pos_orders_tenant_shop_order"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(index=True)
    shop_id: str = Field(max_length=64)
    pos_order_id: str = Field(max_length=64)
    inserted_at: datetime | None = Field(default=None)
    date_local: str | None = Field(default=None, max_length=10, index=True)
    status: int | None = Field(default=None)
    status_name: str | None = Field(default=None, max_length=100)
    cod: Decimal | None = Field(default=None, sa_column=Column(Numeric(12, 2), nullable=True))
    total_quantity: int = Field(default=0)
    tracking: str | None = Field(default=None, max_length=200)
    p_utm_campaign: str | None = Field(default=None, max_length=255)
    p_utm_content: str | None = Field(default=None, max_length=255)
    data: dict[str, Any] = Field(default_factory=dict, sa_column=json_column())
    content_hash: str = Field(max_length=64)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class MetaAdInsight(SQLModel, table=True):
    """Daily ad-level insight row."""

    __tablename__ = "meta_ad_insights"
    __table_args__ = (
        UniqueConstraint("tenant_id", "account_id", "ad_id", "insight_date", name="uq_meta_ad_insights_ad_day"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(index=True)
    account_id: str = Field(max_length=64)
    campaign_id: str | None = Field(default=None, max_length=64)
    campaign_name: str = Field(default="", max_length=500)
    adset_id: str | None = Field(default=None, max_length=64)
    ad_id: str = Field(max_length=64)
    ad_name: str = Field(default="", max_length=500)
    insight_date: date
    spend: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(12, 2), nullable=False))
    clicks: int = Field(default=0)
    link_clicks: int = Field(default=0)
    impressions: int = Field(default=0)
    leads: int = Field(default=0)
    status: str | None = Field(default=None, max_length=50)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
