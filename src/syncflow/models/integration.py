"""Provider credentials and the accounts/stores a sync iterates over.

These rows are managed by the integrations admin surface; the pipeline
only reads them.
"""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from src.syncflow.models.base import json_column, utc_now


class Integration(SQLModel, table=True):
    __tablename__ = "integrations"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(index=True)
    provider: str = Field(max_length=30)  # IntegrationProvider
    name: str = Field(max_length=200)
    credentials: dict[str, Any] = Field(default_factory=dict, sa_column=json_column())
    enabled: bool = Field(default=True)
    last_sync_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class MetaAdAccount(SQLModel, table=True):
    __tablename__ = "meta_ad_accounts"
    __table_args__ = (UniqueConstraint("tenant_id", "account_id", name="uq_meta_ad_accounts_tenant_account"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(index=True)
    integration_id: UUID | None = Field(default=None, foreign_key="integrations.id")
    account_id: str = Field(max_length=64)
    name: str = Field(max_length=200)
    enabled: bool = Field(default=True)
    last_sync_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)


class PosStore(SQLModel, table=True):
    __tablename__ = "pos_stores"
    __table_args__ = (UniqueConstraint("tenant_id", "shop_id", name="uq_pos_stores_tenant_shop"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(index=True)
    shop_id: str = Field(max_length=64)
    name: str = Field(max_length=200)
    api_key: str = Field(max_length=500)
    enabled: bool = Field(default=True)
    team_id: UUID | None = Field(default=None)
    last_sync_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
