"""Repositories for synced provider data."""

from datetime import date
from uuid import UUID

from sqlalchemy import func
from sqlmodel import select

from src.syncflow.models import MetaAdInsight, PosOrder
from src.syncflow.repositories.base import BaseRepository


class PosOrderRepository(BaseRepository[PosOrder]):
    model = PosOrder

    async def get_by_key(self, tenant_id: UUID, shop_id: str, pos_order_id: str) -> PosOrder | None:
        result = await self.session.execute(
            select(PosOrder).where(
                PosOrder.tenant_id == tenant_id,
                PosOrder.shop_id == shop_id,
                PosOrder.pos_order_id == pos_order_id,
            )
        )
        return result.scalar_one_or_none()

    async def count_for_tenant(self, tenant_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(PosOrder).where(PosOrder.tenant_id == tenant_id)
        )
        return int(result.scalar_one())


class MetaAdInsightRepository(BaseRepository[MetaAdInsight]):
    model = MetaAdInsight

    async def get_by_key(
        self, tenant_id: UUID, account_id: str, ad_id: str, insight_date: date
    ) -> MetaAdInsight | None:
        result = await self.session.execute(
            select(MetaAdInsight).where(
                MetaAdInsight.tenant_id == tenant_id,
                MetaAdInsight.account_id == account_id,
                MetaAdInsight.ad_id == ad_id,
                MetaAdInsight.insight_date == insight_date,
            )
        )
        return result.scalar_one_or_none()
