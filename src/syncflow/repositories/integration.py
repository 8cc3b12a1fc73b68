"""Read access to provider credentials, ad accounts and POS stores."""

from typing import Any
from uuid import UUID

from sqlmodel import select

from src.syncflow.models import Integration, IntegrationProvider, MetaAdAccount, PosStore
from src.syncflow.repositories.base import BaseRepository


class IntegrationRepository(BaseRepository[Integration]):
    model = Integration

    async def get_credentials(
        self, tenant_id: UUID, provider: IntegrationProvider
    ) -> dict[str, Any] | None:
        """Credentials of the tenant's enabled integration for a provider."""
        result = await self.session.execute(
            select(Integration)
            .where(
                Integration.tenant_id == tenant_id,
                Integration.provider == provider.value,
                Integration.enabled.is_(True),  # type: ignore[attr-defined]
            )
            .order_by(Integration.created_at)
            .limit(1)
        )
        integration = result.scalar_one_or_none()
        return dict(integration.credentials) if integration else None

    async def list_ad_accounts(self, tenant_id: UUID) -> list[MetaAdAccount]:
        result = await self.session.execute(
            select(MetaAdAccount)
            .where(
                MetaAdAccount.tenant_id == tenant_id,
                MetaAdAccount.enabled.is_(True),  # type: ignore[attr-defined]
            )
            .order_by(MetaAdAccount.account_id)
        )
        return list(result.scalars().all())

    async def list_pos_stores(self, tenant_id: UUID) -> list[PosStore]:
        result = await self.session.execute(
            select(PosStore)
            .where(
                PosStore.tenant_id == tenant_id,
                PosStore.enabled.is_(True),  # type: ignore[attr-defined]
            )
            .order_by(PosStore.shop_id)
        )
        return list(result.scalars().all())

    async def get_store_by_shop(self, tenant_id: UUID, shop_id: str) -> PosStore | None:
        result = await self.session.execute(
            select(PosStore).where(PosStore.tenant_id == tenant_id, PosStore.shop_id == shop_id)
        )
        return result.scalar_one_or_none()
