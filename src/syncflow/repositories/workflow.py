"""Repository for Workflow definitions."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import or_
from sqlmodel import select

from src.syncflow.models import Workflow
from src.syncflow.repositories.base import BaseRepository


class WorkflowRepository(BaseRepository[Workflow]):
    model = Workflow

    async def list_for_tenant(
        self, tenant_id: UUID, team_ids: list[str] | None = None
    ) -> list[Workflow]:
        """List a tenant's workflows visible to the given teams.

        `team_ids=None` means no team restriction. Otherwise a workflow is
        visible when it belongs to no team, to one of the teams, or is
        shared with one of them.
        """
        result = await self.session.execute(
            select(Workflow)
            .where(Workflow.tenant_id == tenant_id)
            .order_by(Workflow.created_at.desc())  # type: ignore[attr-defined]
        )
        workflows = list(result.scalars().all())
        if team_ids is None:
            return workflows
        allowed = set(team_ids)
        return [
            wf
            for wf in workflows
            if wf.team_id is None
            or str(wf.team_id) in allowed
            or allowed.intersection(wf.shared_team_ids or [])
        ]

    async def get_for_update(self, workflow_id: UUID) -> Workflow | None:
        """Load and row-lock a workflow for the rest of the transaction."""
        result = await self.session.execute(
            select(Workflow).where(Workflow.id == workflow_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def lock_due(self, now: datetime, limit: int = 50) -> list[Workflow]:
        """Lock enabled scheduled workflows whose next run has arrived.

        SKIP LOCKED lets several scheduler instances poll concurrently
        without firing the same workflow twice.
        """
        result = await self.session.execute(
            select(Workflow)
            .where(
                Workflow.enabled.is_(True),  # type: ignore[attr-defined]
                Workflow.schedule.is_not(None),  # type: ignore[union-attr]
                or_(
                    Workflow.next_run_at.is_(None),  # type: ignore[union-attr]
                    Workflow.next_run_at <= now,  # type: ignore[operator]
                ),
            )
            .order_by(Workflow.next_run_at)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return list(result.scalars().all())
