"""Workflow definitions and their executions."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Index, Text
from sqlmodel import Column, Field, SQLModel

from src.syncflow.models.base import json_column, utc_now
from src.syncflow.models.enums import ExecutionStatus


class Workflow(SQLModel, table=True):
    """A tenant's sync definition.

    `config` holds `{dateRange, sources: {meta: {enabled}, pos: {enabled}},
    rateLimit: {metaDelayMs, posDelayMs}}`. A null `schedule` means the
    workflow only runs on manual trigger.
    """

    __tablename__ = "workflows"
    __table_args__ = (Index("ix_workflows_tenant_enabled", "tenant_id", "enabled"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(index=True)
    name: str = Field(max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    enabled: bool = Field(default=True)
    schedule: str | None = Field(default=None, max_length=100)
    config: dict[str, Any] = Field(default_factory=dict, sa_column=json_column())
    team_id: UUID | None = Field(default=None, index=True)
    shared_team_ids: list[str] = Field(default_factory=list, sa_column=json_column())
    last_run_at: datetime | None = Field(default=None)
    next_run_at: datetime | None = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class WorkflowExecution(SQLModel, table=True):
    """One run of a workflow over a resolved date range.

    Written only by the execution engine once created; immutable after
    reaching a terminal status.
    """

    __tablename__ = "workflow_executions"
    __table_args__ = (
        Index("ix_workflow_executions_workflow_status", "workflow_id", "status"),
        Index("ix_workflow_executions_tenant_created", "tenant_id", "created_at"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    workflow_id: UUID = Field(foreign_key="workflows.id")
    tenant_id: UUID
    status: str = Field(default=ExecutionStatus.PENDING.value, max_length=20)
    trigger_type: str = Field(max_length=20)
    date_range_since: str | None = Field(default=None, max_length=10)
    date_range_until: str | None = Field(default=None, max_length=10)
    total_days: int = Field(default=0)
    days_processed: int = Field(default=0)
    meta_fetched: int = Field(default=0)
    pos_fetched: int = Field(default=0)
    errors: list[dict[str, Any]] = Field(default_factory=list, sa_column=json_column())
    cancel_requested: bool = Field(default=False)
    queue_job_id: str | None = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)
    duration_ms: int | None = Field(default=None)

    @property
    def status_enum(self) -> ExecutionStatus:
        return ExecutionStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum.is_terminal


class WorkflowExecutionLog(SQLModel, table=True):
    """Event trail of one execution, one row per progress event or error.

    `seq` orders rows within an execution; the engine is the only writer.
    """

    __tablename__ = "workflow_execution_logs"
    __table_args__ = (
        Index("ix_workflow_execution_logs_execution_seq", "execution_id", "seq"),
        Index("ix_workflow_execution_logs_tenant_created", "tenant_id", "created_at"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    execution_id: UUID = Field(foreign_key="workflow_executions.id", ondelete="CASCADE")
    tenant_id: UUID
    seq: int = Field(default=0)
    level: str = Field(default="info", max_length=10)
    event: str = Field(max_length=50)
    message: str = Field(sa_column=Column(Text, nullable=False))
    details: dict[str, Any] = Field(default_factory=dict, sa_column=json_column())
    created_at: datetime = Field(default_factory=utc_now)
