"""Workflow configuration, request and response schemas.

Workflow config is persisted in the camelCase shape the dashboard reads
(`dateRange`, `rateLimit.metaDelayMs`, ...); `by_alias=True` dumps produce it.
"""

from datetime import date, datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DateRangeSpec(CamelModel):
    """Declarative range, resolved to concrete days at execution time.

    - rolling: the single day `offsetDays` before today
    - relative: the last `days` days, ending today
    - absolute: every day in [since, until]
    """

    type: Literal["rolling", "relative", "absolute"]
    offset_days: int | None = Field(default=None, ge=0)
    days: int | None = Field(default=None, ge=1)
    since: date | None = None
    until: date | None = None

    @model_validator(mode="after")
    def check_required_fields(self) -> "DateRangeSpec":
        if self.type == "rolling" and self.offset_days is None:
            self.offset_days = 0
        if self.type == "relative" and self.days is None:
            raise ValueError("relative date range requires 'days'")
        if self.type == "absolute" and (self.since is None or self.until is None):
            raise ValueError("absolute date range requires 'since' and 'until'")
        return self


class SourceToggle(CamelModel):
    enabled: bool = False
    # Legacy per-source range, read only when the workflow has no dateRange
    date_range: DateRangeSpec | None = None


class SourcesConfig(CamelModel):
    meta: SourceToggle = Field(default_factory=SourceToggle)
    pos: SourceToggle = Field(default_factory=SourceToggle)


class RateLimitConfig(CamelModel):
    meta_delay_ms: int | None = Field(default=None, ge=0, le=600_000)
    pos_delay_ms: int | None = Field(default=None, ge=0, le=600_000)


class WorkflowConfig(CamelModel):
    date_range: DateRangeSpec | None = None
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)

    def effective_date_range(self) -> DateRangeSpec:
        """Workflow-level range, else a legacy per-source one, else today only."""
        if self.date_range is not None:
            return self.date_range
        for toggle in (self.sources.meta, self.sources.pos):
            if toggle.date_range is not None:
                return toggle.date_range
        return DateRangeSpec(type="relative", days=1)

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class WorkflowCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    enabled: bool = True
    schedule: str | None = Field(default=None, max_length=100)
    config: WorkflowConfig
    team_id: UUID | None = None
    shared_team_ids: list[UUID] = Field(default_factory=list)


class WorkflowUpdate(BaseModel):
    """Partial update. `schedule` may be set to null to make the workflow manual-only."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    enabled: bool | None = None
    schedule: str | None = Field(default=None, max_length=100)
    config: WorkflowConfig | None = None
    team_id: UUID | None = None
    shared_team_ids: list[UUID] | None = None


class FriendlyScheduleRead(BaseModel):
    unit: Literal["minutes", "hours", "days"]
    every: int
    at_minute: int | None = None
    at_hour: int | None = None


class ScheduleDescription(BaseModel):
    cron: str
    friendly: FriendlyScheduleRead | None = Field(
        default=None, description="Null when the cron string is not one of the simple shapes."
    )


class WorkflowRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    name: str
    description: str | None
    enabled: bool
    schedule: str | None
    schedule_friendly: FriendlyScheduleRead | None = None
    config: dict[str, Any]
    team_id: UUID | None
    shared_team_ids: list[str]
    last_run_at: datetime | None
    next_run_at: datetime | None
    created_at: datetime
    updated_at: datetime


class TriggerRequest(BaseModel):
    """Optional one-off window overriding the workflow's configured range."""

    since: date | None = None
    until: date | None = None

    @model_validator(mode="after")
    def check_pair(self) -> "TriggerRequest":
        if (self.since is None) != (self.until is None):
            raise ValueError("'since' and 'until' must be provided together")
        return self


class ExecutionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    workflow_id: UUID
    tenant_id: UUID
    status: str
    trigger_type: str
    date_range_since: str | None
    date_range_until: str | None
    total_days: int
    days_processed: int
    meta_fetched: int
    pos_fetched: int
    errors: list[dict[str, Any]]
    cancel_requested: bool
    created_at: datetime
    started_at: datetime | None
    completed_at: datetime | None
    duration_ms: int | None


class ExecutionLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    execution_id: UUID
    seq: int
    level: str
    event: str
    message: str
    details: dict[str, Any]
    created_at: datetime
