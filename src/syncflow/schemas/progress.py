"""Live progress snapshot sent to WebSocket subscribers."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from src.syncflow.models.enums import ExecutionStatus
from src.syncflow.schemas.workflow import CamelModel

ProgressEvent = Literal["started", "progress", "date_completed", "cancelled", "finished"]


class ProgressCounter(BaseModel):
    current: int = 0
    total: int = 0


class ProgressSnapshot(CamelModel):
    """Point-in-time view of a running execution.

    `progress` counts provider units (one per ad account or POS store per
    day); `metaTotal`/`posTotal` are the unit counts per day, null when the
    source is disabled.
    """

    execution_id: UUID
    progress: ProgressCounter = Field(default_factory=ProgressCounter)
    meta_processed: int = 0
    meta_total: int | None = None
    pos_processed: int = 0
    pos_total: int | None = None
    status: ExecutionStatus
    event: ProgressEvent = "progress"
    date: str | None = None
    timestamp: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_message(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
