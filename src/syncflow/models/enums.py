"""Shared enums for models.

Statuses are closed enumerations; the sets below are what transition
checks are written against.
"""

from enum import Enum


class ExecutionStatus(str, Enum):
    """Workflow execution lifecycle."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_EXECUTION_STATUSES


TERMINAL_EXECUTION_STATUSES = frozenset(
    {
        ExecutionStatus.COMPLETED,
        ExecutionStatus.PARTIAL,
        ExecutionStatus.FAILED,
        ExecutionStatus.CANCELLED,
    }
)
ACTIVE_EXECUTION_STATUSES = frozenset({ExecutionStatus.PENDING, ExecutionStatus.RUNNING})


class TriggerType(str, Enum):
    MANUAL = "MANUAL"
    SCHEDULED = "SCHEDULED"


class SyncSource(str, Enum):
    """Provider a fetch call goes to."""

    META = "meta"
    POS = "pos"


class IntegrationProvider(str, Enum):
    META = "META"
    PANCAKE_POS = "PANCAKE_POS"


class ReceiveStatus(str, Enum):
    """Outcome of the synchronous webhook gate."""

    ACCEPTED = "ACCEPTED"
    AUTH_FAILED = "AUTH_FAILED"
    DISABLED = "DISABLED"
    INVALID_TENANT = "INVALID_TENANT"
    FAILED = "FAILED"


class ProcessStatus(str, Enum):
    """Outcome of asynchronous webhook processing."""

    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class RelayStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class UpsertStatus(str, Enum):
    """Per-order outcome inside a webhook payload."""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"
