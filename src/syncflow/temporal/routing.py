"""Task queue routing.

Tenant-scoped work (sync executions, webhook processing) is sharded by a
stable hash of the tenant id and tagged with a fairness key so a tenant with
a large backfill cannot starve the others. System jobs (scheduler loop,
reconciler) go to a single queue.
"""

import hashlib
from dataclasses import dataclass
from enum import StrEnum

from temporalio.common import Priority


class QueueKind(StrEnum):
    SYNC = "sync"  # Workflow executions (long, rate limited provider calls)
    WEBHOOKS = "webhooks"  # Inbound webhook processing (short, high volume)
    JOBS = "jobs"  # Scheduler loop and reconciler


@dataclass(frozen=True)
class TemporalRoute:
    namespace: str
    task_queue: str
    priority: Priority | None = None


def _stable_shard(key: str, shards: int) -> int:
    """Stable shard from key using SHA256 (not Python hash())."""
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big") % max(1, shards)


def task_queue_name(prefix: str, kind: QueueKind, shard: int) -> str:
    """{prefix}.{kind}.{shard:02d}"""
    return f"{prefix}.{kind}.{shard:02d}"


def route_for_tenant(
    *,
    tenant_id: str,
    namespace: str,
    prefix: str,
    shards: int,
    kind: QueueKind,
    fairness_weight: int = 1,
) -> TemporalRoute:
    shard = _stable_shard(tenant_id, shards)
    priority = Priority(fairness_key=tenant_id, fairness_weight=fairness_weight)
    return TemporalRoute(
        namespace=namespace,
        task_queue=task_queue_name(prefix, kind, shard),
        priority=priority,
    )


def route_for_system_job(*, namespace: str, prefix: str, kind: QueueKind = QueueKind.JOBS) -> TemporalRoute:
    """System jobs always use shard 00."""
    return TemporalRoute(namespace=namespace, task_queue=task_queue_name(prefix, kind, 0))
