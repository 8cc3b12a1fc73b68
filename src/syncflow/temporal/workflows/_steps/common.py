"""Shared workflow step utilities."""

from datetime import timedelta

from temporalio.common import RetryPolicy


def short_activity_opts() -> dict[str, object]:
    """Options for quick activities (scheduler tick, reconciliation)."""
    return {
        "start_to_close_timeout": timedelta(seconds=60),
        "retry_policy": RetryPolicy(
            maximum_attempts=3,
            initial_interval=timedelta(seconds=1),
        ),
    }


def webhook_activity_opts() -> dict[str, object]:
    """Webhook processing: parsing, upserts and one relay call."""
    return {
        "start_to_close_timeout": timedelta(minutes=5),
        "retry_policy": RetryPolicy(
            maximum_attempts=3,
            initial_interval=timedelta(seconds=2),
        ),
    }


def execution_activity_opts() -> dict[str, object]:
    """A full sync run: many paced provider calls over a date range."""
    return {
        "start_to_close_timeout": timedelta(hours=12),
        "retry_policy": RetryPolicy(
            maximum_attempts=2,
            initial_interval=timedelta(seconds=5),
        ),
    }
