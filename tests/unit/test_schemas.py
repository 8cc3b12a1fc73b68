"""Tests for request/response schema validation."""

from datetime import date
from uuid import uuid4

import pytest
from pydantic import ValidationError

from src.syncflow.models import ExecutionStatus
from src.syncflow.schemas import (
    DateRangeSpec,
    ProgressSnapshot,
    TriggerRequest,
    WebhookConfigUpdate,
    WebhookRelayUpdate,
    WorkflowConfig,
)

pytestmark = pytest.mark.unit


class TestDateRangeSpec:
    def test_rolling_offset_defaults_to_zero(self):
        assert DateRangeSpec(type="rolling").offset_days == 0

    def test_relative_requires_days(self):
        with pytest.raises(ValidationError, match="requires 'days'"):
            DateRangeSpec(type="relative")

    def test_relative_days_positive(self):
        with pytest.raises(ValidationError):
            DateRangeSpec(type="relative", days=0)

    def test_absolute_requires_both_bounds(self):
        with pytest.raises(ValidationError, match="'since' and 'until'"):
            DateRangeSpec(type="absolute", since=date(2026, 1, 1))

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            DateRangeSpec(type="weekly")

    def test_camel_case_input(self):
        spec = DateRangeSpec.model_validate({"type": "rolling", "offsetDays": 3})
        assert spec.offset_days == 3


class TestWorkflowConfig:
    def test_storage_form_is_camel_case(self):
        config = WorkflowConfig.model_validate(
            {
                "dateRange": {"type": "relative", "days": 7},
                "sources": {"meta": {"enabled": True}, "pos": {"enabled": False}},
                "rateLimit": {"metaDelayMs": 500},
            }
        )
        stored = config.to_storage()

        assert stored["dateRange"] == {"type": "relative", "days": 7}
        assert stored["sources"]["meta"] == {"enabled": True}
        assert stored["rateLimit"] == {"metaDelayMs": 500}

    def test_negative_delay_rejected(self):
        with pytest.raises(ValidationError):
            WorkflowConfig.model_validate({"rateLimit": {"posDelayMs": -1}})

    def test_sources_default_off(self):
        config = WorkflowConfig()
        assert config.sources.meta.enabled is False
        assert config.sources.pos.enabled is False


class TestTriggerRequest:
    def test_empty_is_valid(self):
        assert TriggerRequest().since is None

    def test_pair(self):
        body = TriggerRequest(since=date(2026, 3, 1), until=date(2026, 3, 5))
        assert body.until == date(2026, 3, 5)

    def test_half_pair_rejected(self):
        with pytest.raises(ValidationError, match="together"):
            TriggerRequest(since=date(2026, 3, 1))


class TestWebhookSettingsSchemas:
    def test_header_key_pattern(self):
        assert WebhookConfigUpdate(header_key="x-pancake-key").header_key == "x-pancake-key"
        with pytest.raises(ValidationError):
            WebhookConfigUpdate(header_key="bad header")

    def test_relay_url_scheme(self):
        with pytest.raises(ValidationError, match="http"):
            WebhookRelayUpdate(enabled=True, webhook_url="ftp://example.com")

    def test_relay_camel_case(self):
        body = WebhookRelayUpdate.model_validate(
            {"enabled": True, "webhookUrl": "https://example.com/hook", "headerKey": "x-k", "apiKey": ""}
        )
        assert body.webhook_url == "https://example.com/hook"
        assert body.api_key == ""


def test_progress_message_shape():
    execution_id = uuid4()
    message = ProgressSnapshot(execution_id=execution_id, status=ExecutionStatus.RUNNING, date="2026-03-10").to_message()

    assert message["executionId"] == str(execution_id)
    assert message["progress"] == {"current": 0, "total": 0}
    assert message["status"] == "RUNNING"
    assert message["metaTotal"] is None
    assert message["event"] == "progress"
