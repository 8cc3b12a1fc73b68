"""Test factories for generating test data.

Re-exports all factories for convenient imports:
    from tests.factories import WorkflowFactory, PosStoreFactory, ...
"""

from tests.factories.base import BaseFactory, generate_uuid, utc_now
from tests.factories.integration import IntegrationFactory, MetaAdAccountFactory, PosStoreFactory
from tests.factories.webhook import WebhookConfigFactory, WebhookLogFactory
from tests.factories.workflow import WorkflowExecutionFactory, WorkflowFactory

__all__ = [
    # Base
    "BaseFactory",
    "generate_uuid",
    "utc_now",
    # Workflows
    "WorkflowFactory",
    "WorkflowExecutionFactory",
    # Integrations
    "IntegrationFactory",
    "MetaAdAccountFactory",
    "PosStoreFactory",
    # Webhooks
    "WebhookConfigFactory",
    "WebhookLogFactory",
]
