"""Tenant admin endpoints for the Pancake POS webhook."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Query, Request

from src.syncflow.api.dependencies import WebhookConfigServiceDep, WebhookManager
from src.syncflow.core.config import get_settings
from src.syncflow.core.rate_limit import limiter
from src.syncflow.models import ProcessStatus, ReceiveStatus, RelayStatus
from src.syncflow.schemas.pagination import PagedResponse
from src.syncflow.schemas.webhook import (
    WebhookConfigRead,
    WebhookConfigUpdate,
    WebhookKeyRotated,
    WebhookLogQuery,
    WebhookLogRead,
    WebhookRelayUpdate,
)

router = APIRouter(prefix="/integrations/pancake/webhook", tags=["webhook settings"])


@router.get("", response_model=WebhookConfigRead, summary="Get webhook settings")
async def get_webhook_config(principal: WebhookManager, service: WebhookConfigServiceDep) -> WebhookConfigRead:
    return await service.get_config(principal.tenant_id)


@router.patch("", response_model=WebhookConfigRead, summary="Update webhook settings")
async def update_webhook_config(
    data: WebhookConfigUpdate, principal: WebhookManager, service: WebhookConfigServiceDep
) -> WebhookConfigRead:
    return await service.update(principal.tenant_id, data)


@router.post(
    "/rotate-key",
    response_model=WebhookKeyRotated,
    summary="Rotate webhook API key",
    description="Returns the new key once. The previous key stops working immediately.",
)
@limiter.limit(get_settings().rotate_key_rate_limit)
async def rotate_webhook_key(
    request: Request, principal: WebhookManager, service: WebhookConfigServiceDep
) -> WebhookKeyRotated:
    return await service.rotate_key(principal.tenant_id, principal.user_id)


@router.patch(
    "/relay",
    response_model=WebhookConfigRead,
    summary="Update relay settings",
    responses={400: {"description": "Relay enabled without a URL"}},
)
async def update_webhook_relay(
    data: WebhookRelayUpdate, principal: WebhookManager, service: WebhookConfigServiceDep
) -> WebhookConfigRead:
    return await service.update_relay(principal.tenant_id, data, principal.user_id)


@router.get("/logs", response_model=PagedResponse[WebhookLogRead], summary="Search webhook logs")
async def list_webhook_logs(
    principal: WebhookManager,
    service: WebhookConfigServiceDep,
    receive_status: Annotated[ReceiveStatus | None, Query(alias="receiveStatus")] = None,
    process_status: Annotated[ProcessStatus | None, Query(alias="processStatus")] = None,
    relay_status: Annotated[RelayStatus | None, Query(alias="relayStatus")] = None,
    shop_id: Annotated[str | None, Query(alias="shopId", max_length=64)] = None,
    order_id: Annotated[str | None, Query(alias="orderId", max_length=64)] = None,
    request_id: Annotated[str | None, Query(alias="requestId", max_length=255)] = None,
    search: Annotated[str | None, Query(max_length=200)] = None,
    start_date: Annotated[date | None, Query(alias="startDate")] = None,
    end_date: Annotated[date | None, Query(alias="endDate")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> PagedResponse[WebhookLogRead]:
    query = WebhookLogQuery(
        receive_status=receive_status,
        process_status=process_status,
        relay_status=relay_status,
        shop_id=shop_id,
        order_id=order_id,
        request_id=request_id,
        search=search,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return await service.query_logs(principal.tenant_id, query)
