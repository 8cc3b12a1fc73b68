"""Public webhook receive endpoint.

Authenticated by the tenant's webhook API key, not by a bearer token.
"""

from uuid import uuid4

from asgi_correlation_id import correlation_id
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.syncflow.api.dependencies import WebhookGateDep
from src.syncflow.schemas.webhook import WebhookReceipt

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

RECEIVE_RESPONSES: dict[int | str, dict[str, str]] = {
    202: {"description": "Accepted and queued for processing"},
    401: {"description": "Missing or invalid API key"},
    403: {"description": "Webhooks disabled for this tenant"},
    404: {"description": "Unknown tenant"},
}


async def _receive(tenant_id: str, request: Request, gate: WebhookGateDep) -> JSONResponse:
    body = await request.body()
    request_id = request.headers.get("x-request-id") or correlation_id.get() or uuid4().hex
    result = await gate.receive(
        tenant_id,
        body,
        dict(request.headers),
        query_api_key=request.query_params.get("api_key"),
        request_id=request_id,
    )
    if result.http_status != status.HTTP_202_ACCEPTED:
        return JSONResponse(
            status_code=result.http_status,
            content={"detail": result.message, "request_id": result.request_id},
        )
    receipt = WebhookReceipt(
        accepted=True,
        log_id=result.log_id,
        request_id=result.request_id,
        message=result.message,
    )
    return JSONResponse(status_code=result.http_status, content=receipt.model_dump(by_alias=True, mode="json"))


@router.post(
    "/pancake/{tenant_id}",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Receive Pancake POS webhook",
    responses=RECEIVE_RESPONSES,
)
async def receive_pancake_webhook(tenant_id: str, request: Request, gate: WebhookGateDep) -> JSONResponse:
    return await _receive(tenant_id, request, gate)


@router.post(
    "/pancake/{tenant_id}/orders",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Receive Pancake POS webhook (orders alias)",
    responses=RECEIVE_RESPONSES,
    include_in_schema=False,
)
async def receive_pancake_orders_webhook(
    tenant_id: str, request: Request, gate: WebhookGateDep
) -> JSONResponse:
    return await _receive(tenant_id, request, gate)
