from fastapi import APIRouter

from src.syncflow.api.v1 import progress_ws, webhook_settings, webhooks, workflows

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(workflows.router)
api_router.include_router(progress_ws.router)
api_router.include_router(webhook_settings.router)
api_router.include_router(webhooks.router)
