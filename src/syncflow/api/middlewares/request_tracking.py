"""Request tracking middleware for graceful shutdown."""

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import RequestResponseEndpoint

from src.syncflow.core.shutdown import work_tracker

UNTRACKED_PATHS = ("/health", "/metrics")


async def request_tracking_middleware(
    request: Request, call_next: RequestResponseEndpoint
) -> Response:
    """Track in-flight requests; refuse new webhooks once draining."""
    if request.url.path in UNTRACKED_PATHS:
        return await call_next(request)

    # Senders retry on 503, so nothing is accepted that could not be queued
    if work_tracker.is_shutting_down and request.url.path.startswith("/api/v1/webhooks/"):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Server is shutting down"},
        )

    async with work_tracker.track("request"):
        return await call_next(request)
