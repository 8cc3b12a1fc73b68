"""Domain errors and the handlers that turn them into JSON responses."""

from asgi_correlation_id import correlation_id
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.syncflow.core.logging import get_logger

logger = get_logger(__name__)


class SyncflowError(Exception):
    """Base class for errors raised by the sync pipeline."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(SyncflowError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidRangeError(SyncflowError):
    """Date range spec cannot be resolved (e.g. until before since)."""


class InvalidCronError(SyncflowError):
    """Cron expression is malformed."""


class InvalidWorkflowConfigError(SyncflowError):
    pass


class WorkflowDisabledError(SyncflowError):
    pass


class InvalidWebhookConfigError(SyncflowError):
    """Webhook or relay settings are inconsistent (e.g. relay enabled without a URL)."""


class ExecutionInProgressError(SyncflowError):
    """Workflow already has a PENDING or RUNNING execution."""

    status_code = status.HTTP_409_CONFLICT


class PermissionDeniedError(SyncflowError):
    status_code = status.HTTP_403_FORBIDDEN


class ProviderError(Exception):
    """An outbound provider call failed.

    Never propagated past the execution loop; the message is recorded
    on the execution's error list instead.
    """

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


def _error_body(detail: object) -> dict[str, object]:
    return {"detail": detail, "request_id": correlation_id.get()}


def setup_exception_handlers(app: FastAPI) -> None:
    """Configure exception handlers that include request_id in responses."""

    @app.exception_handler(SyncflowError)
    async def domain_exception_handler(request: Request, exc: SyncflowError) -> JSONResponse:
        logger.info(
            "Request rejected",
            error=type(exc).__name__,
            reason=exc.message,
            path=request.url.path,
        )
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))

    @app.exception_handler(StarletteHTTPException)
    async def starlette_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.detail))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.detail))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = correlation_id.get()
        logger.exception(
            "Unhandled exception",
            exc_info=exc,
            request_id=request_id,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "request_id": request_id,
            },
        )
