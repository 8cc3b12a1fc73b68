"""Bearer token authentication and permission checks.

Tokens are issued by the external identity service. Claims used here:
`sub` (user id), `tenant_id`, `permissions` and `team_ids`.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status

from src.syncflow.core.logging import bind_tenant_context
from src.syncflow.core.security import decode_token

# Permission strings carried in the token
WORKFLOWS_READ = "workflows:read"
WORKFLOWS_WRITE = "workflows:write"
WORKFLOWS_EXECUTE = "workflows:execute"
WEBHOOKS_MANAGE = "integrations:webhooks"
ALL_PERMISSIONS = "*"


@dataclass(frozen=True)
class Principal:
    user_id: UUID
    tenant_id: UUID
    permissions: frozenset[str] = field(default_factory=frozenset)
    team_ids: tuple[str, ...] = ()

    @property
    def is_admin(self) -> bool:
        return ALL_PERMISSIONS in self.permissions

    @property
    def team_scope(self) -> list[str] | None:
        """Teams to restrict workflow visibility to; None for tenant admins."""
        return None if self.is_admin else list(self.team_ids)

    def has(self, permission: str) -> bool:
        return self.is_admin or permission in self.permissions


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def principal_from_token(token: str) -> Principal:
    payload = decode_token(token)
    if payload is None:
        raise _unauthorized("Invalid or expired token")
    if payload.get("type", "access") != "access":
        raise _unauthorized("Invalid token type")
    try:
        user_id = UUID(str(payload.get("sub")))
        tenant_id = UUID(str(payload.get("tenant_id")))
    except ValueError as e:
        raise _unauthorized("Invalid token payload") from e
    return Principal(
        user_id=user_id,
        tenant_id=tenant_id,
        permissions=frozenset(payload.get("permissions") or []),
        team_ids=tuple(str(t) for t in payload.get("team_ids") or []),
    )


async def get_current_principal(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> Principal:
    """Validate the bearer token and bind the tenant to the request."""
    if not authorization or not authorization.startswith("Bearer "):
        raise _unauthorized("Missing or invalid authorization header")
    principal = principal_from_token(authorization[7:])
    # Read by the rate limiter key function
    request.state.tenant_id = str(principal.tenant_id)
    bind_tenant_context(principal.tenant_id, principal.user_id)
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def require_permission(permission: str) -> Callable[[Principal], Awaitable[Principal]]:
    """Dependency factory: 403 unless the principal holds `permission`."""

    async def checker(principal: CurrentPrincipal) -> Principal:
        if not principal.has(permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {permission}",
            )
        return principal

    return checker


WorkflowReader = Annotated[Principal, Depends(require_permission(WORKFLOWS_READ))]
WorkflowWriter = Annotated[Principal, Depends(require_permission(WORKFLOWS_WRITE))]
WorkflowExecutor = Annotated[Principal, Depends(require_permission(WORKFLOWS_EXECUTE))]
WebhookManager = Annotated[Principal, Depends(require_permission(WEBHOOKS_MANAGE))]
