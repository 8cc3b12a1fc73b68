"""Bearer token verification and webhook API key handling."""

import hmac
import secrets
from datetime import UTC, datetime, timedelta
from hashlib import sha256
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from src.syncflow.core.config import get_settings

WEBHOOK_KEY_PREFIX = "nbm_"


def generate_webhook_key() -> tuple[str, str, str]:
    """Create a new webhook API key.

    Returns:
        (plaintext, sha256 hex hash, last 4 characters). Only the hash and
        last-4 are persisted; the plaintext is shown to the caller once.
    """
    plaintext = f"{WEBHOOK_KEY_PREFIX}{secrets.token_hex(24)}"
    return plaintext, hash_webhook_key(plaintext), plaintext[-4:]


def hash_webhook_key(key: str) -> str:
    return sha256(key.encode()).hexdigest()


def verify_webhook_key(presented: str | None, stored_hash: str | None) -> bool:
    """Constant-time comparison of the presented key against the stored hash."""
    if not presented or not stored_hash:
        return False
    return hmac.compare_digest(hash_webhook_key(presented), stored_hash)


def create_access_token(
    subject: str | UUID,
    tenant_id: str | UUID,
    permissions: list[str] | None = None,
    team_ids: list[str] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Mint a token in the identity service's format.

    Production tokens come from the identity service; this is used by
    tests and local tooling.
    """
    settings = get_settings()
    expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=30))
    to_encode = {
        "sub": str(subject),
        "tenant_id": str(tenant_id),
        "permissions": permissions or [],
        "team_ids": team_ids or [],
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(  # type: ignore[no-any-return]
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_token(token: str) -> dict[str, Any] | None:
    """Decode and validate JWT token. Returns None on any error."""
    settings = get_settings()
    try:
        return jwt.decode(  # type: ignore[no-any-return]
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None
