"""Security utilities - token verification and webhook keys."""

from src.syncflow.core.security.crypto import (
    WEBHOOK_KEY_PREFIX,
    create_access_token,
    decode_token,
    generate_webhook_key,
    hash_webhook_key,
    verify_webhook_key,
)

__all__ = [
    "WEBHOOK_KEY_PREFIX",
    "create_access_token",
    "decode_token",
    "generate_webhook_key",
    "hash_webhook_key",
    "verify_webhook_key",
]
