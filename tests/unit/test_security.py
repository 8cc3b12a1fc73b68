"""Tests for webhook API keys and bearer token handling."""

from datetime import timedelta
from uuid import uuid4

import pytest

from src.syncflow.core.security import (
    WEBHOOK_KEY_PREFIX,
    create_access_token,
    decode_token,
    generate_webhook_key,
    hash_webhook_key,
    verify_webhook_key,
)

pytestmark = pytest.mark.unit


class TestWebhookKeys:
    def test_generated_key_shape(self):
        plaintext, key_hash, last4 = generate_webhook_key()

        assert plaintext.startswith(WEBHOOK_KEY_PREFIX)
        assert len(plaintext) == len(WEBHOOK_KEY_PREFIX) + 48
        assert last4 == plaintext[-4:]
        assert key_hash == hash_webhook_key(plaintext)
        assert plaintext not in key_hash

    def test_keys_are_unique(self):
        assert len({generate_webhook_key()[0] for _ in range(50)}) == 50

    def test_verify(self):
        plaintext, key_hash, _ = generate_webhook_key()
        assert verify_webhook_key(plaintext, key_hash) is True
        assert verify_webhook_key(plaintext + "x", key_hash) is False

    @pytest.mark.parametrize("presented,stored", [(None, "abc"), ("", "abc"), ("key", None), ("key", "")])
    def test_verify_missing_values(self, presented, stored):
        assert verify_webhook_key(presented, stored) is False

    def test_old_key_fails_after_rotation(self):
        old, _, _ = generate_webhook_key()
        _, new_hash, _ = generate_webhook_key()
        assert verify_webhook_key(old, new_hash) is False


class TestAccessTokens:
    def test_round_trip_claims(self):
        user_id = uuid4()
        tenant_id = uuid4()
        token = create_access_token(user_id, tenant_id, permissions=["workflows:read"], team_ids=["t1"])

        payload = decode_token(token)
        assert payload is not None
        assert payload["sub"] == str(user_id)
        assert payload["tenant_id"] == str(tenant_id)
        assert payload["permissions"] == ["workflows:read"]
        assert payload["team_ids"] == ["t1"]
        assert payload["type"] == "access"

    def test_expired_token_rejected(self):
        token = create_access_token(uuid4(), uuid4(), expires_delta=timedelta(seconds=-5))
        assert decode_token(token) is None

    def test_garbage_rejected(self):
        assert decode_token("not-a-token") is None

    def test_tampered_token_rejected(self):
        token = create_access_token(uuid4(), uuid4())
        head, body, sig = token.split(".")
        assert decode_token(f"{head}.{body}.{sig[::-1]}") is None
