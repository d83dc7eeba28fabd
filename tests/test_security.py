"""Session token tests."""

import uuid

import jwt
import pytest

from brokerdesk.core.config import settings
from brokerdesk.core.security import create_session_token, decode_session_token


def test_token_round_trip():
    actor_id = uuid.uuid4()
    token = create_session_token(actor_id, "broker")

    payload = decode_session_token(token)

    assert payload["sub"] == str(actor_id)
    assert payload["role"] == "broker"
    assert payload["exp"] > payload["iat"]


def test_token_signed_with_previous_secret_still_valid(monkeypatch):
    old_secret = "previous-secret-that-is-long-enough-32"
    token = jwt.encode({"sub": str(uuid.uuid4()), "role": "administrator"}, old_secret, algorithm="HS256")

    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", old_secret)

    assert decode_session_token(token)["role"] == "administrator"


def test_token_with_unknown_secret_rejected():
    token = jwt.encode({"sub": str(uuid.uuid4()), "role": "broker"}, "x" * 40, algorithm="HS256")

    with pytest.raises(jwt.InvalidTokenError):
        decode_session_token(token)


def test_expired_token_rejected():
    token = create_session_token(uuid.uuid4(), "broker", expires_hours=-1)

    with pytest.raises(jwt.ExpiredSignatureError):
        decode_session_token(token)
