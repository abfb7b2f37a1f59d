"""
tests/test_tokens.py -- Unit tests for auth/tokens.py.

Covers:
  - bcrypt round trip and rejection of a wrong / malformed hash
  - access token claims and 15-minute default lifetime
  - refresh token carries only the id
  - access and refresh tokens are not interchangeable
  - expired, tampered and foreign-secret tokens
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import Identity
from auth.tokens import (
    InvalidSignature,
    InvalidToken,
    TokenExpired,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    hash_password,
    verify_password,
    verify_token,
)
from core.config import get_settings


def _identity(**overrides) -> Identity:
    data = dict(
        id=7,
        email="ali@example.com",
        phone="+998901234567",
        full_name="Ali Valiyev",
        role="ceo",
        status="active",
    )
    data.update(overrides)
    return Identity(**data)


class TestPasswords:
    def test_hash_then_verify(self) -> None:
        hashed = hash_password("s3cret-pass")
        assert hashed != "s3cret-pass"
        assert verify_password("s3cret-pass", hashed)

    def test_wrong_password(self) -> None:
        assert not verify_password("other", hash_password("s3cret-pass"))

    def test_malformed_hash_is_false_not_error(self) -> None:
        assert not verify_password("anything", "not-a-bcrypt-hash")


class TestAccessToken:
    def test_claims(self) -> None:
        claims = decode_access_token(create_access_token(_identity()))
        assert claims["id"] == 7
        assert claims["sub"] == "7"
        assert claims["role"] == "ceo"
        assert claims["status"] == "active"
        assert claims["typ"] == "access"

    def test_default_lifetime_is_fifteen_minutes(self) -> None:
        claims = decode_access_token(create_access_token(_identity()))
        assert claims["exp"] - claims["iat"] == 15 * 60

    def test_expired_token(self) -> None:
        settings = get_settings()
        past = datetime.now(timezone.utc) - timedelta(minutes=1)
        token = jwt.encode(
            {"sub": "7", "id": 7, "role": "user", "status": "active", "typ": "access", "exp": past},
            settings.access_token_secret,
            algorithm="HS256",
        )
        with pytest.raises(TokenExpired):
            decode_access_token(token)

    def test_tampered_token(self) -> None:
        token = create_access_token(_identity())
        head, payload, signature = token.split(".")
        flipped = signature[:-2] + ("AA" if signature[-2:] != "AA" else "BB")
        with pytest.raises(InvalidSignature):
            decode_access_token(".".join([head, payload, flipped]))

    def test_foreign_secret(self) -> None:
        token = jwt.encode({"id": 7, "role": "admin", "status": "active", "typ": "access"}, "x" * 40, algorithm="HS256")
        with pytest.raises(InvalidSignature):
            decode_access_token(token)

    def test_garbage(self) -> None:
        with pytest.raises(InvalidToken):
            decode_access_token("not.a.jwt")


class TestRefreshToken:
    def test_carries_only_the_id(self) -> None:
        claims = decode_refresh_token(create_refresh_token(_identity()))
        assert claims["id"] == 7
        assert claims["typ"] == "refresh"
        assert "role" not in claims
        assert "status" not in claims

    def test_default_lifetime_is_seven_days(self) -> None:
        claims = decode_refresh_token(create_refresh_token(_identity()))
        assert claims["exp"] - claims["iat"] == 7 * 24 * 60 * 60

    def test_refresh_token_is_not_an_access_token(self) -> None:
        with pytest.raises(InvalidSignature):
            decode_access_token(create_refresh_token(_identity()))

    def test_access_token_is_not_a_refresh_token(self) -> None:
        with pytest.raises(InvalidSignature):
            decode_refresh_token(create_access_token(_identity()))

    def test_kind_checked_even_with_right_secret(self) -> None:
        settings = get_settings()
        token = create_access_token(_identity())
        with pytest.raises(InvalidSignature):
            verify_token(token, settings.access_token_secret, "refresh")
