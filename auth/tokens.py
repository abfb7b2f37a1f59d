"""
auth/tokens.py -- JWT issuance/verification and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Two token kinds, each signed with its own
       secret from Settings:
         access  -- {sub, id, role, status, typ="access"}, ACCESS_TOKEN_SECRET,
                    15 minutes by default.
         refresh -- {sub, id, typ="refresh"}, REFRESH_TOKEN_SECRET, 7 days.
       Distinct secrets are what keep the kinds apart: a refresh token fails
       signature verification wherever an access token is expected and vice
       versa. The typ claim is checked as well.

       verify_token() raises TokenExpired or InvalidSignature (both
       InvalidToken) so the authorization layer can tell the caller which one
       happened.

  Passwords: bcrypt directly (no passlib wrapper). The _DUMMY_HASH constant
       lets login spend the same bcrypt work when the email is unknown [C1].

Layer rule: no imports from api/ or directory/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import Identity

logger = logging.getLogger("educenter.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton [M6]
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

ACCESS = "access"
REFRESH = "refresh"


class InvalidToken(Exception):
    """A token that must not be trusted."""


class TokenExpired(InvalidToken):
    """Signature is fine but exp is in the past."""


class InvalidSignature(InvalidToken):
    """Tampered, signed with another secret, malformed, or the wrong kind."""


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt truncates input past 72 bytes. The request models cap passwords
    at 72 characters so nothing is silently dropped for ASCII input.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# Timing equalization dummy hash [C1]. Computed once at module load so the
# first login attempt is not measurably slower than subsequent ones.
_DUMMY_HASH: str = hash_password("educenter_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Spend one bcrypt verification on a throwaway hash [C1]."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def _encode(claims: dict, secret: str, duration: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {**claims, "iat": now, "exp": now + timedelta(seconds=duration)}
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def create_access_token(identity: Identity, expire_seconds: int = 0) -> str:
    """Sign a short-lived access token carrying id, role and status.

    Args:
        identity:       The identity the token speaks for.
        expire_seconds: Lifetime override. 0 (default) uses
                        Settings.access_token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.access_token_expire_seconds
    claims = {
        "sub": str(identity.id),
        "id": identity.id,
        "role": identity.role,
        "status": identity.status,
        "typ": ACCESS,
    }
    return _encode(claims, _settings.access_token_secret, duration)


def create_refresh_token(identity: Identity, expire_seconds: int = 0) -> str:
    """Sign a long-lived refresh token carrying only the identity id.

    Role and status are deliberately absent: whoever redeems the token must
    read them from the current Identity record.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.refresh_token_expire_seconds
    claims = {"sub": str(identity.id), "id": identity.id, "typ": REFRESH}
    return _encode(claims, _settings.refresh_token_secret, duration)


def verify_token(token: str, secret: str, kind: str) -> dict:
    """Verify signature, expiry and kind. Return the claims dict.

    Raises:
        TokenExpired:     exp is in the past.
        InvalidSignature: anything else that makes the token untrustworthy.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpired("Token expired") from exc
    except JWTError as exc:
        raise InvalidSignature("Invalid token") from exc
    if payload.get("typ") != kind or not isinstance(payload.get("id"), int):
        raise InvalidSignature("Invalid token")
    return payload


def decode_access_token(token: str) -> dict:
    """verify_token() bound to the access secret. Claims include role and status."""
    payload = verify_token(token, _settings.access_token_secret, ACCESS)
    if "role" not in payload or "status" not in payload:
        raise InvalidSignature("Invalid token")
    return payload


def decode_refresh_token(token: str) -> dict:
    """verify_token() bound to the refresh secret."""
    return verify_token(token, _settings.refresh_token_secret, REFRESH)
