"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one credential is accepted: "Authorization: Bearer <access token>".

authenticate() verifies the token and returns a Principal built from its
claims. It fails with 401 when the header is missing, the token is expired,
the token is malformed / signed with another secret (a refresh token lands
here), or the account status in the token is not "active". The message tells
the caller which of those happened.

require_roles(*roles) wraps authenticate() and fails with 403 when the
principal's role is not in roles.

Both are pure gates: no writes, no database access.

Layer rule: no imports from api/ or directory/.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from auth.models import STATUS_ACTIVE, Principal
from auth.tokens import InvalidToken, TokenExpired, decode_access_token
from core.errors import Forbidden, Unauthorized


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def authenticate(request: Request) -> Principal:
    """Require a valid access token for an active account.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(authenticate)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise Unauthorized("Token not provided")
    try:
        claims = decode_access_token(token)
    except TokenExpired as exc:
        raise Unauthorized("Token expired") from exc
    except InvalidToken as exc:
        raise Unauthorized("Invalid token") from exc
    if claims["status"] != STATUS_ACTIVE:
        raise Unauthorized("Account is not verified")
    principal = Principal(id=claims["id"], role=claims["role"], status=claims["status"])
    request.state.principal = principal
    return principal


def require_roles(*roles: str) -> Callable[[Request], Principal]:
    """Build a dependency that admits only the given roles.

    Use as a FastAPI dependency:
        @router.post("/admin-only")
        def route(principal: Principal = Depends(require_roles("admin"))): ...
    """
    allowed = frozenset(roles)

    def dependency(request: Request) -> Principal:
        principal = authenticate(request)
        if principal.role not in allowed:
            raise Forbidden()
        return principal

    return dependency
