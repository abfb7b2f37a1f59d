"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the auth
flow do the work; these only own the shape.

Layer rule: no imports from api/ or directory/.
"""

from __future__ import annotations

from dataclasses import dataclass

STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"

ROLE_USER = "user"
ROLE_CEO = "ceo"
ROLE_ADMIN = "admin"
ROLE_SUPER_ADMIN = "super-admin"


@dataclass
class Identity:
    """A registered account.

    status starts as "pending" and flips to "active" once the emailed OTP is
    verified. hashed_password is never serialized to API responses.
    """

    email: str
    phone: str
    full_name: str
    role: str  # "user", "ceo", "admin", "super-admin"
    hashed_password: str = ""
    status: str = STATUS_PENDING
    id: int | None = None
    region_id: int | None = None
    year: int | None = None
    image: str | None = None
    created_at: str | None = None
    last_login: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE


@dataclass(frozen=True)
class Principal:
    """The caller as described by a verified access token.

    Built from token claims only -- no database round trip. Handlers that need
    fresh data (e.g. GET /auth/me) re-read the Identity by id.
    """

    id: int
    role: str
    status: str
