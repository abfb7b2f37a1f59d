"""
API request and response models for the EduCenter REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
directory/models.py, which own the internal domain representation. Route
handlers map between the two.

Mass assignment: every create/patch body is an explicit model. Owner ids,
status and role never appear on a body model except the admin-only user ones.
"""

from __future__ import annotations

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from core.listing import INT64_MAX, PageResult

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PHONE_PATTERN = r"^\+998[0-9]{9}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
ROLE_PATTERN = r"^(user|ceo|admin|super-admin)$"

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class Page(BaseModel, Generic[T]):
    """Pagination envelope returned by every list endpoint.

    Serialized with the camelCase keys clients already consume:
    {data, totalCount, totalPages, currentPage, limit}.
    """

    model_config = ConfigDict(populate_by_name=True)

    data: list[T]
    total_count: int = Field(alias="totalCount")
    total_pages: int = Field(alias="totalPages")
    current_page: int = Field(alias="currentPage")
    limit: int


def page_of(result: PageResult, item_model: type[BaseModel]) -> dict:
    """Map a core PageResult of dataclasses into the wire envelope."""
    return Page[item_model](
        data=[item_model.model_validate(row, from_attributes=True) for row in result.rows],
        total_count=result.total_count,
        total_pages=result.total_pages,
        current_page=result.current_page,
        limit=result.limit,
    ).model_dump(by_alias=True)


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    message: str
    code: str
    detail: Optional[list[str]] = None


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    phone: str = Field(pattern=PHONE_PATTERN)
    password: str = Field(min_length=6, max_length=128)
    full_name: str = Field(min_length=2, max_length=100)
    role: str = Field(default="user", pattern=ROLE_PATTERN)
    region_id: Optional[int] = Field(default=None, ge=1, le=INT64_MAX)
    year: Optional[int] = Field(default=None, ge=1900, le=2100)
    image: Optional[str] = Field(default=None, max_length=255)


class VerifyRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=255)
    otp: str = Field(min_length=1, max_length=10)


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=255)
    password: str = Field(min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class LoginResponse(BaseModel):
    """Active accounts get both tokens; pending ones get only message."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    message: Optional[str] = None


class AccessTokenResponse(BaseModel):
    access_token: str


class UserResponse(BaseModel):
    """Public view of an Identity. hashed_password is never part of it."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    phone: str
    full_name: str
    role: str
    status: str
    region_id: Optional[int] = None
    year: Optional[int] = None
    image: Optional[str] = None
    created_at: Optional[str] = None
    last_login: Optional[str] = None


class ProfilePatch(BaseModel):
    """Request body for PATCH /auth/me."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    full_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    region_id: Optional[int] = Field(default=None, ge=1, le=INT64_MAX)
    year: Optional[int] = Field(default=None, ge=1900, le=2100)
    image: Optional[str] = Field(default=None, max_length=255)


# ---------------------------------------------------------------------------
# Users (admin)
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /users. The account is active immediately."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    phone: str = Field(pattern=PHONE_PATTERN)
    password: str = Field(min_length=6, max_length=128)
    full_name: str = Field(min_length=2, max_length=100)
    role: str = Field(default="user", pattern=ROLE_PATTERN)
    region_id: Optional[int] = Field(default=None, ge=1, le=INT64_MAX)
    year: Optional[int] = Field(default=None, ge=1900, le=2100)
    image: Optional[str] = Field(default=None, max_length=255)


class UserPatch(ProfilePatch):
    role: Optional[str] = Field(default=None, pattern=ROLE_PATTERN)
    status: Optional[str] = Field(default=None, pattern=r"^(pending|active)$")
    password: Optional[str] = Field(default=None, min_length=6, max_length=128)


# ---------------------------------------------------------------------------
# Directory -- catalog entries (regions, subjects, fields)
# ---------------------------------------------------------------------------


class RegionCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=100)


class RegionResponse(BaseModel):
    id: int
    name: str
    created_at: str


class CatalogCreate(BaseModel):
    """Request body for POST /subjects and POST /fields."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=100)
    image: Optional[str] = Field(default=None, max_length=255)


class CatalogPatch(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    image: Optional[str] = Field(default=None, max_length=255)


class CatalogResponse(BaseModel):
    id: int
    name: str
    image: Optional[str] = None
    created_at: str


# ---------------------------------------------------------------------------
# Directory -- centers and branches
# ---------------------------------------------------------------------------


class Ref(BaseModel):
    """Embedded {id, name} summary of a related row."""

    id: int
    name: str


class ContactRef(Ref):
    email: str


class CenterCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=50)
    region_id: int = Field(ge=1, le=INT64_MAX)
    location: str = Field(min_length=5, max_length=100)
    phone: str = Field(pattern=PHONE_PATTERN)
    image: Optional[str] = Field(default=None, max_length=255)


class CenterPatch(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    region_id: Optional[int] = Field(default=None, ge=1, le=INT64_MAX)
    location: Optional[str] = Field(default=None, min_length=5, max_length=100)
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    image: Optional[str] = Field(default=None, max_length=255)


class CenterResponse(BaseModel):
    id: int
    name: str
    region_id: int
    user_id: int
    location: str
    phone: str
    image: Optional[str] = None
    created_at: str
    region: Optional[Ref] = None
    user: Optional[Ref] = None


class BranchCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=100)
    center_id: int = Field(ge=1, le=INT64_MAX)
    region_id: int = Field(ge=1, le=INT64_MAX)
    location: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    image: Optional[str] = Field(default=None, max_length=255)


class BranchPatch(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    region_id: Optional[int] = Field(default=None, ge=1, le=INT64_MAX)
    location: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    image: Optional[str] = Field(default=None, max_length=255)


class BranchResponse(BaseModel):
    id: int
    name: str
    center_id: int
    region_id: int
    user_id: int
    location: Optional[str] = None
    phone: Optional[str] = None
    image: Optional[str] = None
    created_at: str
    region: Optional[Ref] = None
    center: Optional[Ref] = None
    user: Optional[Ref] = None


# ---------------------------------------------------------------------------
# Directory -- resources
# ---------------------------------------------------------------------------


class ResourceCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=255)
    category_id: Optional[int] = Field(default=None, ge=1, le=INT64_MAX)
    description: Optional[str] = Field(default=None, max_length=2000)
    media: Optional[str] = Field(default=None, max_length=500)
    image: Optional[str] = Field(default=None, max_length=255)


class ResourcePatch(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    category_id: Optional[int] = Field(default=None, ge=1, le=INT64_MAX)
    description: Optional[str] = Field(default=None, max_length=2000)
    media: Optional[str] = Field(default=None, max_length=500)
    image: Optional[str] = Field(default=None, max_length=255)


class ResourceResponse(BaseModel):
    id: int
    name: str
    user_id: int
    category_id: Optional[int] = None
    description: Optional[str] = None
    media: Optional[str] = None
    image: Optional[str] = None
    created_at: str


# ---------------------------------------------------------------------------
# Directory -- comments, likes, course registrations
# ---------------------------------------------------------------------------


class CommentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    center_id: int = Field(ge=1, le=INT64_MAX)
    description: str = Field(min_length=10, max_length=255)
    star: Optional[int] = Field(default=None, ge=1, le=5)


class CommentPatch(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    description: Optional[str] = Field(default=None, min_length=5, max_length=255)
    star: Optional[int] = Field(default=None, ge=1, le=5)


class CommentResponse(BaseModel):
    id: int
    user_id: int
    center_id: int
    description: str
    star: Optional[int] = None
    created_at: str


class LikeCreate(BaseModel):
    center_id: int = Field(ge=1, le=INT64_MAX)


class LikeResponse(BaseModel):
    id: int
    user_id: int
    center_id: int
    created_at: str


class RegistrationCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    center_id: int = Field(ge=1, le=INT64_MAX)
    branch_id: int = Field(ge=1, le=INT64_MAX)
    date: str = Field(min_length=1, max_length=32)


class RegistrationPatch(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    center_id: Optional[int] = Field(default=None, ge=1, le=INT64_MAX)
    branch_id: Optional[int] = Field(default=None, ge=1, le=INT64_MAX)
    date: Optional[str] = Field(default=None, min_length=1, max_length=32)


class RegistrationResponse(BaseModel):
    id: int
    user_id: int
    center_id: int
    branch_id: int
    date: str
    created_at: str
    user: Optional[ContactRef] = None
    center: Optional[Ref] = None
    branch: Optional[Ref] = None
