"""
api/deps.py -- Small helpers shared by the v1 routers.

Stores and services live on app.state (wired in api/main.py lifespan); these
functions fetch them and wrap the recurring list / ownership / uniqueness
steps so every router reads the same way.
"""

from __future__ import annotations

from typing import Annotated, Any, Optional

from fastapi import Path, Request
from pydantic import BaseModel
from sqlalchemy import Table
from sqlalchemy.exc import IntegrityError

from auth.flow import AuthFlow
from auth.models import ROLE_ADMIN, ROLE_SUPER_ADMIN, Principal
from auth.store import IdentityStore
from core.config import get_settings
from core.errors import AlreadyExists, Forbidden, NotFound, ValidationError
from core.listing import INT64_MAX, ListQuery, ListSpec, parse_list_query
from directory.store import DirectoryStore

ADMIN_ROLES = (ROLE_ADMIN, ROLE_SUPER_ADMIN)

# Integer path id; anything outside 1..INT64_MAX answers 400 before a query runs.
RowId = Annotated[int, Path(ge=1, le=INT64_MAX)]


def directory_store(request: Request) -> DirectoryStore:
    return request.app.state.directory


def user_store(request: Request) -> IdentityStore:
    return request.app.state.user_store


def auth_flow(request: Request) -> AuthFlow:
    return request.app.state.auth_flow


def list_query(request: Request, spec: ListSpec) -> ListQuery:
    """Parse the request's query string against spec with the configured limits."""
    settings = get_settings()
    return parse_list_query(
        request.query_params.multi_items(),
        spec,
        default_limit=settings.page_default_limit,
        max_limit=settings.page_max_limit,
    )


def get_or_404(store: DirectoryStore, entity: str, row_id: int, message: str) -> Any:
    row = store.get(entity, row_id)
    if row is None:
        raise NotFound(message)
    return row


def check_region(store: DirectoryStore, region_id: Optional[int]) -> None:
    """A region_id, when given, must name an existing region."""
    if region_id is not None:
        get_or_404(store, "regions", region_id, "Region not found")


def ensure_owner(row: Any, principal: Principal, *, hide: bool = False) -> None:
    """Admins pass; everyone else must own row (row.user_id).

    hide=True answers with 404 instead of 403 so foreign ids are not confirmed.
    """
    if principal.role in ADMIN_ROLES or row.user_id == principal.id:
        return
    if hide:
        raise NotFound()
    raise Forbidden()


def create_unique(store: DirectoryStore, entity: str, message: str, **attrs) -> Any:
    """Insert a row whose UNIQUE constraint may clash; a clash answers 400."""
    try:
        row_id = store.create(entity, **attrs)
    except IntegrityError as exc:
        raise AlreadyExists(message) from exc
    return store.get(entity, row_id)


def update_unique(store: DirectoryStore, entity: str, row_id: int, changes: dict, message: Optional[str] = None) -> Any:
    try:
        store.update(entity, row_id, **changes)
    except IntegrityError as exc:
        raise AlreadyExists(message) from exc
    return store.get(entity, row_id)


def patch_changes(body: BaseModel, table: Table) -> dict:
    """Fields the client actually sent on a PATCH body.

    An explicit null clears a nullable column of table; null on any other
    field answers 400, and so does a body with no fields at all.
    """
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update")
    for name, value in changes.items():
        column = table.c.get(name)
        if value is None and (column is None or not column.nullable):
            raise ValidationError(f"{name} cannot be null")
    return changes
