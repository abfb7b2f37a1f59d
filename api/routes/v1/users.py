"""
api/routes/v1/users.py -- Account administration endpoints (admin only).

Routes:
  GET    /users/all                    -- paginated accounts; filters name, email, phone
  GET    /users/by-region/{region_id}  -- same, scoped to one region
  POST   /users                        -- create an account that is active immediately, any role
  PATCH  /users/{id}                   -- update profile fields plus role, status, password
  DELETE /users/{id}                   -- delete an account

Security:
  [M4] DELETE /users/{id} and a status downgrade on PATCH block acting on yourself.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.deps import RowId, auth_flow, check_region, directory_store, list_query, patch_changes, user_store
from api.models import Page, UserCreate, UserPatch, UserResponse, page_of
from api.routes.v1.auth import user_to_response
from auth.dependencies import require_roles
from auth.flow import AuthFlow
from auth.models import ROLE_ADMIN, ROLE_SUPER_ADMIN, STATUS_ACTIVE, Principal
from auth.store import IdentityStore
from core.errors import NotFound, ValidationError
from core.listing import EQ, LIKE, ListSpec, fetch_page
from directory.store import DirectoryStore

USER_LIST = ListSpec(
    filters={
        "name": ("full_name", LIKE),
        "email": ("email", LIKE),
        "phone": ("phone", LIKE),
        "role": ("role", EQ),
        "status": ("status", EQ),
    },
    sorts={"createdAt": "created_at", "nameSort": "full_name"},
)

_admin = require_roles(ROLE_ADMIN, ROLE_SUPER_ADMIN)

router = APIRouter()


def _page(store: IdentityStore, request: Request, scope: dict | None = None) -> dict:
    return page_of(fetch_page(store, list_query(request, USER_LIST), scope), UserResponse)


@router.get("/users/all", response_model=Page[UserResponse])
def list_users(
    request: Request,
    principal: Principal = Depends(_admin),
    store: IdentityStore = Depends(user_store),
) -> dict:
    return _page(store, request)


@router.get("/users/by-region/{region_id}", response_model=Page[UserResponse])
def list_users_by_region(
    request: Request,
    region_id: RowId,
    principal: Principal = Depends(_admin),
    store: IdentityStore = Depends(user_store),
) -> dict:
    return _page(store, request, {"region_id": region_id})


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(
    body: UserCreate,
    principal: Principal = Depends(_admin),
    flow: AuthFlow = Depends(auth_flow),
    directory: DirectoryStore = Depends(directory_store),
) -> UserResponse:
    check_region(directory, body.region_id)
    identity = flow.provision(**body.model_dump())
    return user_to_response(identity)


@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: RowId,
    body: UserPatch,
    principal: Principal = Depends(_admin),
    flow: AuthFlow = Depends(auth_flow),
    directory: DirectoryStore = Depends(directory_store),
) -> UserResponse:
    changes = patch_changes(body, IdentityStore.table)
    # [M4] an admin cannot lock themselves out
    if user_id == principal.id and changes.get("status", STATUS_ACTIVE) != STATUS_ACTIVE:
        raise ValidationError("You cannot deactivate your own account")
    check_region(directory, changes.get("region_id"))
    return user_to_response(flow.admin_update(user_id, changes))


@router.delete("/users/{user_id}", status_code=204)
def delete_user(
    user_id: RowId,
    principal: Principal = Depends(_admin),
    store: IdentityStore = Depends(user_store),
) -> Response:
    if user_id == principal.id:  # [M4]
        raise ValidationError("You cannot delete your own account")
    if not store.delete_identity(user_id):
        raise NotFound("User not found")
    return Response(status_code=204)
