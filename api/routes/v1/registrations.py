"""
api/routes/v1/registrations.py -- Course registrations at center branches.

Routes:
  GET    /registrations/mine  -- requires auth; the caller's own; filters centerId, branchId
  GET    /registrations/all   -- admin, super-admin; adds filter userId
  POST   /registrations       -- requires auth; the caller is the registrant
  PATCH  /registrations/{id}  -- owner only
  DELETE /registrations/{id}  -- owner only

The branch must belong to the given center; a mismatch answers 400.
Responses embed the registrant {id, name, email} and the center and branch
names; see api/related.py.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from api.deps import RowId, directory_store, get_or_404, list_query, patch_changes, user_store
from api.models import Page, RegistrationCreate, RegistrationPatch, RegistrationResponse, page_of
from api.related import embed_one, embed_page, embed_registrations
from auth.dependencies import authenticate, require_roles
from auth.models import ROLE_ADMIN, ROLE_SUPER_ADMIN, Principal
from auth.store import IdentityStore
from core.errors import Forbidden, ValidationError
from core.listing import EQ, ListSpec, fetch_page
from directory.store import DirectoryStore

logger = logging.getLogger("educenter.api.registrations")

MINE_LIST = ListSpec(
    filters={"centerId": ("center_id", EQ), "branchId": ("branch_id", EQ)},
    sorts={"createdAt": "created_at", "dateSort": "date"},
)

ALL_LIST = ListSpec(
    filters={**MINE_LIST.filters, "userId": ("user_id", EQ)},
    sorts=MINE_LIST.sorts,
)

_MISSING = "Registration not found"

router = APIRouter()


def _check_branch(store: DirectoryStore, center_id: int, branch_id: int) -> None:
    get_or_404(store, "centers", center_id, "Center not found")
    branch = get_or_404(store, "branches", branch_id, "Branch not found")
    if branch.center_id != center_id:
        raise ValidationError("Branch does not belong to this center")


@router.get("/registrations/mine", response_model=Page[RegistrationResponse])
def list_my_registrations(
    request: Request,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
    users: IdentityStore = Depends(user_store),
) -> dict:
    result = fetch_page(store.collection("registrations"), list_query(request, MINE_LIST), {"user_id": principal.id})
    return page_of(embed_page(result, embed_registrations, store, users), RegistrationResponse)


@router.get("/registrations/all", response_model=Page[RegistrationResponse])
def list_all_registrations(
    request: Request,
    principal: Principal = Depends(require_roles(ROLE_ADMIN, ROLE_SUPER_ADMIN)),
    store: DirectoryStore = Depends(directory_store),
    users: IdentityStore = Depends(user_store),
) -> dict:
    result = fetch_page(store.collection("registrations"), list_query(request, ALL_LIST))
    return page_of(embed_page(result, embed_registrations, store, users), RegistrationResponse)


@router.post("/registrations", response_model=RegistrationResponse, status_code=201)
def create_registration(
    body: RegistrationCreate,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
    users: IdentityStore = Depends(user_store),
):
    _check_branch(store, body.center_id, body.branch_id)
    registration_id = store.create("registrations", user_id=principal.id, **body.model_dump())
    logger.info("User %s registered at branch %s", principal.id, body.branch_id)
    return embed_one(store.get("registrations", registration_id), embed_registrations, store, users)


@router.patch("/registrations/{registration_id}", response_model=RegistrationResponse)
def update_registration(
    registration_id: RowId,
    body: RegistrationPatch,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
    users: IdentityStore = Depends(user_store),
):
    registration = get_or_404(store, "registrations", registration_id, _MISSING)
    if registration.user_id != principal.id:
        raise Forbidden()
    changes = patch_changes(body, store.table("registrations"))
    if "center_id" in changes or "branch_id" in changes:
        _check_branch(
            store,
            changes.get("center_id", registration.center_id),
            changes.get("branch_id", registration.branch_id),
        )
    store.update("registrations", registration_id, **changes)
    return embed_one(store.get("registrations", registration_id), embed_registrations, store, users)


@router.delete("/registrations/{registration_id}", status_code=204)
def delete_registration(
    registration_id: RowId,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
) -> Response:
    registration = get_or_404(store, "registrations", registration_id, _MISSING)
    if registration.user_id != principal.id:
        raise Forbidden()
    store.delete("registrations", registration_id)
    return Response(status_code=204)
