"""
api/routes/v1/centers.py -- Education centers and their branches.

Routes:
  GET    /centers/all     -- public; filters name, regionId, userId; sorts nameSort, createdAt
  GET    /centers/{id}    -- public
  POST   /centers         -- admin, ceo; the caller becomes the owner
  PATCH  /centers/{id}    -- admin any, ceo own
  DELETE /centers/{id}    -- admin any, ceo own

  GET    /branches/all    -- requires auth; filters name, regionId, centerId
  GET    /branches/{id}   -- requires auth
  POST   /branches        -- admin, ceo; a ceo may only branch a center they own;
                             the center's owner becomes the branch owner
  PATCH  /branches/{id}   -- admin any, ceo own
  DELETE /branches/{id}   -- admin any, ceo own

IDOR guard: ownership is always read from the stored row (user_id), never
from the request body. A foreign row answers 403.

Responses embed region and user summaries (branches also the center); see
api/related.py. Deleting a center also deletes its branches, comments, likes
and course registrations.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.deps import (
    RowId,
    check_region,
    directory_store,
    ensure_owner,
    get_or_404,
    list_query,
    patch_changes,
    user_store,
)
from api.models import (
    BranchCreate,
    BranchPatch,
    BranchResponse,
    CenterCreate,
    CenterPatch,
    CenterResponse,
    Page,
    page_of,
)
from api.related import embed_branches, embed_centers, embed_one, embed_page
from auth.dependencies import authenticate, require_roles
from auth.models import ROLE_ADMIN, ROLE_CEO, ROLE_SUPER_ADMIN, Principal
from auth.store import IdentityStore
from core.listing import EQ, LIKE, ListSpec, fetch_page
from directory.store import DirectoryStore

CENTER_LIST = ListSpec(
    filters={"name": ("name", LIKE), "regionId": ("region_id", EQ), "userId": ("user_id", EQ)},
    sorts={"nameSort": "name", "createdAt": "created_at"},
)

BRANCH_LIST = ListSpec(
    filters={"name": ("name", LIKE), "regionId": ("region_id", EQ), "centerId": ("center_id", EQ)},
    sorts={"nameSort": "name", "createdAt": "created_at"},
)

_managers = require_roles(ROLE_ADMIN, ROLE_SUPER_ADMIN, ROLE_CEO)

router = APIRouter()


# ---------------------------------------------------------------------------
# Centers
# ---------------------------------------------------------------------------
@router.get("/centers/all", response_model=Page[CenterResponse])
def list_centers(
    request: Request,
    store: DirectoryStore = Depends(directory_store),
    users: IdentityStore = Depends(user_store),
) -> dict:
    result = fetch_page(store.collection("centers"), list_query(request, CENTER_LIST))
    return page_of(embed_page(result, embed_centers, store, users), CenterResponse)


@router.get("/centers/{center_id}", response_model=CenterResponse)
def get_center(
    center_id: RowId,
    store: DirectoryStore = Depends(directory_store),
    users: IdentityStore = Depends(user_store),
):
    center = get_or_404(store, "centers", center_id, "Center not found")
    return embed_one(center, embed_centers, store, users)


@router.post("/centers", response_model=CenterResponse, status_code=201)
def create_center(
    body: CenterCreate,
    principal: Principal = Depends(_managers),
    store: DirectoryStore = Depends(directory_store),
    users: IdentityStore = Depends(user_store),
):
    check_region(store, body.region_id)
    center_id = store.create("centers", user_id=principal.id, **body.model_dump())
    return embed_one(store.get("centers", center_id), embed_centers, store, users)


@router.patch("/centers/{center_id}", response_model=CenterResponse)
def update_center(
    center_id: RowId,
    body: CenterPatch,
    principal: Principal = Depends(_managers),
    store: DirectoryStore = Depends(directory_store),
    users: IdentityStore = Depends(user_store),
):
    center = get_or_404(store, "centers", center_id, "Center not found")
    ensure_owner(center, principal)
    changes = patch_changes(body, store.table("centers"))
    check_region(store, changes.get("region_id"))
    store.update("centers", center_id, **changes)
    return embed_one(store.get("centers", center_id), embed_centers, store, users)


@router.delete("/centers/{center_id}", status_code=204)
def delete_center(
    center_id: RowId,
    principal: Principal = Depends(_managers),
    store: DirectoryStore = Depends(directory_store),
) -> Response:
    center = get_or_404(store, "centers", center_id, "Center not found")
    ensure_owner(center, principal)
    store.delete("centers", center_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Branches
# ---------------------------------------------------------------------------


@router.get("/branches/all", response_model=Page[BranchResponse])
def list_branches(
    request: Request,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
    users: IdentityStore = Depends(user_store),
) -> dict:
    result = fetch_page(store.collection("branches"), list_query(request, BRANCH_LIST))
    return page_of(embed_page(result, embed_branches, store, users), BranchResponse)


@router.get("/branches/{branch_id}", response_model=BranchResponse)
def get_branch(
    branch_id: RowId,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
    users: IdentityStore = Depends(user_store),
):
    branch = get_or_404(store, "branches", branch_id, "Branch not found")
    return embed_one(branch, embed_branches, store, users)


@router.post("/branches", response_model=BranchResponse, status_code=201)
def create_branch(
    body: BranchCreate,
    principal: Principal = Depends(_managers),
    store: DirectoryStore = Depends(directory_store),
    users: IdentityStore = Depends(user_store),
):
    center = get_or_404(store, "centers", body.center_id, "Center not found")
    ensure_owner(center, principal)
    check_region(store, body.region_id)
    # owned by the center's owner, not the caller
    branch_id = store.create("branches", user_id=center.user_id, **body.model_dump())
    return embed_one(store.get("branches", branch_id), embed_branches, store, users)


@router.patch("/branches/{branch_id}", response_model=BranchResponse)
def update_branch(
    branch_id: RowId,
    body: BranchPatch,
    principal: Principal = Depends(_managers),
    store: DirectoryStore = Depends(directory_store),
    users: IdentityStore = Depends(user_store),
):
    branch = get_or_404(store, "branches", branch_id, "Branch not found")
    ensure_owner(branch, principal)
    changes = patch_changes(body, store.table("branches"))
    check_region(store, changes.get("region_id"))
    store.update("branches", branch_id, **changes)
    return embed_one(store.get("branches", branch_id), embed_branches, store, users)


@router.delete("/branches/{branch_id}", status_code=204)
def delete_branch(
    branch_id: RowId,
    principal: Principal = Depends(_managers),
    store: DirectoryStore = Depends(directory_store),
) -> Response:
    branch = get_or_404(store, "branches", branch_id, "Branch not found")
    ensure_owner(branch, principal)
    store.delete("branches", branch_id)
    return Response(status_code=204)
