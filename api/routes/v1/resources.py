"""
api/routes/v1/resources.py -- Learning resources shared by users.

Routes:
  GET    /resources/all   -- requires auth; filters name, categoryId, userId
  GET    /resources/{id}  -- requires auth
  POST   /resources       -- requires auth; the caller becomes the owner
  PATCH  /resources/{id}  -- owner; admin and super-admin may edit any
  DELETE /resources/{id}  -- owner; admin and super-admin may delete any

A foreign resource answers 404 on PATCH/DELETE, not 403, so its existence
is not confirmed to callers who cannot touch it.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.deps import RowId, directory_store, ensure_owner, get_or_404, list_query, patch_changes
from api.models import Page, ResourceCreate, ResourcePatch, ResourceResponse, page_of
from auth.dependencies import authenticate
from auth.models import Principal
from core.listing import EQ, LIKE, ListSpec, fetch_page
from directory.store import DirectoryStore

RESOURCE_LIST = ListSpec(
    filters={"name": ("name", LIKE), "categoryId": ("category_id", EQ), "userId": ("user_id", EQ)},
    sorts={"nameSort": "name", "createdAt": "created_at"},
)

_MISSING = "Resource not found"

router = APIRouter()


@router.get("/resources/all", response_model=Page[ResourceResponse])
def list_resources(
    request: Request,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
) -> dict:
    return page_of(fetch_page(store.collection("resources"), list_query(request, RESOURCE_LIST)), ResourceResponse)


@router.get("/resources/{resource_id}", response_model=ResourceResponse)
def get_resource(
    resource_id: RowId,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
):
    return get_or_404(store, "resources", resource_id, _MISSING)


@router.post("/resources", response_model=ResourceResponse, status_code=201)
def create_resource(
    body: ResourceCreate,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
):
    resource_id = store.create("resources", user_id=principal.id, **body.model_dump())
    return store.get("resources", resource_id)


@router.patch("/resources/{resource_id}", response_model=ResourceResponse)
def update_resource(
    resource_id: RowId,
    body: ResourcePatch,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
):
    resource = get_or_404(store, "resources", resource_id, _MISSING)
    ensure_owner(resource, principal, hide=True)
    store.update("resources", resource_id, **patch_changes(body, store.table("resources")))
    return store.get("resources", resource_id)


@router.delete("/resources/{resource_id}", status_code=204)
def delete_resource(
    resource_id: RowId,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
) -> Response:
    resource = get_or_404(store, "resources", resource_id, _MISSING)
    ensure_owner(resource, principal, hide=True)
    store.delete("resources", resource_id)
    return Response(status_code=204)
