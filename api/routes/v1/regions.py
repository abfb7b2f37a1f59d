"""
api/routes/v1/regions.py -- Region catalog endpoints.

Routes:
  GET    /regions/all   -- public, paginated; filter name, sorts nameSort / createdAt
  GET    /regions/{id}  -- public
  POST   /regions       -- admin
  PATCH  /regions/{id}  -- admin, super-admin
  DELETE /regions/{id}  -- admin

Region names are unique; a clash answers 400. A region still used by a center
or branch cannot be deleted (400).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import IntegrityError

from api.deps import RowId, create_unique, directory_store, get_or_404, list_query, update_unique
from api.models import Page, RegionCreate, RegionResponse, page_of
from auth.dependencies import require_roles
from auth.models import ROLE_ADMIN, ROLE_SUPER_ADMIN, Principal
from core.errors import NotFound, ValidationError
from core.listing import LIKE, ListSpec, fetch_page
from directory.store import DirectoryStore

REGION_LIST = ListSpec(
    filters={"name": ("name", LIKE)},
    sorts={"nameSort": "name", "createdAt": "created_at"},
)

_DUPLICATE = "Region already exists"
_MISSING = "Region not found"

router = APIRouter()


@router.get("/regions/all", response_model=Page[RegionResponse])
def list_regions(request: Request, store: DirectoryStore = Depends(directory_store)) -> dict:
    return page_of(fetch_page(store.collection("regions"), list_query(request, REGION_LIST)), RegionResponse)


@router.get("/regions/{region_id}", response_model=RegionResponse)
def get_region(region_id: RowId, store: DirectoryStore = Depends(directory_store)):
    return get_or_404(store, "regions", region_id, _MISSING)


@router.post("/regions", response_model=RegionResponse, status_code=201)
def create_region(
    body: RegionCreate,
    principal: Principal = Depends(require_roles(ROLE_ADMIN)),
    store: DirectoryStore = Depends(directory_store),
):
    return create_unique(store, "regions", _DUPLICATE, name=body.name)


@router.patch("/regions/{region_id}", response_model=RegionResponse)
def update_region(
    region_id: RowId,
    body: RegionCreate,
    principal: Principal = Depends(require_roles(ROLE_ADMIN, ROLE_SUPER_ADMIN)),
    store: DirectoryStore = Depends(directory_store),
):
    get_or_404(store, "regions", region_id, _MISSING)
    return update_unique(store, "regions", region_id, {"name": body.name}, _DUPLICATE)


@router.delete("/regions/{region_id}", status_code=204)
def delete_region(
    region_id: RowId,
    principal: Principal = Depends(require_roles(ROLE_ADMIN)),
    store: DirectoryStore = Depends(directory_store),
) -> Response:
    try:
        deleted = store.delete("regions", region_id)
    except IntegrityError as exc:
        raise ValidationError("Region is still used by centers or branches") from exc
    if not deleted:
        raise NotFound(_MISSING)
    return Response(status_code=204)
