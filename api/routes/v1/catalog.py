"""
api/routes/v1/catalog.py -- Subject and field catalogs.

Both catalogs are {name, image} lists with unique names, so one router
factory serves both:

  GET    /<prefix>/all   -- public, paginated; filter name, sorts nameSort / createdAt
  GET    /<prefix>/{id}  -- public
  POST   /<prefix>       -- admin, super-admin
  PATCH  /<prefix>/{id}  -- admin, super-admin
  DELETE /<prefix>/{id}  -- admin, super-admin
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.deps import RowId, create_unique, directory_store, get_or_404, list_query, patch_changes, update_unique
from api.models import CatalogCreate, CatalogPatch, CatalogResponse, Page, page_of
from auth.dependencies import require_roles
from auth.models import ROLE_ADMIN, ROLE_SUPER_ADMIN, Principal
from core.errors import NotFound
from core.listing import LIKE, ListSpec, fetch_page
from directory.store import DirectoryStore

CATALOG_LIST = ListSpec(
    filters={"name": ("name", LIKE)},
    sorts={"nameSort": "name", "createdAt": "created_at"},
)

_admin = require_roles(ROLE_ADMIN, ROLE_SUPER_ADMIN)


def catalog_router(entity: str, label: str) -> APIRouter:
    """Build the CRUD router for one catalog table mounted at /<entity>."""
    duplicate = f"{label} already exists"
    missing = f"{label} not found"
    router = APIRouter()

    @router.get(f"/{entity}/all", response_model=Page[CatalogResponse])
    def list_entries(request: Request, store: DirectoryStore = Depends(directory_store)) -> dict:
        return page_of(fetch_page(store.collection(entity), list_query(request, CATALOG_LIST)), CatalogResponse)

    @router.get(f"/{entity}/{{entry_id}}", response_model=CatalogResponse)
    def get_entry(entry_id: RowId, store: DirectoryStore = Depends(directory_store)):
        return get_or_404(store, entity, entry_id, missing)

    @router.post(f"/{entity}", response_model=CatalogResponse, status_code=201)
    def create_entry(
        body: CatalogCreate,
        principal: Principal = Depends(_admin),
        store: DirectoryStore = Depends(directory_store),
    ):
        return create_unique(store, entity, duplicate, **body.model_dump())

    @router.patch(f"/{entity}/{{entry_id}}", response_model=CatalogResponse)
    def update_entry(
        entry_id: RowId,
        body: CatalogPatch,
        principal: Principal = Depends(_admin),
        store: DirectoryStore = Depends(directory_store),
    ):
        get_or_404(store, entity, entry_id, missing)
        return update_unique(store, entity, entry_id, patch_changes(body, store.table(entity)), duplicate)

    @router.delete(f"/{entity}/{{entry_id}}", status_code=204)
    def delete_entry(
        entry_id: RowId,
        principal: Principal = Depends(_admin),
        store: DirectoryStore = Depends(directory_store),
    ) -> Response:
        if not store.delete(entity, entry_id):
            raise NotFound(missing)
        return Response(status_code=204)

    return router


subjects_router = catalog_router("subjects", "Subject")
fields_router = catalog_router("fields", "Field")
