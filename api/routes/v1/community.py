"""
api/routes/v1/community.py -- Comments and likes on education centers.

Routes:
  GET    /comments/all   -- public; filters centerId, userId; sorts starSort, createdAt
  GET    /comments/{id}  -- public
  POST   /comments       -- requires auth; the caller becomes the author; star 1..5
  PATCH  /comments/{id}  -- author or admin
  DELETE /comments/{id}  -- author or admin

  GET    /likes/all      -- public; filters centerId, userId
  POST   /likes          -- requires auth; one like per user per center
  DELETE /likes/{id}     -- owner or admin
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from api.deps import RowId, create_unique, directory_store, ensure_owner, get_or_404, list_query, patch_changes
from api.models import (
    CommentCreate,
    CommentPatch,
    CommentResponse,
    LikeCreate,
    LikeResponse,
    Page,
    page_of,
)
from auth.dependencies import authenticate
from auth.models import Principal
from core.listing import EQ, ListSpec, fetch_page
from directory.store import DirectoryStore

logger = logging.getLogger("educenter.api.community")

COMMENT_LIST = ListSpec(
    filters={"centerId": ("center_id", EQ), "userId": ("user_id", EQ), "star": ("star", EQ)},
    sorts={"starSort": "star", "createdAt": "created_at"},
)

LIKE_LIST = ListSpec(
    filters={"centerId": ("center_id", EQ), "userId": ("user_id", EQ)},
    sorts={"createdAt": "created_at"},
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


@router.get("/comments/all", response_model=Page[CommentResponse])
def list_comments(request: Request, store: DirectoryStore = Depends(directory_store)) -> dict:
    return page_of(fetch_page(store.collection("comments"), list_query(request, COMMENT_LIST)), CommentResponse)


@router.get("/comments/{comment_id}", response_model=CommentResponse)
def get_comment(comment_id: RowId, store: DirectoryStore = Depends(directory_store)):
    return get_or_404(store, "comments", comment_id, "Comment not found")


@router.post("/comments", response_model=CommentResponse, status_code=201)
def create_comment(
    body: CommentCreate,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
):
    get_or_404(store, "centers", body.center_id, "Center not found")
    comment_id = store.create("comments", user_id=principal.id, **body.model_dump())
    return store.get("comments", comment_id)


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
def update_comment(
    comment_id: RowId,
    body: CommentPatch,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
):
    comment = get_or_404(store, "comments", comment_id, "Comment not found")
    ensure_owner(comment, principal)
    store.update("comments", comment_id, **patch_changes(body, store.table("comments")))
    return store.get("comments", comment_id)


@router.delete("/comments/{comment_id}", status_code=204)
def delete_comment(
    comment_id: RowId,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
) -> Response:
    comment = get_or_404(store, "comments", comment_id, "Comment not found")
    ensure_owner(comment, principal)
    store.delete("comments", comment_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Likes
# ---------------------------------------------------------------------------


@router.get("/likes/all", response_model=Page[LikeResponse])
def list_likes(request: Request, store: DirectoryStore = Depends(directory_store)) -> dict:
    return page_of(fetch_page(store.collection("likes"), list_query(request, LIKE_LIST)), LikeResponse)


@router.post("/likes", response_model=LikeResponse, status_code=201)
def create_like(
    body: LikeCreate,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
):
    get_or_404(store, "centers", body.center_id, "Center not found")
    like = create_unique(
        store, "likes", "You already liked this center", user_id=principal.id, center_id=body.center_id
    )
    logger.info("Center %s liked by user %s", body.center_id, principal.id)
    return like


@router.delete("/likes/{like_id}", status_code=204)
def delete_like(
    like_id: RowId,
    principal: Principal = Depends(authenticate),
    store: DirectoryStore = Depends(directory_store),
) -> Response:
    like = get_or_404(store, "likes", like_id, "Like not found")
    ensure_owner(like, principal)
    store.delete("likes", like_id)
    return Response(status_code=204)
