"""
api/related.py -- Embeds related rows into center, branch and registration responses.

Each embed_* function takes a batch of directory rows and returns plain dicts
with small summaries attached:

    centers        region {id, name}, user {id, name}
    branches       region {id, name}, center {id, name}, user {id, name}
    registrations  user {id, name, email}, center {id, name}, branch {id, name}

One IN query per relation for the whole batch, never one per row. Users live
in the identity store, so their summaries come from IdentityStore.get_many().
A reference whose target no longer exists is embedded as null.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, replace
from typing import Any, Optional

from auth.models import Identity
from auth.store import IdentityStore
from core.listing import PageResult
from directory.store import DirectoryStore

Embed = Callable[[list, DirectoryStore, IdentityStore], list[dict]]


def _ref(names: dict[int, str], row_id: int) -> Optional[dict]:
    name = names.get(row_id)
    return {"id": row_id, "name": name} if name is not None else None


def _user_ref(identities: dict[int, Identity], user_id: int, *, with_email: bool = False) -> Optional[dict]:
    identity = identities.get(user_id)
    if identity is None:
        return None
    ref: dict[str, Any] = {"id": identity.id, "name": identity.full_name}
    if with_email:
        ref["email"] = identity.email
    return ref


def embed_centers(rows: list, directory: DirectoryStore, users: IdentityStore) -> list[dict]:
    regions = directory.names_by_id("regions", (r.region_id for r in rows))
    owners = users.get_many(r.user_id for r in rows)
    return [{**asdict(r), "region": _ref(regions, r.region_id), "user": _user_ref(owners, r.user_id)} for r in rows]


def embed_branches(rows: list, directory: DirectoryStore, users: IdentityStore) -> list[dict]:
    regions = directory.names_by_id("regions", (r.region_id for r in rows))
    centers = directory.names_by_id("centers", (r.center_id for r in rows))
    owners = users.get_many(r.user_id for r in rows)
    return [
        {
            **asdict(r),
            "region": _ref(regions, r.region_id),
            "center": _ref(centers, r.center_id),
            "user": _user_ref(owners, r.user_id),
        }
        for r in rows
    ]


def embed_registrations(rows: list, directory: DirectoryStore, users: IdentityStore) -> list[dict]:
    centers = directory.names_by_id("centers", (r.center_id for r in rows))
    branches = directory.names_by_id("branches", (r.branch_id for r in rows))
    registrants = users.get_many(r.user_id for r in rows)
    return [
        {
            **asdict(r),
            "user": _user_ref(registrants, r.user_id, with_email=True),
            "center": _ref(centers, r.center_id),
            "branch": _ref(branches, r.branch_id),
        }
        for r in rows
    ]


def embed_one(row: Any, embed: Embed, directory: DirectoryStore, users: IdentityStore) -> dict:
    return embed([row], directory, users)[0]


def embed_page(result: PageResult, embed: Embed, directory: DirectoryStore, users: IdentityStore) -> PageResult:
    return replace(result, rows=embed(result.rows, directory, users))
