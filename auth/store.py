"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper (same as directory/store.py).
IdentityStore is the repository; _row_to_identity is the mapper.
Route and flow code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  email and phone carry UNIQUE constraints. The auth flow checks both up
  front for a friendly error, and the constraint catches the race where two
  registrations for the same address pass the check concurrently.

Paging: count() and find_page() satisfy core.listing.PageSource, so the
admin user listing reuses the shared list-query engine.

Layer rule: no imports from api/ or directory/.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.sql.elements import ColumnElement

from auth.models import STATUS_ACTIVE, Identity
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("phone", String(20), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("full_name", String(255), nullable=False),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("region_id", Integer),  # directory region; not a cross-store FK
    Column("year", Integer),
    Column("image", String(255)),
    Column("created_at", String(32), nullable=False),
    Column("last_login", Text),
)

# Columns a caller may change through update_identity(). Anything else
# (id, email, created_at) is fixed at creation time.
_MUTABLE_FIELDS = {"phone", "hashed_password", "full_name", "role", "status", "region_id", "year", "image"}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class IdentityStore:
    """Repository for Identity records.

    Usage:
        store = IdentityStore()
        uid = store.create_identity(Identity(email=..., phone=..., ...))
        identity = store.get_by_email("a@x.com")
        store.close()
    """

    table = _users

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_identity(self, identity: Identity) -> int:
        """Insert a new identity and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email or phone already
        exists. Callers translate that into DuplicateIdentity.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=identity.email,
                    phone=identity.phone,
                    hashed_password=identity.hashed_password,
                    full_name=identity.full_name,
                    role=identity.role,
                    status=identity.status,
                    region_id=identity.region_id,
                    year=identity.year,
                    image=identity.image,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_identity(self, identity_id: int, **fields) -> bool:
        """Update mutable fields on an existing identity.

        Unknown field names raise ValueError rather than being written -- the
        column list is an allow-list, never raw request keys.

        Returns True if a row was updated, False if identity_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown identity fields: {unknown!r}")
        if not fields:
            return self.get_by_id(identity_id) is not None
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == identity_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def activate(self, identity_id: int) -> bool:
        """Flip a pending identity to active.

        The WHERE clause includes status != active so the transition happens
        at most once; returns False when the row was already active (or gone).
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == identity_id) & (_users.c.status != STATUS_ACTIVE))
                .values(status=STATUS_ACTIVE)
            )
            conn.commit()
        return result.rowcount > 0

    def update_last_login(self, identity_id: int) -> None:
        """Stamp the current UTC timestamp as last_login."""
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == identity_id).values(last_login=_now_iso()))
            conn.commit()

    def delete_identity(self, identity_id: int) -> bool:
        """Permanently delete an identity. Returns True if deleted, False if not found.

        Rows in the directory that reference this id (centers, comments, likes)
        are left in place.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == identity_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(self, identity_id: int) -> Identity | None:
        """Look up an identity by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == identity_id)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def get_many(self, identity_ids: Iterable[int]) -> dict[int, Identity]:
        """Map each existing id in identity_ids to its Identity, in one IN query."""
        wanted = sorted(set(identity_ids))
        if not wanted:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().where(_users.c.id.in_(wanted))).fetchall()
        return {row.id: _row_to_identity(row) for row in rows}

    def get_by_email(self, email: str) -> Identity | None:
        """Look up an identity by email (stored lowercase). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email.lower())).fetchone()
        return _row_to_identity(row) if row is not None else None

    def get_by_phone(self, phone: str) -> Identity | None:
        """Look up an identity by exact phone number. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.phone == phone)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def count(self, predicate: ColumnElement) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users).where(predicate)).scalar()
        return result or 0

    def find_page(self, predicate: ColumnElement, order: list, limit: int, offset: int) -> list[Identity]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select().where(predicate).order_by(*order).limit(limit).offset(offset)
            ).fetchall()
        return [_row_to_identity(r) for r in rows]

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_identity(row) -> Identity:
    return Identity(
        id=row.id,
        email=row.email,
        phone=row.phone,
        hashed_password=row.hashed_password,
        full_name=row.full_name,
        role=row.role,
        status=row.status,
        region_id=row.region_id,
        year=row.year,
        image=row.image,
        created_at=row.created_at,
        last_login=row.last_login,
    )
