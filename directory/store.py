"""
directory/store.py -- SQLAlchemy-backed persistence layer for the directory.

Uses SQLAlchemy Core (not ORM) so the dataclasses in directory/models.py stay
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. DirectoryStore exposes one small generic
interface keyed by entity name ("regions", "centers", ...):

    create(entity, **attrs) -> id
    get(entity, id) / find_by_field(entity, field, value) / find_one(entity, **eq)
    update(entity, id, **attrs) -> bool
    delete(entity, id) -> bool
    count(entity, predicate) / find_page(entity, predicate, order, limit, offset)

Referential rules: deleting a center removes its branches, comments, likes
and course registrations; deleting a branch removes its registrations. A
region still used by a center or branch cannot be deleted (IntegrityError).
user_id columns point into the identity store and carry no foreign key.

collection(entity) binds the paging pair to one table so core.listing can
drive it as a PageSource. _row_to_model is the single mapper.

Security: all queries use bound parameters. Column names passed to create()
and update() are checked against the table before any SQL is built.

Usage:
    store = DirectoryStore()                               # SQLite default
    store = DirectoryStore("postgresql://user:pw@host/db") # PostgreSQL
    region_id = store.create("regions", name="Tashkent")
    store.close()
"""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.sql.elements import ColumnElement

from core.config import get_settings
from directory.models import Branch, Center, Comment, CourseRegistration, Field, Like, Region, Resource, Subject

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_regions = Table(
    "regions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("created_at", String(32), nullable=False),
)

_centers = Table(
    "centers",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("region_id", Integer, ForeignKey("regions.id"), nullable=False),
    Column("user_id", Integer, nullable=False),
    Column("location", String(255), nullable=False),
    Column("phone", String(20), nullable=False),
    Column("image", String(255)),
    Column("created_at", String(32), nullable=False),
)

_branches = Table(
    "branches",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("center_id", Integer, ForeignKey("centers.id", ondelete="CASCADE"), nullable=False),
    Column("region_id", Integer, ForeignKey("regions.id"), nullable=False),
    Column("user_id", Integer, nullable=False),
    Column("location", String(255)),
    Column("phone", String(20)),
    Column("image", String(255)),
    Column("created_at", String(32), nullable=False),
)

_subjects = Table(
    "subjects",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("image", String(255)),
    Column("created_at", String(32), nullable=False),
)

_fields = Table(
    "fields",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("image", String(255)),
    Column("created_at", String(32), nullable=False),
)

_resources = Table(
    "resources",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("user_id", Integer, nullable=False),
    Column("category_id", Integer),
    Column("description", Text),
    Column("media", String(500)),
    Column("image", String(255)),
    Column("created_at", String(32), nullable=False),
)

_comments = Table(
    "comments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("center_id", Integer, ForeignKey("centers.id", ondelete="CASCADE"), nullable=False),
    Column("description", String(255), nullable=False),
    Column("star", Integer),
    Column("created_at", String(32), nullable=False),
)

_likes = Table(
    "likes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("center_id", Integer, ForeignKey("centers.id", ondelete="CASCADE"), nullable=False),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("user_id", "center_id", name="uq_like_user_center"),
)

_registrations = Table(
    "course_registrations",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("center_id", Integer, ForeignKey("centers.id", ondelete="CASCADE"), nullable=False),
    Column("branch_id", Integer, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False),
    Column("date", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
)

_TABLES: dict[str, Table] = {
    "regions": _regions,
    "centers": _centers,
    "branches": _branches,
    "subjects": _subjects,
    "fields": _fields,
    "resources": _resources,
    "comments": _comments,
    "likes": _likes,
    "registrations": _registrations,
}

_MODELS: dict[str, type] = {
    "regions": Region,
    "centers": Center,
    "branches": Branch,
    "subjects": Subject,
    "fields": Field,
    "resources": Resource,
    "comments": Comment,
    "likes": Like,
    "registrations": CourseRegistration,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. Without foreign_keys=ON SQLite ignores the
    schema's ON DELETE CASCADE rules.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def _table(entity: str) -> Table:
    try:
        return _TABLES[entity]
    except KeyError:
        raise ValueError(f"Unknown entity: {entity!r}") from None


def _checked(table: Table, attrs: dict) -> dict:
    unknown = {k for k in attrs if k not in table.c or k in ("id", "created_at")}
    if unknown:
        raise ValueError(f"Unknown {table.name} fields: {unknown!r}")
    return attrs


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class _Collection:
    """One table's paging pair, shaped for core.listing.fetch_page()."""

    def __init__(self, store: "DirectoryStore", entity: str) -> None:
        self.store = store
        self.entity = entity
        self.table = _table(entity)

    def count(self, predicate: ColumnElement) -> int:
        return self.store.count(self.entity, predicate)

    def find_page(self, predicate: ColumnElement, order: list, limit: int, offset: int) -> list:
        return self.store.find_page(self.entity, predicate, order, limit, offset)


class DirectoryStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # SQLite requires check_same_thread=False when used from FastAPI's
            # threadpool, where one connection may be touched by several threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        metadata.create_all(self.engine)

    def table(self, entity: str) -> Table:
        return _table(entity)

    def collection(self, entity: str) -> _Collection:
        return _Collection(self, entity)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, entity: str, **attrs) -> int:
        """Insert a row and return its ID.

        Raises sqlalchemy.exc.IntegrityError on a UNIQUE clash (region/subject/
        field name, one like per user and center) or a dangling foreign key.
        Callers translate it.
        """
        table = _table(entity)
        values = _checked(table, attrs)
        with self.engine.connect() as conn:
            result = conn.execute(table.insert().values(**values, created_at=_now_iso()))
            conn.commit()
            return result.inserted_primary_key[0]

    def update(self, entity: str, row_id: int, **attrs) -> bool:
        """Update the given columns. Returns True if a row was updated."""
        table = _table(entity)
        values = _checked(table, attrs)
        if not values:
            return self.get(entity, row_id) is not None
        with self.engine.connect() as conn:
            result = conn.execute(table.update().where(table.c.id == row_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete(self, entity: str, row_id: int) -> bool:
        """Delete a row and its ON DELETE CASCADE dependents.

        Returns True if deleted, False if not found. Raises IntegrityError
        when a non-cascading reference still points at the row.
        """
        table = _table(entity)
        with self.engine.connect() as conn:
            result = conn.execute(table.delete().where(table.c.id == row_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, entity: str, row_id: int) -> Optional[Any]:
        """Fetch one row by ID. Returns None if not found."""
        return self.find_one(entity, id=row_id)

    def find_by_field(self, entity: str, field: str, value: Any) -> Optional[Any]:
        return self.find_one(entity, **{field: value})

    def find_one(self, entity: str, **equals) -> Optional[Any]:
        """Return the first row matching every column == value pair, or None."""
        table = _table(entity)
        stmt = table.select()
        for column, value in equals.items():
            stmt = stmt.where(table.c[column] == value)
        with self.engine.connect() as conn:
            row = conn.execute(stmt.order_by(table.c.id).limit(1)).fetchone()
        return _row_to_model(entity, row) if row is not None else None

    def names_by_id(self, entity: str, ids: Iterable[int]) -> dict[int, str]:
        """Map each existing id in ids to the row's name, in one IN query."""
        table = _table(entity)
        wanted = sorted(set(ids))
        if not wanted:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(select(table.c.id, table.c.name).where(table.c.id.in_(wanted))).fetchall()
        return {row.id: row.name for row in rows}

    def count(self, entity: str, predicate: ColumnElement) -> int:
        table = _table(entity)
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(table).where(predicate)).scalar()
        return result or 0

    def find_page(self, entity: str, predicate: ColumnElement, order: list, limit: int, offset: int) -> list:
        table = _table(entity)
        with self.engine.connect() as conn:
            rows = conn.execute(table.select().where(predicate).order_by(*order).limit(limit).offset(offset)).fetchall()
        return [_row_to_model(entity, r) for r in rows]

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_model(entity: str, row) -> Any:
    return _MODELS[entity](**dict(row._mapping))
