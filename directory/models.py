"""
directory/models.py -- Domain dataclasses for the EduCenter directory.

Pure data containers with zero logic. Field names match the column names in
directory/store.py one to one, which is what lets the store map rows with a
single generic mapper.

id is None before the record is written to the database; created_at is set
by the store on insert.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Region:
    name: str
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class Center:
    """An education center. user_id is the owning account (a "ceo" or an admin)."""

    name: str
    region_id: int
    user_id: int
    location: str
    phone: str
    image: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class Branch:
    """A physical branch of a center. user_id is the owner allowed to edit it."""

    name: str
    center_id: int
    region_id: int
    user_id: int
    location: Optional[str] = None
    phone: Optional[str] = None
    image: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class Subject:
    name: str
    image: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class Field:
    """A field of study (IT, languages, ...)."""

    name: str
    image: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class Resource:
    """A learning resource shared by a user. category_id is a free grouping key."""

    name: str
    user_id: int
    category_id: Optional[int] = None
    description: Optional[str] = None
    media: Optional[str] = None
    image: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class Comment:
    user_id: int
    center_id: int
    description: str
    star: Optional[int] = None  # 1..5
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class Like:
    user_id: int
    center_id: int
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class CourseRegistration:
    """A user's sign-up for a course at a given center branch."""

    user_id: int
    center_id: int
    branch_id: int
    date: str
    id: Optional[int] = None
    created_at: str = ""
