"""
tests/test_stores.py -- Unit tests for auth/store.py and directory/store.py.

Each test class gets its own named shared-memory DB via module fixtures.
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import STATUS_ACTIVE, STATUS_PENDING, Identity
from auth.store import IdentityStore
from directory.models import Like, Region
from directory.store import DirectoryStore


@pytest.fixture(scope="module")
def identities():
    store = IdentityStore("sqlite:///file:test_store_identities?mode=memory&cache=shared&uri=true")
    yield store
    store.close()


@pytest.fixture(scope="module")
def directory():
    store = DirectoryStore("sqlite:///file:test_store_directory?mode=memory&cache=shared&uri=true")
    yield store
    store.close()


def _identity(email: str, phone: str) -> Identity:
    return Identity(email=email, phone=phone, full_name="Ali", role="user", hashed_password="x")


def _center(directory: DirectoryStore, region_name: str) -> int:
    region_id = directory.create("regions", name=region_name)
    return directory.create(
        "centers", name="Center", region_id=region_id, user_id=1, location="Main street 1", phone="+998901111111"
    )


class TestIdentityStore:
    def test_create_and_read_back(self, identities: IdentityStore) -> None:
        uid = identities.create_identity(_identity("a1@example.com", "+998900000001"))
        found = identities.get_by_id(uid)
        assert found is not None
        assert found.email == "a1@example.com"
        assert found.status == STATUS_PENDING
        assert found.created_at

    def test_lookup_by_email_is_case_insensitive(self, identities: IdentityStore) -> None:
        identities.create_identity(_identity("a2@example.com", "+998900000002"))
        assert identities.get_by_email("A2@Example.COM") is not None

    def test_lookup_by_phone(self, identities: IdentityStore) -> None:
        identities.create_identity(_identity("a3@example.com", "+998900000003"))
        assert identities.get_by_phone("+998900000003").email == "a3@example.com"

    def test_duplicate_email_rejected(self, identities: IdentityStore) -> None:
        identities.create_identity(_identity("a4@example.com", "+998900000004"))
        with pytest.raises(IntegrityError):
            identities.create_identity(_identity("a4@example.com", "+998900000044"))

    def test_duplicate_phone_rejected(self, identities: IdentityStore) -> None:
        identities.create_identity(_identity("a5@example.com", "+998900000005"))
        with pytest.raises(IntegrityError):
            identities.create_identity(_identity("a55@example.com", "+998900000005"))

    def test_activate_only_once(self, identities: IdentityStore) -> None:
        uid = identities.create_identity(_identity("a6@example.com", "+998900000006"))
        assert identities.activate(uid) is True
        assert identities.activate(uid) is False
        assert identities.get_by_id(uid).status == STATUS_ACTIVE

    def test_update_rejects_unknown_fields(self, identities: IdentityStore) -> None:
        uid = identities.create_identity(_identity("a7@example.com", "+998900000007"))
        with pytest.raises(ValueError):
            identities.update_identity(uid, email="other@example.com")

    def test_update_and_last_login(self, identities: IdentityStore) -> None:
        uid = identities.create_identity(_identity("a8@example.com", "+998900000008"))
        assert identities.update_identity(uid, full_name="Vali", year=2001)
        identities.update_last_login(uid)
        found = identities.get_by_id(uid)
        assert found.full_name == "Vali"
        assert found.year == 2001
        assert found.last_login

    def test_delete(self, identities: IdentityStore) -> None:
        uid = identities.create_identity(_identity("a9@example.com", "+998900000009"))
        assert identities.delete_identity(uid) is True
        assert identities.delete_identity(uid) is False
        assert identities.get_by_id(uid) is None

    def test_get_many(self, identities: IdentityStore) -> None:
        first = identities.create_identity(_identity("b1@example.com", "+998900000101"))
        second = identities.create_identity(_identity("b2@example.com", "+998900000102"))
        found = identities.get_many([first, second, first, 987654])
        assert sorted(found) == sorted([first, second])
        assert found[second].email == "b2@example.com"
        assert identities.get_many([]) == {}

    def test_ping(self, identities: IdentityStore) -> None:
        assert identities.ping()


class TestDirectoryStore:
    def test_create_returns_dataclass(self, directory: DirectoryStore) -> None:
        rid = directory.create("regions", name="Khorezm")
        region = directory.get("regions", rid)
        assert isinstance(region, Region)
        assert region.name == "Khorezm"
        assert region.created_at

    def test_unique_region_name(self, directory: DirectoryStore) -> None:
        directory.create("regions", name="Navoi")
        with pytest.raises(IntegrityError):
            directory.create("regions", name="Navoi")

    def test_one_like_per_user_and_center(self, directory: DirectoryStore) -> None:
        center_id = _center(directory, "Likes")
        directory.create("likes", user_id=1, center_id=center_id)
        with pytest.raises(IntegrityError):
            directory.create("likes", user_id=1, center_id=center_id)
        like = directory.find_one("likes", user_id=1, center_id=center_id)
        assert isinstance(like, Like)

    def test_unknown_entity(self, directory: DirectoryStore) -> None:
        with pytest.raises(ValueError):
            directory.get("teachers", 1)

    def test_unknown_or_fixed_columns_rejected(self, directory: DirectoryStore) -> None:
        rid = directory.create("regions", name="Termez")
        with pytest.raises(ValueError):
            directory.update("regions", rid, id=99)
        with pytest.raises(ValueError):
            directory.create("regions", name="X", bogus=1)

    def test_update_and_find_by_field(self, directory: DirectoryStore) -> None:
        rid = directory.create("subjects", name="Math")
        assert directory.update("subjects", rid, image="math.png")
        assert directory.find_by_field("subjects", "name", "Math").image == "math.png"

    def test_update_missing_row(self, directory: DirectoryStore) -> None:
        assert directory.update("fields", 4242, name="Ghost") is False

    def test_delete(self, directory: DirectoryStore) -> None:
        rid = directory.create("fields", name="IT")
        assert directory.delete("fields", rid) is True
        assert directory.get("fields", rid) is None
        assert directory.delete("fields", rid) is False

    def test_names_by_id(self, directory: DirectoryStore) -> None:
        first = directory.create("regions", name="Jizzakh")
        second = directory.create("regions", name="Qashqadaryo")
        assert directory.names_by_id("regions", [first, second, first, 987654]) == {
            first: "Jizzakh",
            second: "Qashqadaryo",
        }
        assert directory.names_by_id("regions", []) == {}


class TestReferentialRules:
    def test_deleting_a_center_cascades(self, directory: DirectoryStore) -> None:
        center_id = _center(directory, "Surxondaryo")
        region_id = directory.get("centers", center_id).region_id
        branch_id = directory.create("branches", name="Branch", center_id=center_id, region_id=region_id, user_id=1)
        comment_id = directory.create("comments", user_id=2, center_id=center_id, description="Good teachers")
        like_id = directory.create("likes", user_id=2, center_id=center_id)
        registration_id = directory.create(
            "registrations", user_id=2, center_id=center_id, branch_id=branch_id, date="2025-09-01"
        )

        assert directory.delete("centers", center_id) is True
        assert directory.get("branches", branch_id) is None
        assert directory.get("comments", comment_id) is None
        assert directory.get("likes", like_id) is None
        assert directory.get("registrations", registration_id) is None

    def test_deleting_a_branch_cascades_to_registrations(self, directory: DirectoryStore) -> None:
        center_id = _center(directory, "Namangan")
        region_id = directory.get("centers", center_id).region_id
        branch_id = directory.create("branches", name="Branch", center_id=center_id, region_id=region_id, user_id=1)
        registration_id = directory.create(
            "registrations", user_id=2, center_id=center_id, branch_id=branch_id, date="2025-09-01"
        )
        assert directory.delete("branches", branch_id) is True
        assert directory.get("registrations", registration_id) is None
        assert directory.get("centers", center_id) is not None

    def test_region_in_use_cannot_be_deleted(self, directory: DirectoryStore) -> None:
        center_id = _center(directory, "Sirdaryo")
        region_id = directory.get("centers", center_id).region_id
        with pytest.raises(IntegrityError):
            directory.delete("regions", region_id)
        assert directory.get("regions", region_id) is not None

    def test_dangling_center_reference_is_rejected(self, directory: DirectoryStore) -> None:
        with pytest.raises(IntegrityError):
            directory.create("likes", user_id=1, center_id=987654)
