import sqlite3
import uuid

import pytest

from prismusers.models import Role, User, UserQueryRequest
from prismusers.repository import Database, UserRepository

TENANT = "acme"


@pytest.fixture
def db():
    database = Database(":memory:")
    yield database
    database.close()


@pytest.fixture
def repo(db):
    return UserRepository(db)


def _user(email, first="Alice", last="Smith", status="active"):
    return User(email=email, first_name=first, last_name=last, password_hash="password", status=status)


def test_create_and_get_by_id(repo):
    user = _user("alice@example.com")
    repo.create(TENANT, user)
    fetched = repo.get_by_id(TENANT, user.id)
    assert fetched.id == user.id
    assert fetched.email == user.email
    assert fetched.first_name == user.first_name
    assert fetched.password_hash == user.password_hash
    assert fetched.roles == []
    assert fetched.created_at == user.created_at


def test_get_missing_returns_none(repo):
    assert repo.get_by_id(TENANT, uuid.uuid4()) is None
    assert repo.get_by_email(TENANT, "nobody@example.com") is None


def test_get_by_email(repo):
    user = _user("bob@example.com", first="Bob")
    repo.create(TENANT, user)
    assert repo.get_by_email(TENANT, "bob@example.com").id == user.id


def test_tenants_are_isolated(repo):
    user = _user("alice@example.com")
    repo.create(TENANT, user)
    assert repo.get_by_id("other", user.id) is None
    assert repo.get_by_email("other", user.email) is None
    repo.create("other", _user("alice@example.com"))
    assert repo.get_by_email("other", "alice@example.com").id != user.id


def test_duplicate_email_in_tenant_rejected(repo):
    repo.create(TENANT, _user("alice@example.com"))
    with pytest.raises(sqlite3.IntegrityError):
        repo.create(TENANT, _user("alice@example.com"))


def test_update_changes_fields(repo):
    user = _user("alice@example.com")
    repo.create(TENANT, user)
    repo.update(TENANT, user.id, {"first_name": "Alicia", "status": "inactive"})
    fetched = repo.get_by_id(TENANT, user.id)
    assert fetched.first_name == "Alicia"
    assert fetched.status == "inactive"
    assert fetched.last_name == user.last_name
    assert fetched.updated_at >= fetched.created_at


def test_update_unknown_column_rejected(repo):
    user = _user("alice@example.com")
    repo.create(TENANT, user)
    with pytest.raises(ValueError):
        repo.update(TENANT, user.id, {"tenant_id": "evil"})


def test_update_empty_leaves_user_unchanged(repo):
    user = _user("alice@example.com")
    repo.create(TENANT, user)
    repo.update(TENANT, user.id, {})
    assert repo.get_by_id(TENANT, user.id).updated_at == user.updated_at


def test_delete(repo):
    user = _user("alice@example.com")
    repo.create(TENANT, user)
    repo.delete(TENANT, user.id)
    assert repo.get_by_id(TENANT, user.id) is None


def test_list_default_newest_first(repo):
    users = [_user(f"u{i}@example.com") for i in range(3)]
    for user in users:
        repo.create(TENANT, user)
    found, total = repo.list(TENANT, UserQueryRequest())
    assert total == len(users)
    assert [u.id for u in found] == [u.id for u in reversed(users)]


def test_list_status_filter(repo):
    repo.create(TENANT, _user("a@example.com", status="active"))
    pending = _user("b@example.com", status="pending")
    repo.create(TENANT, pending)
    found, total = repo.list(TENANT, UserQueryRequest(status="pending"))
    assert total == 1
    assert [u.id for u in found] == [pending.id]


def test_list_search_is_case_insensitive(repo):
    target = _user("zed@example.com", first="Zed", last="Zulu")
    repo.create(TENANT, target)
    repo.create(TENANT, _user("amy@example.com", first="Amy", last="Adams"))
    found, _ = repo.list(TENANT, UserQueryRequest(search="zULu"))
    assert [u.id for u in found] == [target.id]


def test_list_sort_by_email(repo):
    emails = ["c@example.com", "a@example.com", "b@example.com"]
    for email in emails:
        repo.create(TENANT, _user(email))
    found, _ = repo.list(TENANT, UserQueryRequest(sort="email:asc"))
    assert [u.email for u in found] == sorted(emails)
    found, _ = repo.list(TENANT, UserQueryRequest(sort="email:desc"))
    assert [u.email for u in found] == sorted(emails, reverse=True)


def test_list_unknown_sort_falls_back_to_newest_first(repo):
    users = [_user(f"s{i}@example.com") for i in range(3)]
    for user in users:
        repo.create(TENANT, user)
    found, _ = repo.list(TENANT, UserQueryRequest(sort="bogus"))
    assert [u.id for u in found] == [u.id for u in reversed(users)]


def test_list_pagination(repo):
    emails = [f"p{i}@example.com" for i in range(5)]
    for email in emails:
        repo.create(TENANT, _user(email))
    pages = [
        repo.list(TENANT, UserQueryRequest(page=page, limit=2, sort="email:asc"))
        for page in (1, 2, 3)
    ]
    assert all(total == len(emails) for _, total in pages)
    collected = [u.email for found, _ in pages for u in found]
    assert collected == sorted(emails)
    assert len(pages[0][0]) == 2


def test_roles_loaded_and_filtered(repo):
    admin = repo.add_role(TENANT, Role(name="admin"))
    user = _user("admin@example.com")
    other = _user("plain@example.com")
    repo.create(TENANT, user)
    repo.create(TENANT, other)
    repo.assign_role(TENANT, user.id, admin.id)
    fetched = repo.get_by_id(TENANT, user.id)
    assert [r.id for r in fetched.roles] == [admin.id]
    found, total = repo.list(TENANT, UserQueryRequest(role_ids=[str(admin.id)]))
    assert total == 1
    assert [u.id for u in found] == [user.id]


def test_list_invalid_role_id_matches_nothing(repo):
    repo.create(TENANT, _user("a@example.com"))
    found, total = repo.list(TENANT, UserQueryRequest(role_ids=["not-a-uuid"]))
    assert (found, total) == ([], 0)


def test_delete_removes_role_links(repo):
    role = repo.add_role(TENANT, Role(name="viewer"))
    user = _user("v@example.com")
    repo.create(TENANT, user)
    repo.assign_role(TENANT, user.id, role.id)
    repo.delete(TENANT, user.id)
    found, total = repo.list(TENANT, UserQueryRequest(role_ids=[str(role.id)]))
    assert total == 0


def test_assign_role_requires_same_tenant(repo):
    role = repo.add_role("other", Role(name="admin"))
    user = _user("a@example.com")
    repo.create(TENANT, user)
    with pytest.raises(LookupError):
        repo.assign_role(TENANT, user.id, role.id)
    with pytest.raises(LookupError):
        repo.assign_role(TENANT, uuid.uuid4(), role.id)


def test_ping_after_close_fails():
    database = Database(":memory:")
    database.ping()
    database.close()
    with pytest.raises(sqlite3.ProgrammingError):
        database.ping()


def test_file_database_persists(tmp_path):
    path = str(tmp_path / "users.db")
    user = _user("keep@example.com")
    with Database(path) as first:
        UserRepository(first).create(TENANT, user)
    with Database(path) as second:
        assert UserRepository(second).get_by_email(TENANT, "keep@example.com").id == user.id