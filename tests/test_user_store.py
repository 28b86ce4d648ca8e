"""Unit tests for auth/store.py -- UserStore repository.

Covers:
- create / find_by_id / find_by_username round trip
- Duplicate usernames (insert and rename) raise DuplicateUsername
- Updates and deletes on unknown ids raise UserNotFound
- list_users() filters, ordering and paging
- ensure_default_admin() seeds only an empty table
"""

import pytest

from auth.errors import DuplicateUsername, UserNotFound
from auth.models import Role


@pytest.fixture
def populated(users):
    """Store with five USER accounts and one ADMIN.

    Usernames: alice, albert, bob, carol, dave (USER), admin1 (ADMIN).
    """
    for name in ("alice", "albert", "bob", "carol", "dave"):
        users.create(name, f"digest-{name}")
    users.create("admin1", "digest-admin1", role=Role.ADMIN)
    return users


def test_create_assigns_id_and_defaults(users):
    user = users.create("alice", "digest")
    assert user.id
    assert user.role is Role.USER
    assert user.created_at


def test_find_by_id_and_username(users):
    created = users.create("alice", "digest")
    assert users.find_by_id(created.id) == created
    assert users.find_by_username("alice") == created


def test_find_missing_returns_none(users):
    assert users.find_by_id("missing") is None
    assert users.find_by_username("missing") is None


def test_username_lookup_is_case_sensitive(users):
    users.create("alice", "digest")
    assert users.find_by_username("Alice") is None


def test_duplicate_username_rejected(users):
    users.create("alice", "digest")
    with pytest.raises(DuplicateUsername):
        users.create("alice", "other")


def test_update_password_digest(users):
    user = users.create("alice", "old-digest")
    users.update_password_digest(user.id, "new-digest")
    assert users.find_by_id(user.id).password_digest == "new-digest"


def test_update_password_digest_unknown_user(users):
    with pytest.raises(UserNotFound):
        users.update_password_digest("missing", "digest")


def test_update_user_fields(users):
    user = users.create("alice", "digest")
    updated = users.update_user(user.id, username="alicia", role=Role.ADMIN)
    assert updated.username == "alicia"
    assert updated.role is Role.ADMIN
    assert updated.password_digest == "digest"


def test_rename_onto_existing_username_rejected(users):
    users.create("alice", "digest")
    bob = users.create("bob", "digest")
    with pytest.raises(DuplicateUsername):
        users.update_user(bob.id, username="alice")


def test_delete_user(users):
    user = users.create("alice", "digest")
    users.delete_user(user.id)
    assert users.find_by_id(user.id) is None
    with pytest.raises(UserNotFound):
        users.delete_user(user.id)


def test_list_users_orders_by_username(populated):
    found, total = populated.list_users()
    assert total == 6
    assert [u.username for u in found] == ["admin1", "albert", "alice", "bob", "carol", "dave"]


def test_list_users_substring_filter_is_case_insensitive(populated):
    found, total = populated.list_users(username="AL")
    assert total == 2
    assert {u.username for u in found} == {"alice", "albert"}


def test_list_users_role_filter(populated):
    found, total = populated.list_users(role=Role.ADMIN)
    assert total == 1
    assert found[0].username == "admin1"


def test_list_users_like_wildcards_are_literal(populated):
    _, total = populated.list_users(username="%")
    assert total == 0


def test_list_users_paging(populated):
    page2, total = populated.list_users(page=2, page_size=4)
    assert total == 6
    assert [u.username for u in page2] == ["carol", "dave"]


def test_ensure_default_admin_seeds_empty_table(users):
    admin = users.ensure_default_admin("root", "digest")
    assert admin is not None
    assert admin.role is Role.ADMIN
    assert users.count_users() == 1


def test_ensure_default_admin_skips_when_users_exist(users):
    users.create("alice", "digest")
    assert users.ensure_default_admin("root", "digest") is None
    assert users.find_by_username("root") is None
