import itertools
import sqlite3

import pytest

from corekit.authorization.models import (
    DuplicatePermissionError,
    InvalidIdError,
    PermissionNotFoundError,
    ResourcePermission,
    Role,
    RoleNotFoundError,
    SystemRoleUnmodifiableError,
    create_schema,
)
from corekit.authorization.service import AuthorizationService


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    create_schema(connection)
    yield connection
    connection.close()


@pytest.fixture
def service(conn):
    return AuthorizationService(conn)


def _add_permission(conn, resource_type, action):
    cursor = conn.execute(
        "INSERT INTO permissions (name, description, resource_type, action) VALUES (?, ?, ?, ?)",
        (f"{resource_type} {action}", "", resource_type, action),
    )
    conn.commit()
    return cursor.lastrowid


def _count_links(conn, role_id):
    return conn.execute(
        "SELECT COUNT(*) FROM role_permissions WHERE role_id = ?", (role_id,)
    ).fetchone()[0]


def test_create_and_get_role_round_trip(service):
    role = service.create_role(Role(name="Editor", description="Edits posts"))
    assert role.id > 0
    assert role.created_at is not None
    fetched = service.get_role(role.id)
    assert fetched.name == "Editor"
    assert fetched.description == "Edits posts"
    assert fetched.is_system is False
    assert fetched.created_at == role.created_at


def test_get_role_missing_raises(service):
    with pytest.raises(RoleNotFoundError):
        service.get_role(999)


def test_update_role_changes_fields(service):
    role = service.create_role(Role(name="Editor", description="old"))
    updated = service.update_role(Role(id=role.id, name="Writer", description="new"))
    assert updated.name == "Writer"
    assert service.get_role(role.id).description == "new"


def test_update_role_missing_raises(service):
    with pytest.raises(RoleNotFoundError):
        service.update_role(Role(id=42, name="x"))


def test_system_role_cannot_be_updated_or_deleted(service):
    role = service.create_role(Role(name="Core", is_system=True))
    with pytest.raises(SystemRoleUnmodifiableError):
        service.update_role(Role(id=role.id, name="Other"))
    with pytest.raises(SystemRoleUnmodifiableError):
        service.delete_role(role.id)
    assert service.get_role(role.id).name == "Core"


def test_delete_role_removes_links(service, conn):
    role = service.create_role(Role(name="Temp"))
    pid = _add_permission(conn, "post", "read")
    service.assign_permission_to_role(role.id, pid)
    service.delete_role(role.id)
    with pytest.raises(RoleNotFoundError):
        service.get_role(role.id)
    assert _count_links(conn, role.id) == 0


def test_assign_and_list_role_permissions(service, conn):
    role = service.create_role(Role(name="Editor"))
    pid = _add_permission(conn, "post", "update")
    service.assign_permission_to_role(role.id, pid)
    permissions = service.get_role_permissions(role.id)
    assert [(p.resource_type, p.action) for p in permissions] == [("post", "update")]
    counts = {r.id: r.permission_count for r in service.get_roles()}
    assert counts[role.id] == 1


def test_assign_duplicate_and_missing(service, conn):
    role = service.create_role(Role(name="Editor"))
    pid = _add_permission(conn, "post", "read")
    service.assign_permission_to_role(role.id, pid)
    with pytest.raises(DuplicatePermissionError):
        service.assign_permission_to_role(role.id, pid)
    with pytest.raises(PermissionNotFoundError):
        service.assign_permission_to_role(role.id, pid + 100)
    with pytest.raises(RoleNotFoundError):
        service.assign_permission_to_role(role.id + 100, pid)


def test_revoke_permission(service, conn):
    role = service.create_role(Role(name="Editor"))
    pid = _add_permission(conn, "post", "read")
    service.assign_permission_to_role(role.id, pid)
    service.revoke_permission_from_role(role.id, pid)
    assert service.get_role_permissions(role.id) == []
    with pytest.raises(PermissionNotFoundError):
        service.revoke_permission_from_role(role.id, pid + 100)


def test_update_role_permissions_replaces(service, conn):
    role = service.create_role(Role(name="Editor"))
    first = _add_permission(conn, "post", "read")
    second = _add_permission(conn, "post", "delete")
    service.assign_permission_to_role(role.id, first)
    service.update_role_permissions(role.id, [second])
    assert [p.id for p in service.get_role_permissions(role.id)] == [second]


def test_update_role_permissions_rolls_back_on_unknown(service, conn):
    role = service.create_role(Role(name="Editor"))
    first = _add_permission(conn, "post", "read")
    service.assign_permission_to_role(role.id, first)
    with pytest.raises(PermissionNotFoundError):
        service.update_role_permissions(role.id, [first, first + 500])
    assert [p.id for p in service.get_role_permissions(role.id)] == [first]


def test_update_role_permissions_missing_role(service):
    with pytest.raises(RoleNotFoundError):
        service.update_role_permissions(7, [])


def test_resource_permission_create_and_delete(service, conn):
    rp = service.create_resource_permission(
        ResourcePermission(resource_type="project", resource_id="12", user_id=3, action="read")
    )
    assert rp.id > 0
    assert rp.created_at is not None
    service.delete_resource_permission(rp.id)
    remaining = conn.execute("SELECT COUNT(*) FROM resource_permissions").fetchone()[0]
    assert remaining == 0


def test_membership_info_and_checks(service):
    info = service.get_user_membership_info(5)
    assert info.user_id == 5
    assert info.membership_type == "Internal"
    assert info.is_owner is False
    assert service.has_permission(5, "post", "delete") is True
    assert service.has_resource_permission(5, "post", "1", "delete") is True


@pytest.mark.parametrize("bad", ["abc", "-1", "", "4294967296", " 1"])
def test_get_user_permissions_invalid_id(service, bad):
    with pytest.raises(InvalidIdError):
        service.get_user_permissions(bad)


def test_get_user_permissions_merges_sources(service, conn):
    conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, role_id INTEGER)")
    role = service.create_role(Role(name="Editor"))
    shared = _add_permission(conn, "post", "read")
    extra = _add_permission(conn, "post", "update")
    service.assign_permission_to_role(role.id, shared)
    conn.execute("INSERT INTO users (id, role_id) VALUES (?, ?)", (9, role.id))
    conn.commit()
    service.create_resource_permission(
        ResourcePermission(resource_type="post", user_id=9, permission_id=shared)
    )
    service.create_resource_permission(
        ResourcePermission(resource_type="post", user_id=9, permission_id=extra)
    )
    ids = sorted(p.id for p in service.get_user_permissions("9"))
    assert ids == sorted([shared, extra])


def test_seed_permissions_is_idempotent(service):
    service.seed_permissions()
    service.seed_permissions()
    pairs = [(p.resource_type, p.action) for p in service.get_permissions()]
    expected = set(
        itertools.product(
            ["user", "authorization", "media", "profile"],
            ["create", "read", "update", "delete", "list"],
        )
    )
    assert set(pairs) == expected
    assert len(pairs) == len(expected)


def test_seed_permission_names(service):
    service.seed_permissions()
    by_key = {(p.resource_type, p.action): p for p in service.get_permissions()}
    assert by_key[("media", "read")].name == "read media"
    assert by_key[("media", "read")].description == "Permission to read media"


def test_seed_roles(service):
    service.seed_roles()
    service.seed_roles()
    roles = service.get_roles()
    assert sorted(r.name for r in roles) == sorted(
        ["Owner", "Administrator", "Member", "External"]
    )
    assert all(r.is_system for r in roles)


def test_setup_role_permissions(service):
    service.setup_role_permissions()
    roles = {r.name: r for r in service.get_roles()}

    def grants(name):
        return {(p.resource_type, p.action) for p in service.get_role_permissions(roles[name].id)}

    all_pairs = {(p.resource_type, p.action) for p in service.get_permissions()}
    assert grants("Owner") == all_pairs
    assert grants("Administrator") == set(
        itertools.product(["user", "media", "profile"], ["create", "read", "update", "delete", "list"])
    )
    assert grants("Member") == set(
        itertools.product(["user", "media", "profile"], ["read", "list"])
    )
    assert ("profile", "list") not in grants("External")
    assert ("profile", "read") in grants("External")


def test_setup_role_permissions_twice_adds_no_duplicates(service, conn):
    service.setup_role_permissions()
    before = conn.execute("SELECT COUNT(*) FROM role_permissions").fetchone()[0]
    service.setup_role_permissions()
    after = conn.execute("SELECT COUNT(*) FROM role_permissions").fetchone()[0]
    assert before == after