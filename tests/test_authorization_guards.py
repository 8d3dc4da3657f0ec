import sqlite3

import pytest

from corekit.authorization.guards import can, can_access, can_all, can_any, has_role
from corekit.authorization.middleware import RequestContext
from corekit.authorization.service import AuthorizationService


class _StubService(AuthorizationService):
    def __init__(self, allowed=(), fail=False):
        super().__init__(sqlite3.connect(":memory:"))
        self.allowed = set(allowed)
        self.fail = fail
        self.calls = []

    def has_permission(self, user_id, resource_type, action):
        self.calls.append((user_id, resource_type, action))
        if self.fail:
            raise RuntimeError("boom")
        return (resource_type, action) in self.allowed

    def has_resource_permission(self, user_id, resource_type, resource_id, action):
        self.calls.append((user_id, resource_type, resource_id, action))
        if self.fail:
            raise RuntimeError("boom")
        return (resource_type, resource_id, action) in self.allowed


def _handler(ctx):
    return "ok"


def _ctx(service, user_id=7, params=None):
    values = {"authorization_service": service}
    if user_id is not None:
        values["user_id"] = user_id
    return RequestContext(values=values, params=params or {})


def test_can_passes_with_real_service():
    ctx = _ctx(AuthorizationService(sqlite3.connect(":memory:")))
    assert can("create", "Post")(_handler)(ctx) == "ok"
    assert ctx.aborted is False


def test_can_normalizes_case():
    service = _StubService(allowed={("post", "create")})
    ctx = _ctx(service)
    assert can("Create", "Post")(_handler)(ctx) == "ok"
    assert service.calls == [(7, "post", "create")]


def test_can_denied_uses_original_case():
    ctx = _ctx(_StubService())
    assert can("Create", "Post")(_handler)(ctx) is None
    assert ctx.status == 403
    assert ctx.body == {"error": "permission denied: cannot Create Post"}


def test_can_service_missing():
    ctx = RequestContext(values={"user_id": 1})
    assert can("read", "post")(_handler)(ctx) is None
    assert ctx.status == 500
    assert ctx.body == {"error": "authorization service not found"}


def test_can_service_wrong_type():
    ctx = RequestContext(values={"authorization_service": object(), "user_id": 1})
    can("read", "post")(_handler)(ctx)
    assert ctx.body == {"error": "invalid authorization service"}


def test_can_missing_user():
    ctx = _ctx(_StubService(), user_id=None)
    can("read", "post")(_handler)(ctx)
    assert ctx.status == 401
    assert ctx.body == {"error": "missing user Id in context"}


def test_can_error_from_service():
    ctx = _ctx(_StubService(fail=True))
    can("read", "post")(_handler)(ctx)
    assert ctx.status == 500
    assert ctx.body == {"error": "error checking permission: boom"}


def test_can_access_missing_param():
    ctx = _ctx(_StubService())
    assert can_access("update", "Post", "id")(_handler)(ctx) is None
    assert ctx.status == 400
    assert ctx.body == {"error": "missing id parameter"}


def test_can_access_allowed_keeps_resource_type_case():
    service = _StubService(allowed={("Post", "42", "update")})
    ctx = _ctx(service, params={"id": "42"})
    assert can_access("Update", "Post", "id")(_handler)(ctx) == "ok"
    assert service.calls == [(7, "Post", "42", "update")]


def test_can_access_denied():
    ctx = _ctx(_StubService(), params={"id": "42"})
    can_access("update", "Post", "id")(_handler)(ctx)
    assert ctx.status == 403
    assert ctx.body == {"error": "access denied: cannot update Post with Id 42"}


def test_can_access_error():
    ctx = _ctx(_StubService(fail=True), params={"id": "42"})
    can_access("update", "Post", "id")(_handler)(ctx)
    assert ctx.body == {"error": "error checking resource permission: boom"}


def test_has_role_checks_role_read():
    service = _StubService(allowed={("role", "read")})
    ctx = _ctx(service)
    assert has_role("Administrator")(_handler)(ctx) == "ok"
    assert service.calls == [(7, "role", "read")]


def test_has_role_denied():
    ctx = _ctx(_StubService())
    has_role("Administrator")(_handler)(ctx)
    assert ctx.status == 403
    assert ctx.body == {"error": "insufficient permissions: Administrator role required"}


def test_has_role_error():
    ctx = _ctx(_StubService(fail=True))
    has_role("Owner")(_handler)(ctx)
    assert ctx.body == {"error": "error checking role permission: boom"}


def test_can_any_skips_malformed_and_stops_at_first_match():
    service = _StubService(allowed={("post", "update")})
    ctx = _ctx(service)
    guard = can_any(["bad", "create:Post", " Update : Post ", "delete:Post"])
    assert guard(_handler)(ctx) == "ok"
    assert service.calls == [(7, "post", "create"), (7, "post", "update")]


def test_can_any_none_found():
    ctx = _ctx(_StubService())
    can_any(["create:Post", "a:b:c"])(_handler)(ctx)
    assert ctx.status == 403
    assert ctx.body == {
        "error": "insufficient permissions: none of the required permissions found"
    }


def test_can_any_skips_errors():
    ctx = _ctx(_StubService(fail=True))
    can_any(["create:Post"])(_handler)(ctx)
    assert ctx.status == 403


def test_can_all_requires_every_permission():
    service = _StubService(allowed={("post", "read"), ("post", "update")})
    ctx = _ctx(service)
    assert can_all(["read:Post", "update:Post"])(_handler)(ctx) == "ok"
    assert len(service.calls) == 2


def test_can_all_missing_one():
    ctx = _ctx(_StubService(allowed={("post", "read")}))
    can_all(["read:Post", "update:Post"])(_handler)(ctx)
    assert ctx.status == 403
    assert ctx.body == {"error": "missing required permission: update:Post"}


def test_can_all_invalid_format():
    ctx = _ctx(_StubService())
    can_all(["readPost"])(_handler)(ctx)
    assert ctx.status == 500
    assert ctx.body == {"error": "invalid permission format: readPost"}


def test_can_all_error():
    ctx = _ctx(_StubService(fail=True))
    can_all(["read:Post"])(_handler)(ctx)
    assert ctx.body == {"error": "error checking permission read:Post: boom"}


@pytest.mark.parametrize("user_id", ["abc", "-1"])
def test_bad_user_id_string_is_unauthorized(user_id):
    ctx = _ctx(_StubService(allowed={("post", "read")}), user_id=user_id)
    assert can("read", "post")(_handler)(ctx) is None
    assert ctx.status == 401