"""Request context and permission-checking middleware."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from corekit.authorization.service import AuthorizationService

Handler = Callable[["RequestContext"], Any]
Middleware = Callable[[Handler], Handler]

_UINT64_MAX = 2**64 - 1
_DIGITS = re.compile(r"[0-9]+")

ORGANIZATION_HEADER = "base_header_orgid"
SERVICE_KEY = "authorization_service"


class MissingUserIdError(LookupError):
    """The request carries no user id."""

    def __init__(self) -> None:
        super().__init__("missing user Id in context")


class MissingOrganizationError(LookupError):
    """The request carries no organization id."""

    def __init__(self) -> None:
        super().__init__("missing organization Id in context or headers")


@dataclass
class RequestContext:
    """Per-request values, route parameters, headers and the aborted response."""

    values: dict[str, Any] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    status: Optional[int] = None
    body: Any = None
    aborted: bool = False

    def __post_init__(self) -> None:
        self.headers = {name.lower(): value for name, value in self.headers.items()}

    def get(self, key: str) -> Any:
        """Return a stored value, or None when the key is absent."""
        return self.values.get(key)

    def set(self, key: str, value: Any) -> None:
        self.values[key] = value

    def param(self, name: str) -> str:
        """Return a route parameter, or an empty string."""
        return self.params.get(name, "")

    def header(self, name: str) -> str:
        """Return a header value (case-insensitive), or an empty string."""
        return self.headers.get(name.lower(), "")

    def abort_with_status_json(self, status: int, body: Any) -> None:
        """Stop the chain and record the response to send."""
        self.status = status
        self.body = body
        self.aborted = True


def _parse_uint(text: str, what: str) -> int:
    if not _DIGITS.fullmatch(text) or int(text) > _UINT64_MAX:
        raise ValueError(f"invalid {what}: {text!r}")
    return int(text)


def _coerce_id(value: Any, what: str) -> Optional[int]:
    """Convert an int or numeric string; None for unsupported types."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        if value < 0 or value > _UINT64_MAX:
            raise ValueError(f"invalid {what}: {value!r}")
        return value
    if isinstance(value, str):
        return _parse_uint(value, what)
    return None


def get_user_id_from_context(ctx: RequestContext) -> int:
    """Return the user id stored in the context."""
    if "user_id" not in ctx.values:
        raise MissingUserIdError()
    value = ctx.values["user_id"]
    user_id = _coerce_id(value, "user Id format")
    if user_id is None:
        raise TypeError(f"unsupported user Id type: {type(value).__name__}")
    return user_id


def get_organization_id_from_context(ctx: RequestContext) -> int:
    """Return the organization id from the context, falling back to the header."""
    if "organization_id" in ctx.values:
        org_id = _coerce_id(ctx.values["organization_id"], "organization Id format")
        if org_id is not None:
            return org_id
    header = ctx.header(ORGANIZATION_HEADER)
    if header:
        return _parse_uint(header, "organization Id in header")
    raise MissingOrganizationError()


def _authorize_request(ctx: RequestContext) -> Optional[tuple[AuthorizationService, int]]:
    """Find the service and the user; abort the request and return None on failure."""
    if SERVICE_KEY not in ctx.values:
        ctx.abort_with_status_json(500, {"error": "authorization service not found"})
        return None
    service = ctx.values[SERVICE_KEY]
    if not isinstance(service, AuthorizationService):
        ctx.abort_with_status_json(500, {"error": "invalid authorization service"})
        return None
    try:
        user_id = get_user_id_from_context(ctx)
    except (LookupError, ValueError, TypeError) as err:
        ctx.abort_with_status_json(401, {"error": str(err)})
        return None
    return service, user_id


def auth_middleware(resource_type: str, action: str) -> Middleware:
    """Require permission for an action on a resource type."""

    def wrap(handler: Handler) -> Handler:
        def guarded(ctx: RequestContext) -> Any:
            found = _authorize_request(ctx)
            if found is None:
                return None
            service, user_id = found
            try:
                allowed = service.has_permission(user_id, resource_type, action)
            except Exception as err:
                ctx.abort_with_status_json(500, {"error": f"error checking permission: {err}"})
                return None
            if not allowed:
                ctx.abort_with_status_json(403, {"error": "permission denied"})
                return None
            return handler(ctx)

        return guarded

    return wrap


def resource_auth_middleware(
    resource_type: str, action: str, resource_id_param: str
) -> Middleware:
    """Require the route to carry the resource id parameter."""

    def wrap(handler: Handler) -> Handler:
        def guarded(ctx: RequestContext) -> Any:
            if not ctx.param(resource_id_param):
                ctx.abort_with_status_json(400, {"error": "missing resource Id in request"})
                return None
            return handler(ctx)

        return guarded

    return wrap


def require_role(role_name: str) -> Middleware:
    """Require role access; checked as permission to read roles."""

    def wrap(handler: Handler) -> Handler:
        def guarded(ctx: RequestContext) -> Any:
            found = _authorize_request(ctx)
            if found is None:
                return None
            service, user_id = found
            try:
                allowed = service.has_permission(user_id, "role", "read")
            except Exception as err:
                ctx.abort_with_status_json(
                    500, {"error": f"error checking role permission: {err}"}
                )
                return None
            if not allowed:
                ctx.abort_with_status_json(403, {"error": "insufficient role permissions"})
                return None
            return handler(ctx)

        return guarded

    return wrap