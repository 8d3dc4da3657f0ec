"""Permission guards that wrap request handlers."""

from __future__ import annotations

from typing import Any, Iterable, Optional

from corekit.authorization.middleware import (
    SERVICE_KEY,
    Handler,
    Middleware,
    RequestContext,
    get_user_id_from_context,
)
from corekit.authorization.service import AuthorizationService


def _resolve(ctx: RequestContext) -> Optional[tuple[AuthorizationService, int]]:
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


def _split_permission(permission: str) -> Optional[tuple[str, str]]:
    """Split "action:resource" into normalized parts, or None if malformed."""
    parts = permission.split(":")
    if len(parts) != 2:
        return None
    action, resource_type = (part.strip().lower() for part in parts)
    return action, resource_type


def can(action: str, resource_type: str) -> Middleware:
    """Require permission to perform an action on a resource type."""

    def wrap(handler: Handler) -> Handler:
        def guarded(ctx: RequestContext) -> Any:
            found = _resolve(ctx)
            if found is None:
                return None
            service, user_id = found
            try:
                allowed = service.has_permission(
                    user_id, resource_type.lower(), action.lower()
                )
            except Exception as err:
                ctx.abort_with_status_json(500, {"error": f"error checking permission: {err}"})
                return None
            if not allowed:
                ctx.abort_with_status_json(
                    403, {"error": f"permission denied: cannot {action} {resource_type}"}
                )
                return None
            return handler(ctx)

        return guarded

    return wrap


def can_access(action: str, resource_type: str, resource_id_param: str) -> Middleware:
    """Require permission to perform an action on the resource named by a route parameter."""

    def wrap(handler: Handler) -> Handler:
        def guarded(ctx: RequestContext) -> Any:
            found = _resolve(ctx)
            if found is None:
                return None
            service, user_id = found
            resource_id = ctx.param(resource_id_param)
            if not resource_id:
                ctx.abort_with_status_json(
                    400, {"error": f"missing {resource_id_param} parameter"}
                )
                return None
            try:
                allowed = service.has_resource_permission(
                    user_id, resource_type, resource_id, action.lower()
                )
            except Exception as err:
                ctx.abort_with_status_json(
                    500, {"error": f"error checking resource permission: {err}"}
                )
                return None
            if not allowed:
                ctx.abort_with_status_json(
                    403,
                    {
                        "error": f"access denied: cannot {action} {resource_type}"
                        f" with Id {resource_id}"
                    },
                )
                return None
            return handler(ctx)

        return guarded

    return wrap


def has_role(role_name: str) -> Middleware:
    """Require a role; checked as permission to read roles."""

    def wrap(handler: Handler) -> Handler:
        def guarded(ctx: RequestContext) -> Any:
            found = _resolve(ctx)
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
                ctx.abort_with_status_json(
                    403, {"error": f"insufficient permissions: {role_name} role required"}
                )
                return None
            return handler(ctx)

        return guarded

    return wrap


def can_any(permissions: Iterable[str]) -> Middleware:
    """Require at least one of the "action:resource" permissions."""
    required = list(permissions)

    def wrap(handler: Handler) -> Handler:
        def guarded(ctx: RequestContext) -> Any:
            found = _resolve(ctx)
            if found is None:
                return None
            service, user_id = found
            for permission in required:
                parsed = _split_permission(permission)
                if parsed is None:
                    continue
                action, resource_type = parsed
                try:
                    allowed = service.has_permission(user_id, resource_type, action)
                except Exception:
                    continue
                if allowed:
                    return handler(ctx)
            ctx.abort_with_status_json(
                403,
                {"error": "insufficient permissions: none of the required permissions found"},
            )
            return None

        return guarded

    return wrap


def can_all(permissions: Iterable[str]) -> Middleware:
    """Require every one of the "action:resource" permissions."""
    required = list(permissions)

    def wrap(handler: Handler) -> Handler:
        def guarded(ctx: RequestContext) -> Any:
            found = _resolve(ctx)
            if found is None:
                return None
            service, user_id = found
            for permission in required:
                parsed = _split_permission(permission)
                if parsed is None:
                    ctx.abort_with_status_json(
                        500, {"error": f"invalid permission format: {permission}"}
                    )
                    return None
                action, resource_type = parsed
                try:
                    allowed = service.has_permission(user_id, resource_type, action)
                except Exception as err:
                    ctx.abort_with_status_json(
                        500, {"error": f"error checking permission {permission}: {err}"}
                    )
                    return None
                if not allowed:
                    ctx.abort_with_status_json(
                        403, {"error": f"missing required permission: {permission}"}
                    )
                    return None
            return handler(ctx)

        return guarded

    return wrap