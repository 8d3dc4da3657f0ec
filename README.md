# corekit

Building blocks for the core of a web application, independent of any web
framework and working on a plain `sqlite3` connection:

- **Authorization** (`corekit.authorization`) – roles, permissions,
  role/permission links, resource-level permissions, default seeding and
  request guards.
- **Media** (`corekit.media`) – a folder tree of media items with filtering,
  pagination and folder hierarchy creation.
- **Notifications** (`corekit.notifications`) – the notification record, its
  request payloads and request validation.
- **Pagination** (`corekit.pagination`) – `Pagination` and
  `PaginatedResponse`, the page envelope returned by list queries.

## Installation

```
pip install corekit
```

To run the test suite:

```
pip install "corekit[test]"
pytest
```

## Authorization

```python
import sqlite3

from corekit.authorization.models import Role
from corekit.authorization.module import AuthorizationModule
from corekit.authorization.service import AuthorizationService

conn = sqlite3.connect(":memory:")
AuthorizationModule(conn).migrate()   # creates the tables, seeds default roles and permissions

service = AuthorizationService(conn)
editor = service.create_role(Role(name="Editor", description="Edits content"))
for role in service.get_roles():
    print(role.name, role.permission_count)
```

`migrate()` creates the system roles Super Admin, Administrator, Manager,
Employee and Viewer, a permission for every combination of the core resource
types and actions, and links permissions to those roles. Seeding only adds
what is missing, so it can run repeatedly.
`AuthorizationService.setup_role_permissions()` is a separate seeding path
that creates the Owner, Administrator, Member and External roles with their
default permissions.

Errors are raised as exceptions from `corekit.authorization.models`:

- `RoleNotFoundError`, `PermissionNotFoundError` – the record does not exist;
- `SystemRoleUnmodifiableError` – system roles cannot be updated or deleted;
- `DuplicatePermissionError` – the permission is already linked to the role;
- `InvalidIdError` – `get_user_permissions` was given a non-numeric id.

`update_role_permissions(role_id, permission_ids)` replaces all of a role's
links in one transaction; if any id is unknown, nothing changes.

`has_permission` and `has_resource_permission` currently allow every check.

### Guards

Guards in `corekit.authorization.guards` (`can`, `can_access`, `has_role`,
`can_any`, `can_all`) and in `corekit.authorization.middleware`
(`auth_middleware`, `resource_auth_middleware`, `require_role`) wrap a handler
that takes a `RequestContext`. The context must hold the service under
`"authorization_service"` and the current user under `"user_id"` (an int or a
numeric string):

```python
from corekit.authorization.guards import can, can_all
from corekit.authorization.middleware import RequestContext


@can("update", "Post")
def update_post(ctx):
    return "updated"


@can_all(["read:Post", "update:Post"])
def publish_post(ctx):
    return "published"


ctx = RequestContext()
ctx.set("authorization_service", service)
ctx.set("user_id", 1)
print(update_post(ctx))
```

When a check fails, the guard calls `ctx.abort_with_status_json(status, body)`,
which sets `ctx.status`, `ctx.body` and `ctx.aborted`, and the handler is not
run: 500 when the service is missing, 401 when the user id is missing or
invalid, 400 when a required route parameter is empty, 403 when permission is
denied.

`get_user_id_from_context` and `get_organization_id_from_context` read the
ids from a context; the organization id falls back to the
`base_header_orgid` header.

## Media

```python
from corekit.media.models import (
    CreateMediaRequest,
    MediaFilters,
    UpdateMediaRequest,
    create_schema,
    media_type_from_extension,
)
from corekit.media.service import MediaService

create_schema(conn)
media = MediaService(conn)

folder_id = media.ensure_folder_hierarchy("photos/2024")
beach = media.create(CreateMediaRequest(name="beach", type="image", parent_id=folder_id))
media.update(beach.id, UpdateMediaRequest(description="Summer"))

listing = media.get_all_with_filters(1, 10, MediaFilters(parent_id=folder_id))
print(listing.to_dict()["pagination"])

print(media_type_from_extension("clip.mov"))   # "video"
```

`ensure_folder_hierarchy` creates any missing folder items along the path and
returns the id of the last one. `get_by_id` loads the parent and children,
and raises `MediaNotFoundError` for unknown or deleted ids. `delete` is a soft
delete: the item keeps its row, gets a `deleted_at` time and is left out of
every query. Without filters, a paginated listing shows only root items,
while an unpaginated one shows all items.

## Notifications

```python
from corekit.notifications.models import (
    Notification,
    UpdateNotificationRequest,
    create_schema,
)
from corekit.notifications.validator import ValidationErrors, validate_update_request

create_schema(conn)   # creates the notifications table

note = Notification(id=3, title="Hello")
print(note.to_select_option())   # {'id': 3, 'name': 'Hello'}

try:
    validate_update_request(UpdateNotificationRequest(), 0)
except ValidationErrors as errors:
    for error in errors:
        print(error.field, error.message)   # id id cannot be zero
```

## What the package does not do

- It has no web server, routes or request parsing; the guards work on a
  `RequestContext` that the caller fills in.
- It stores no files. A media item's `file` is a plain dictionary saved as
  JSON; uploading, converting and deleting the files themselves is left to
  the caller, and there is no syncing from a storage bucket.
- For notifications it provides the table, the record and validation, but no
  service for creating, listing, updating or deleting them and no change
  events.
- `AuthorizationService.get_user_permissions` reads a `users` table with
  `id` and `role_id` columns, which the package does not create.