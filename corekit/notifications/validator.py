"""Validation of notification requests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from corekit.notifications.models import (
    CreateNotificationRequest,
    UpdateNotificationRequest,
)


@dataclass(frozen=True)
class FieldError:
    """One failed rule on one field."""

    field: str
    tag: str
    value: str
    message: str


class ValidationErrors(ValueError):
    """A request failed one or more validation rules."""

    def __init__(self, errors: Iterable[FieldError]) -> None:
        self.errors = tuple(errors)
        super().__init__("; ".join(error.message for error in self.errors))

    def __iter__(self) -> Iterator[FieldError]:
        return iter(self.errors)

    def __len__(self) -> int:
        return len(self.errors)


def _nil_request() -> ValidationErrors:
    return ValidationErrors(
        [FieldError(field="request", tag="required", value="nil", message="request cannot be nil")]
    )


def _zero_id() -> ValidationErrors:
    return ValidationErrors(
        [FieldError(field="id", tag="required", value="0", message="id cannot be zero")]
    )


def validate_create_request(
    req: Optional[CreateNotificationRequest],
) -> CreateNotificationRequest:
    """Check a create request and return it."""
    if req is None:
        raise _nil_request()
    return req


def validate_update_request(
    req: Optional[UpdateNotificationRequest], item_id: int
) -> UpdateNotificationRequest:
    """Check an update request and its target id; every field is optional."""
    if req is None:
        raise _nil_request()
    if item_id == 0:
        raise _zero_id()
    return req


def validate_delete_request(item_id: int) -> int:
    """Check the id of a delete request and return it."""
    return validate_id(item_id)


def validate_id(item_id: int) -> int:
    """Reject a zero id; return the id otherwise."""
    if item_id == 0:
        raise _zero_id()
    return item_id