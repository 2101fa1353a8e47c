"""Role capability table for repair lifecycle actions."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from startronics.domain.errors import PermissionDenied
from startronics.domain.lifecycle.statuses import LifecycleAction as A
from startronics.domain.lifecycle.statuses import Role


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of a lifecycle operation."""

    user_id: uuid.UUID
    role: Role


ROLE_CAPABILITIES: dict[Role, frozenset[A]] = {
    Role.customer: frozenset(
        {
            A.create_request,
            A.edit_request,
            A.delete_request,
            A.confirm_payment,
            A.manage_cards,
            A.submit_story,
        }
    ),
    Role.technician: frozenset(
        {
            A.claim,
            A.technician_accept,
            A.technician_reject,
            A.technician_cancel,
            A.start_work,
            A.issue_bill,
            A.edit_bill,
        }
    ),
    Role.admin: frozenset({A.approve, A.reject}),
}


def is_permitted(role: Role, action: A) -> bool:
    return action in ROLE_CAPABILITIES.get(Role(role), frozenset())


def ensure_permitted(actor: Actor, action: A) -> None:
    if not is_permitted(actor.role, action):
        raise PermissionDenied(detail="Access denied")
