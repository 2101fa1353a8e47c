from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from startronics.domain.errors import InvalidState

REPAIR_PENDING = "pending"
REPAIR_APPROVED = "approved"
REPAIR_REJECTED = "rejected"
REPAIR_ACCEPTED = "accepted"
REPAIR_TECHNICIAN_REJECTED = "technician_rejected"
REPAIR_IN_PROGRESS = "in_progress"
REPAIR_COMPLETED = "completed"
REPAIR_CANCELLED = "cancelled"

# Only sent and accepted are produced; the rest are reserved with no transitions.
QUOTE_DRAFT = "draft"
QUOTE_SENT = "sent"
QUOTE_ACCEPTED = "accepted"
QUOTE_REJECTED = "rejected"
QUOTE_EXPIRED = "expired"

PAYMENT_PENDING = "pending"
PAYMENT_SUCCEEDED = "succeeded"
PAYMENT_FAILED = "failed"
PAYMENT_REFUNDED = "refunded"

PAYMENT_PROVIDER_SIMULATED = "simulated"


class RepairStatus(str, Enum):
    pending = REPAIR_PENDING
    approved = REPAIR_APPROVED
    rejected = REPAIR_REJECTED
    accepted = REPAIR_ACCEPTED
    technician_rejected = REPAIR_TECHNICIAN_REJECTED
    in_progress = REPAIR_IN_PROGRESS
    completed = REPAIR_COMPLETED
    cancelled = REPAIR_CANCELLED


class QuoteStatus(str, Enum):
    draft = QUOTE_DRAFT
    sent = QUOTE_SENT
    accepted = QUOTE_ACCEPTED
    rejected = QUOTE_REJECTED
    expired = QUOTE_EXPIRED


class PaymentStatus(str, Enum):
    pending = PAYMENT_PENDING
    succeeded = PAYMENT_SUCCEEDED
    failed = PAYMENT_FAILED
    refunded = PAYMENT_REFUNDED


RESERVED_QUOTE_STATUSES = frozenset({QuoteStatus.draft, QuoteStatus.rejected, QuoteStatus.expired})
RESERVED_PAYMENT_STATUSES = frozenset(
    {PaymentStatus.pending, PaymentStatus.failed, PaymentStatus.refunded}
)


class Urgency(str, Enum):
    low = "low"
    normal = "normal"
    high = "high"


class Role(str, Enum):
    customer = "customer"
    technician = "technician"
    admin = "admin"


class PaymentMethod(str, Enum):
    card = "card"
    upi = "upi"
    netbanking = "netbanking"
    wallet = "wallet"


class CardBrand(str, Enum):
    visa = "visa"
    mastercard = "mastercard"
    amex = "amex"
    unknown = "unknown"


class LifecycleAction(str, Enum):
    create_request = "create_request"
    edit_request = "edit_request"
    delete_request = "delete_request"
    approve = "approve"
    reject = "reject"
    claim = "claim"
    technician_accept = "technician_accept"
    technician_reject = "technician_reject"
    technician_cancel = "technician_cancel"
    start_work = "start_work"
    issue_bill = "issue_bill"
    edit_bill = "edit_bill"
    confirm_payment = "confirm_payment"
    manage_cards = "manage_cards"
    submit_story = "submit_story"


@dataclass(frozen=True)
class Transition:
    sources: frozenset[str]
    target: str | None
    requires_reason: bool = False


# target None means the action leaves the status unchanged.
REPAIR_TRANSITIONS: dict[LifecycleAction, Transition] = {
    LifecycleAction.edit_request: Transition(frozenset({REPAIR_PENDING}), None),
    LifecycleAction.delete_request: Transition(frozenset({REPAIR_PENDING}), None),
    LifecycleAction.approve: Transition(
        frozenset({REPAIR_PENDING, REPAIR_TECHNICIAN_REJECTED}), REPAIR_APPROVED
    ),
    LifecycleAction.reject: Transition(frozenset({REPAIR_PENDING}), REPAIR_REJECTED, requires_reason=True),
    LifecycleAction.claim: Transition(frozenset({REPAIR_PENDING}), None),
    LifecycleAction.technician_accept: Transition(
        frozenset({REPAIR_APPROVED, REPAIR_TECHNICIAN_REJECTED}), REPAIR_ACCEPTED
    ),
    LifecycleAction.technician_reject: Transition(
        frozenset({REPAIR_APPROVED, REPAIR_TECHNICIAN_REJECTED}),
        REPAIR_TECHNICIAN_REJECTED,
        requires_reason=True,
    ),
    LifecycleAction.start_work: Transition(frozenset({REPAIR_ACCEPTED}), REPAIR_IN_PROGRESS),
    LifecycleAction.technician_cancel: Transition(
        frozenset({REPAIR_ACCEPTED, REPAIR_IN_PROGRESS}), REPAIR_CANCELLED, requires_reason=True
    ),
    LifecycleAction.issue_bill: Transition(
        frozenset({REPAIR_ACCEPTED, REPAIR_IN_PROGRESS}), REPAIR_COMPLETED
    ),
}

QUOTE_TRANSITIONS: dict[LifecycleAction, Transition] = {
    LifecycleAction.edit_bill: Transition(frozenset({QUOTE_SENT}), QUOTE_SENT),
    LifecycleAction.confirm_payment: Transition(frozenset({QUOTE_SENT}), QUOTE_ACCEPTED),
}


def ensure_transition(
    table: dict[LifecycleAction, Transition], action: LifecycleAction, current: str
) -> Transition:
    transition = table.get(action)
    if transition is None or current not in transition.sources:
        raise InvalidState(detail=f"Cannot {action.value.replace('_', ' ')} from status {current}")
    return transition


def ensure_repair_transition(action: LifecycleAction, current: str) -> Transition:
    return ensure_transition(REPAIR_TRANSITIONS, action, current)


def ensure_quote_transition(action: LifecycleAction, current: str) -> Transition:
    return ensure_transition(QUOTE_TRANSITIONS, action, current)
