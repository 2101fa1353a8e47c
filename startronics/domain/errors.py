from dataclasses import dataclass
from typing import List


@dataclass
class DomainError(Exception):
    detail: str
    title: str = "Domain Error"
    type: str = "https://startronics.app/problems/domain-error"
    errors: List[dict] | None = None
    status_code: int = 400

    def __str__(self) -> str:
        return self.detail


@dataclass
class ValidationError(DomainError):
    title: str = "Validation Error"
    type: str = "https://startronics.app/problems/validation-error"
    status_code: int = 400


@dataclass
class InvalidState(DomainError):
    """The entity is not in a state that allows the requested transition."""

    title: str = "Invalid State"
    type: str = "https://startronics.app/problems/invalid-state"
    status_code: int = 409


@dataclass
class ClaimConflict(DomainError):
    """Another technician claimed the request first, or it left the pool."""

    title: str = "Claim Conflict"
    type: str = "https://startronics.app/problems/claim-conflict"
    status_code: int = 409


@dataclass
class NotFound(DomainError):
    title: str = "Not Found"
    type: str = "https://startronics.app/problems/not-found"
    status_code: int = 404


@dataclass
class PermissionDenied(DomainError):
    title: str = "Access Denied"
    type: str = "https://startronics.app/problems/permission-denied"
    status_code: int = 403


@dataclass
class UpstreamFailure(DomainError):
    """The backing store rejected or failed a write; message is passed through."""

    title: str = "Upstream Failure"
    type: str = "https://startronics.app/problems/upstream-failure"
    status_code: int = 502


@dataclass
class PaymentFailed(UpstreamFailure):
    title: str = "Payment Failed"
    type: str = "https://startronics.app/problems/payment-failed"
    status_code: int = 502
