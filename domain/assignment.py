"""
Domain: assignments.

An Assignment is the append-only audit record binding one lead to one order
and consuming one unit of that order's quota.

Uniqueness constraint: the pair (order_id, lead_id) occurs at most once across
all Assignment rows. This is what makes caller-side retries safe.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from .errors import (
    ConflictError,
    ExpiredError,
    NotFoundError,
    OrderEngineError,
    TransientError,
    ValidationError,
)
from .order import OrderStatus
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Assignment:
    assignment_id: str
    order_id: str
    lead_id: str
    agent_id: str
    submission_id: str
    assigned_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("assigned_at", self.assigned_at)

    @property
    def key(self) -> tuple[str, str]:
        return (self.order_id, self.lead_id)


class AssignmentErrorKind(str, Enum):
    INVALID_REQUEST = "INVALID_REQUEST"
    LEAD_UNRESOLVED = "LEAD_UNRESOLVED"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ORDER_NOT_OPEN = "ORDER_NOT_OPEN"
    DUPLICATE_ASSIGNMENT = "DUPLICATE_ASSIGNMENT"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


# Error category each kind is reported under.
ERROR_CATEGORY: dict[AssignmentErrorKind, type[OrderEngineError]] = {
    AssignmentErrorKind.INVALID_REQUEST: ValidationError,
    AssignmentErrorKind.LEAD_UNRESOLVED: NotFoundError,
    AssignmentErrorKind.ORDER_NOT_FOUND: NotFoundError,
    AssignmentErrorKind.ORDER_NOT_OPEN: ExpiredError,
    AssignmentErrorKind.DUPLICATE_ASSIGNMENT: ConflictError,
    AssignmentErrorKind.QUOTA_EXCEEDED: ConflictError,
    AssignmentErrorKind.STORE_UNAVAILABLE: TransientError,
}


def assignment_exception(kind: AssignmentErrorKind, message: str) -> OrderEngineError:
    """Build the taxonomy exception for an assignment failure kind."""

    return ERROR_CATEGORY[kind](message, kind=kind.value)


@dataclass(frozen=True, slots=True)
class AssignmentResult:
    """Successful assignment."""

    order_id: str
    lead_id: str
    attorney_id: str
    assignment_id: str
    assigned_at: datetime
    quota_filled: int
    quota_total: int
    status: OrderStatus

    success: bool = True


@dataclass(frozen=True, slots=True)
class AssignmentError:
    """Rejected or failed assignment, reported verbatim to the caller."""

    kind: AssignmentErrorKind
    category: str
    message: str
    order_id: Optional[str] = None
    retryable: bool = False

    success: bool = False

    @staticmethod
    def from_exception(exc: OrderEngineError, order_id: Optional[str] = None) -> "AssignmentError":
        try:
            kind = AssignmentErrorKind(exc.kind)
        except ValueError:
            kind = (
                AssignmentErrorKind.STORE_UNAVAILABLE
                if exc.retryable
                else AssignmentErrorKind.INVALID_REQUEST
            )
        return AssignmentError(
            kind=kind,
            category=exc.category,
            message=exc.message,
            order_id=order_id,
            retryable=exc.retryable,
        )


AssignmentOutcome = Union[AssignmentResult, AssignmentError]


__all__ = [
    "Assignment",
    "AssignmentError",
    "AssignmentErrorKind",
    "AssignmentOutcome",
    "AssignmentResult",
    "ERROR_CATEGORY",
    "assignment_exception",
]
