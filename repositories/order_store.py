"""
OrderStore interface (persistence substrate).

An OrderStore holds Order rows and the append-only Assignment rows. It is a
CRUD substrate with exactly one non-trivial operation, `commit_assignment`,
which must be indivisible with respect to every other call touching the same
order: re-verify, insert the Assignment, increment `quota_filled`, and flip the
status to FULFILLED when the last unit is consumed.

Two implementations exist:
- repositories.order_repository.SupabaseOrderStore (production; the commit is
  the `assign_lead_to_order` PostgreSQL function, row-locked)
- repositories.memory_store.InMemoryOrderStore (tests and local runs; one lock
  per order)

No global lock spans different orders in either implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from domain.assignment import Assignment, AssignmentErrorKind, assignment_exception
from domain.order import Order, OrderStatus


def verify_commit(order: Optional[Order], order_id: str, lead_id: str, duplicate: bool, now: datetime) -> Order:
    """
    Commit-time checks, evaluated while the order is locked.

    Quota is checked before expiry so that losing a race against a concurrent
    winner is reported as QUOTA_EXCEEDED rather than as a closed order.
    """

    if order is None:
        raise assignment_exception(AssignmentErrorKind.ORDER_NOT_FOUND, f"Order not found: {order_id}")
    if duplicate:
        raise assignment_exception(
            AssignmentErrorKind.DUPLICATE_ASSIGNMENT,
            f"Lead {lead_id} is already assigned to order {order_id}",
        )
    if order.quota_filled >= order.quota_total:
        raise assignment_exception(
            AssignmentErrorKind.QUOTA_EXCEEDED,
            f"Order {order_id} quota was filled by a concurrent assignment "
            f"({order.quota_filled}/{order.quota_total})",
        )
    if order.status is OrderStatus.EXPIRED or now >= order.expires_at:
        raise assignment_exception(
            AssignmentErrorKind.ORDER_NOT_OPEN,
            f"Order {order_id} expired at {order.expires_at.isoformat()}",
        )
    return order


class OrderStore(ABC):
    """Storage contract shared by the Supabase and in-memory backends."""

    @abstractmethod
    def get_order(self, order_id: str) -> Optional[Order]:
        """Fetch one order, or None."""

    @abstractmethod
    def list_orders(self, status: Optional[OrderStatus] = None) -> List[Order]:
        """List orders newest first, optionally filtered by *persisted* status."""

    @abstractmethod
    def list_open_orders(self, now: datetime) -> List[Order]:
        """
        Candidate pushdown for recommendations: persisted OPEN orders with
        expires_at > now. Callers still apply effective_status.
        """

    @abstractmethod
    def insert_order(self, order: Order) -> Order:
        """Insert a new order row (orders are created outside the engine)."""

    @abstractmethod
    def find_assignment(self, order_id: str, lead_id: str) -> Optional[Assignment]:
        """Fetch the assignment for (order_id, lead_id), or None."""

    @abstractmethod
    def list_assignments(self, order_id: str) -> List[Assignment]:
        """All assignments of an order, oldest first."""

    @abstractmethod
    def commit_assignment(
        self,
        order_id: str,
        lead_id: str,
        agent_id: str,
        submission_id: str,
        assigned_at: datetime,
    ) -> tuple[Order, Assignment]:
        """
        Atomically assign `lead_id` to `order_id`.

        Returns the updated order and the new assignment. Raises NotFoundError,
        ConflictError or ExpiredError (see verify_commit) without side effects,
        or TransientError when the store is unavailable.
        """

    @abstractmethod
    def expire_stale_orders(self, now: datetime) -> int:
        """Persist EXPIRED for OPEN, non-full orders with expires_at <= now. Returns the count."""


__all__ = ["OrderStore", "verify_commit"]
