"""
Assignment service: bind a lead to a fulfillment order.

Process:
1. Resolve lead_id from submission_id (LeadDirectory, always fresh)
2. Load the order
3. Reject a duplicate (order_id, lead_id) pair
4. Reject orders whose effective status is not OPEN
5. Commit atomically in the store, which re-verifies duplicates, quota and
   expiry under a per-order lock, inserts the Assignment, increments
   quota_filled by exactly 1 and flips to FULFILLED on the last unit

Steps 2-4 read a snapshot so callers get a precise error for orders that were
already closed when they asked. Step 5 is authoritative: an order filled by a
concurrent winner between the snapshot and the commit is reported as
QUOTA_EXCEEDED. Within one order the first committer wins, not the first
requester.

Duplicates are checked before status so that a retried call whose first
attempt consumed the last unit still reports DUPLICATE_ASSIGNMENT.

There are no automatic retries here. Retrying with the same identifiers is
always safe because of the (order_id, lead_id) uniqueness constraint.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from domain.assignment import (
    AssignmentError,
    AssignmentErrorKind,
    AssignmentOutcome,
    AssignmentResult,
    assignment_exception,
)
from domain.errors import OrderEngineError
from domain.expiry import effective_status
from domain.order import OrderStatus
from domain.time import require_utc_timestamp, utc_now
from repositories.lead_directory import LeadDirectory
from repositories.order_store import OrderStore

logger = logging.getLogger(__name__)


class AssignmentCoordinator:
    """
    Performs lead -> order assignments.

    Usage:
        coordinator = AssignmentCoordinator(store, leads)
        outcome = coordinator.assign(order_id, submission_id, agent_id)
        if outcome.success:
            print(f"{outcome.lead_id} -> {outcome.order_id} ({outcome.quota_filled}/{outcome.quota_total})")
        elif outcome.retryable:
            ...  # retry with the same identifiers
    """

    def __init__(
        self,
        store: OrderStore,
        leads: LeadDirectory,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._leads = leads
        self._clock = clock

    def assign(self, order_id: str, submission_id: str, agent_id: str) -> AssignmentOutcome:
        """
        Assign the lead behind `submission_id` to `order_id` on behalf of `agent_id`.

        Returns AssignmentResult on success or AssignmentError describing the
        precise failure kind. Never raises for engine failures.
        """

        order_id = (order_id or "").strip()
        submission_id = (submission_id or "").strip()
        agent_id = (agent_id or "").strip()

        try:
            result = self._assign(order_id, submission_id, agent_id)
        except OrderEngineError as e:
            error = AssignmentError.from_exception(e, order_id=order_id or None)
            if error.retryable:
                logger.error("Assignment to order %s failed (%s): %s", order_id, error.kind.value, error.message)
            else:
                logger.warning("Assignment to order %s rejected (%s): %s", order_id, error.kind.value, error.message)
            return error

        logger.info(
            "Assigned lead %s to order %s by agent %s (%d/%d, %s)",
            result.lead_id,
            result.order_id,
            agent_id,
            result.quota_filled,
            result.quota_total,
            result.status.value,
        )
        return result

    def _assign(self, order_id: str, submission_id: str, agent_id: str) -> AssignmentResult:
        missing = [
            name
            for name, value in (("order_id", order_id), ("submission_id", submission_id), ("agent_id", agent_id))
            if not value
        ]
        if missing:
            raise assignment_exception(
                AssignmentErrorKind.INVALID_REQUEST,
                f"Missing required field(s): {', '.join(missing)}",
            )

        # 1. Resolve lead
        lead_id = self._leads.resolve(submission_id)
        if not lead_id:
            raise assignment_exception(
                AssignmentErrorKind.LEAD_UNRESOLVED,
                f"Unable to resolve lead id for submission {submission_id}",
            )

        # 2. Load order
        order = self._store.get_order(order_id)
        if order is None:
            raise assignment_exception(AssignmentErrorKind.ORDER_NOT_FOUND, f"Order not found: {order_id}")

        # 3. Duplicate pair
        if self._store.find_assignment(order_id, lead_id) is not None:
            raise assignment_exception(
                AssignmentErrorKind.DUPLICATE_ASSIGNMENT,
                f"Lead {lead_id} is already assigned to order {order_id}",
            )

        # 4. Effective status
        now = self._clock()
        require_utc_timestamp("now", now)
        status = effective_status(order, now)
        if status is not OrderStatus.OPEN:
            raise assignment_exception(
                AssignmentErrorKind.ORDER_NOT_OPEN,
                f"Order {order_id} is {status.value.lower()} and no longer accepts leads",
            )

        # 5. Atomic commit
        updated, assignment = self._store.commit_assignment(
            order_id=order_id,
            lead_id=lead_id,
            agent_id=agent_id,
            submission_id=submission_id,
            assigned_at=now,
        )

        return AssignmentResult(
            order_id=updated.order_id,
            lead_id=assignment.lead_id,
            attorney_id=updated.attorney_id,
            assignment_id=assignment.assignment_id,
            assigned_at=assignment.assigned_at,
            quota_filled=updated.quota_filled,
            quota_total=updated.quota_total,
            status=updated.status,
        )


__all__ = ["AssignmentCoordinator"]
