"""
In-memory OrderStore.

Used by the test-suite and for local runs (ORDER_STORE_BACKEND=memory). It
honours the same contract as the Supabase store:

- each order is guarded by its own lock; contention on one order never
  blocks another
- `commit_assignment` runs verify + insert + increment under that lock
- the (order_id, lead_id) uniqueness constraint is enforced at commit time

This backend is process-local. Running several API instances requires the
Supabase backend.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, List, Optional
from uuid import uuid4

from domain.assignment import Assignment
from domain.order import Order, OrderStatus
from domain.time import require_utc_timestamp
from repositories.order_store import OrderStore, verify_commit


class InMemoryOrderStore(OrderStore):
    def __init__(self, orders: Optional[List[Order]] = None) -> None:
        self._orders: Dict[str, Order] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._assignments: Dict[tuple[str, str], Assignment] = {}
        # Guards the dictionaries themselves, never held while an order lock is taken.
        self._registry_lock = threading.Lock()

        for order in orders or []:
            self.insert_order(order)

    def _lock_for(self, order_id: str) -> Optional[threading.Lock]:
        with self._registry_lock:
            return self._locks.get(order_id)

    def get_order(self, order_id: str) -> Optional[Order]:
        with self._registry_lock:
            return self._orders.get(order_id)

    def list_orders(self, status: Optional[OrderStatus] = None) -> List[Order]:
        with self._registry_lock:
            orders = list(self._orders.values())
        if status is not None:
            orders = [o for o in orders if o.status is status]
        return sorted(orders, key=lambda o: (o.created_at, o.order_id), reverse=True)

    def list_open_orders(self, now: datetime) -> List[Order]:
        require_utc_timestamp("now", now)
        return [
            o for o in self.list_orders(OrderStatus.OPEN)
            if o.expires_at > now
        ]

    def insert_order(self, order: Order) -> Order:
        with self._registry_lock:
            if order.order_id in self._orders:
                raise ValueError(f"Order already exists: {order.order_id}")
            self._orders[order.order_id] = order
            self._locks[order.order_id] = threading.Lock()
        return order

    def find_assignment(self, order_id: str, lead_id: str) -> Optional[Assignment]:
        with self._registry_lock:
            return self._assignments.get((order_id, lead_id))

    def list_assignments(self, order_id: str) -> List[Assignment]:
        with self._registry_lock:
            rows = [a for a in self._assignments.values() if a.order_id == order_id]
        return sorted(rows, key=lambda a: (a.assigned_at, a.assignment_id))

    def commit_assignment(
        self,
        order_id: str,
        lead_id: str,
        agent_id: str,
        submission_id: str,
        assigned_at: datetime,
    ) -> tuple[Order, Assignment]:
        require_utc_timestamp("assigned_at", assigned_at)

        lock = self._lock_for(order_id)
        if lock is None:
            verify_commit(None, order_id, lead_id, False, assigned_at)

        with lock:  # type: ignore[union-attr]
            with self._registry_lock:
                order = self._orders.get(order_id)
                duplicate = (order_id, lead_id) in self._assignments

            order = verify_commit(order, order_id, lead_id, duplicate, assigned_at)

            updated = order.with_assignment()
            assignment = Assignment(
                assignment_id=str(uuid4()),
                order_id=order_id,
                lead_id=lead_id,
                agent_id=agent_id,
                submission_id=submission_id,
                assigned_at=assigned_at,
            )

            with self._registry_lock:
                self._assignments[assignment.key] = assignment
                self._orders[order_id] = updated

        return updated, assignment

    def expire_stale_orders(self, now: datetime) -> int:
        require_utc_timestamp("now", now)

        expired = 0
        for order in self.list_orders(OrderStatus.OPEN):
            if order.expires_at > now:
                continue
            lock = self._lock_for(order.order_id)
            with lock:  # type: ignore[union-attr]
                with self._registry_lock:
                    current = self._orders[order.order_id]
                if current.status is not OrderStatus.OPEN or current.expires_at > now:
                    continue
                with self._registry_lock:
                    self._orders[order.order_id] = current.expired()
                expired += 1
        return expired


__all__ = ["InMemoryOrderStore"]
