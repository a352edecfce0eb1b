"""
Domain: effective order status.

`effective_status` is the single source of truth for eligibility. The
persisted `status` column is a cache of it, kept in sync by the expiry sweep;
never the other way around.

Evaluation order:
1. quota_filled >= quota_total -> FULFILLED (terminal, wins over expiry)
2. persisted EXPIRED, or now >= expires_at -> EXPIRED
3. otherwise OPEN
"""

from __future__ import annotations

from datetime import datetime, timedelta

from .order import Order, OrderStatus
from .time import require_utc_timestamp


def effective_status(order: Order, now: datetime) -> OrderStatus:
    """Compute the true status of `order` at `now`."""

    require_utc_timestamp("now", now)

    if order.quota_filled >= order.quota_total:
        return OrderStatus.FULFILLED
    if order.status is OrderStatus.EXPIRED or now >= order.expires_at:
        return OrderStatus.EXPIRED
    return OrderStatus.OPEN


def is_open(order: Order, now: datetime) -> bool:
    return effective_status(order, now) is OrderStatus.OPEN


def hours_until_expiry(order: Order, now: datetime) -> float:
    """Hours remaining before `expires_at`; negative once expired."""

    require_utc_timestamp("now", now)
    return (order.expires_at - now) / timedelta(hours=1)


__all__ = ["effective_status", "hours_until_expiry", "is_open"]
