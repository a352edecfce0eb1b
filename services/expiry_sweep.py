"""
Expiry sweep.

Persists EXPIRED for OPEN orders whose expires_at has passed. The persisted
status is only a cache of effective_status(), so the sweep is optional: skipping
it never makes an expired order eligible. It is idempotent and safe to run on
any single node at any cadence.

Full orders are never touched (they are FULFILLED, which wins over expiry).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from domain.time import require_utc_timestamp, utc_now
from repositories.order_store import OrderStore

logger = logging.getLogger(__name__)


def sweep_expired_orders(store: OrderStore, now: Optional[datetime] = None) -> int:
    """
    Flip stale OPEN orders to EXPIRED.

    Returns:
        Number of orders expired by this run (0 when nothing was stale)
    """

    now = now or utc_now()
    require_utc_timestamp("now", now)

    expired = store.expire_stale_orders(now)
    if expired:
        logger.info("Expired %d stale order(s) as of %s", expired, now.isoformat())
    else:
        logger.debug("No stale orders as of %s", now.isoformat())
    return expired


__all__ = ["sweep_expired_orders"]
