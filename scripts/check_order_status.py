"""
Check order status - how many orders are open, fulfilled or expired, and how
full the open ones are.
"""

import sys
from collections import Counter
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.expiry import effective_status
from domain.order import OrderStatus
from domain.time import utc_now
from repositories.attorney_directory import SupabaseAttorneyDirectory
from repositories.client import get_supabase
from repositories.order_repository import SupabaseOrderStore


def check_order_status():
    """Summarize orders by persisted and effective status."""

    client = get_supabase()
    store = SupabaseOrderStore(client)
    attorneys = SupabaseAttorneyDirectory(client)

    now = utc_now()
    orders = store.list_orders()

    persisted = Counter(o.status for o in orders)
    effective = Counter(effective_status(o, now) for o in orders)

    print("=" * 50)
    print("ORDER STATUS")
    print("=" * 50)
    print(f"Total orders:              {len(orders)}")
    for status in OrderStatus:
        print(f"{status.value:<10} persisted: {persisted[status]:>5}   effective: {effective[status]:>5}")
    stale = effective[OrderStatus.EXPIRED] - persisted[OrderStatus.EXPIRED]
    if stale > 0:
        print(f"\n{stale} order(s) are past expiry but not yet swept (run scripts/expire_orders.py)")
    print("=" * 50)

    print("\nOpen orders:")
    print("-" * 50)
    for order in orders:
        if effective_status(order, now) is not OrderStatus.OPEN:
            continue
        label = attorneys.label_for(order.attorney_id)
        print(
            f"{order.order_id[:8]}  {label:<24} {order.case_type:<10} "
            f"{order.quota_filled}/{order.quota_total} ({order.fill_percent:.0f}%)  "
            f"expires {order.expires_at:%Y-%m-%d}"
        )
    print("-" * 50)


if __name__ == "__main__":
    check_order_status()
