"""
Create a demo fulfillment order for testing and demos.

Orders are normally created outside the engine; this script seeds one so the
recommendation and assignment endpoints have something to work with:
- Order ID: 123e4567-e89b-12d3-a456-426614174100
- States: TX, OK
- Case type: AUTO
- Quota: 10, expiring 30 days from now
"""

import argparse
import sys
from datetime import timedelta
from pathlib import Path

# Add parent directory to path so we can import from repositories
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.order import Order, OrderCriteria, normalize_states
from domain.time import utc_now
from repositories.client import get_supabase
from repositories.order_repository import SupabaseOrderStore


DEMO_ORDER_ID = "123e4567-e89b-12d3-a456-426614174100"


def create_demo_order(attorney_id: str, quota: int, days: int) -> None:
    """Create the demo order unless it already exists."""

    store = SupabaseOrderStore(get_supabase())

    existing = store.get_order(DEMO_ORDER_ID)
    if existing is not None:
        print(f"Demo order already exists: {DEMO_ORDER_ID}")
        print(f"  Quota: {existing.quota_filled}/{existing.quota_total} ({existing.status.value})")
        return

    now = utc_now()
    order = Order(
        order_id=DEMO_ORDER_ID,
        attorney_id=attorney_id,
        target_states=normalize_states(["TX", "OK"]),
        case_type="AUTO",
        quota_total=quota,
        expires_at=now + timedelta(days=days),
        created_at=now,
        criteria=OrderCriteria.from_mapping({"is_injured": "yes"}),
    )
    store.insert_order(order)

    print(f"[SUCCESS] Demo order created successfully!")
    print(f"  Order ID: {DEMO_ORDER_ID}")
    print(f"  Attorney: {attorney_id}")
    print(f"  States: {', '.join(sorted(order.target_states))}")
    print(f"  Quota: {quota}")
    print(f"  Expires: {order.expires_at.isoformat()}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed a demo fulfillment order")
    parser.add_argument("--attorney-id", default="demo-attorney", help="Owning attorney id")
    parser.add_argument("--quota", type=int, default=10, help="Quota total")
    parser.add_argument("--days", type=int, default=30, help="Days until expiry")
    args = parser.parse_args()

    create_demo_order(args.attorney_id, args.quota, args.days)
