"""
Pytest configuration.

Adds the project root to the Python path so tests can import domain,
repositories, services and api, and provides shared fixtures built on the
in-memory backends.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add the project directory to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.order import Order, OrderCriteria, OrderStatus, normalize_states  # noqa: E402
from repositories.attorney_directory import InMemoryAttorneyDirectory  # noqa: E402
from repositories.lead_directory import InMemoryLeadDirectory  # noqa: E402
from repositories.memory_store import InMemoryOrderStore  # noqa: E402

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_order(
    order_id: str = "order-1",
    attorney_id: str = "atty-1",
    states=("TX", "OK"),
    case_type: str = "AUTO",
    case_subtype=None,
    quota_total: int = 10,
    quota_filled: int = 0,
    expires_in: timedelta = timedelta(days=30),
    status=None,
    criteria=None,
    created_at: datetime = NOW - timedelta(days=1),
) -> Order:
    if status is None:
        status = OrderStatus.FULFILLED if quota_filled == quota_total else OrderStatus.OPEN
    return Order(
        order_id=order_id,
        attorney_id=attorney_id,
        target_states=normalize_states(states),
        case_type=case_type,
        case_subtype=case_subtype,
        quota_total=quota_total,
        quota_filled=quota_filled,
        status=status,
        expires_at=NOW + expires_in,
        created_at=created_at,
        criteria=OrderCriteria.from_mapping(criteria),
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture
def leads() -> InMemoryLeadDirectory:
    return InMemoryLeadDirectory({f"SUB-{i}": f"lead-{i}" for i in range(1, 101)})


@pytest.fixture
def attorneys() -> InMemoryAttorneyDirectory:
    return InMemoryAttorneyDirectory(
        {
            "atty-1": {"full_name": "Dana Reyes", "primary_email": "dana@example.com"},
            "atty-2": {"full_name": "", "primary_email": "intake@firm.example"},
        }
    )
