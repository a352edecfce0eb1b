"""
Tests for `services/expiry_sweep.py`.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from conftest import NOW, make_order
from domain.expiry import effective_status
from domain.order import OrderStatus
from repositories.memory_store import InMemoryOrderStore
from services.expiry_sweep import sweep_expired_orders


def test_sweep_expires_only_stale_open_orders() -> None:
    store = InMemoryOrderStore(
        [
            make_order(order_id="stale", quota_total=5, quota_filled=2, expires_in=timedelta(hours=-1)),
            make_order(order_id="boundary", expires_in=timedelta(0)),
            make_order(order_id="fresh", expires_in=timedelta(hours=1)),
            make_order(order_id="full", quota_total=3, quota_filled=3, expires_in=timedelta(days=-3)),
        ]
    )

    assert sweep_expired_orders(store, NOW) == 2

    assert store.get_order("stale").status is OrderStatus.EXPIRED
    assert store.get_order("stale").quota_filled == 2
    assert store.get_order("boundary").status is OrderStatus.EXPIRED
    assert store.get_order("fresh").status is OrderStatus.OPEN
    assert store.get_order("full").status is OrderStatus.FULFILLED


def test_sweep_is_idempotent() -> None:
    store = InMemoryOrderStore([make_order(expires_in=timedelta(days=-1))])

    assert sweep_expired_orders(store, NOW) == 1
    assert sweep_expired_orders(store, NOW) == 0
    assert sweep_expired_orders(store, NOW + timedelta(days=1)) == 0


def test_sweep_only_caches_effective_status() -> None:
    """Before and after the sweep, effective status is the same."""

    orders = [
        make_order(order_id="a", expires_in=timedelta(hours=-5)),
        make_order(order_id="b", expires_in=timedelta(hours=5)),
        make_order(order_id="c", quota_total=2, quota_filled=2, expires_in=timedelta(hours=-5)),
    ]
    store = InMemoryOrderStore(orders)
    before = {o.order_id: effective_status(o, NOW) for o in store.list_orders()}

    sweep_expired_orders(store, NOW)

    after = {o.order_id: effective_status(o, NOW) for o in store.list_orders()}
    assert before == after


def test_sweep_with_nothing_stale(store) -> None:
    assert sweep_expired_orders(store, NOW) == 0


def test_sweep_requires_utc_now(store) -> None:
    with pytest.raises(ValueError):
        sweep_expired_orders(store, datetime(2026, 1, 15, 12, 0, 0))
