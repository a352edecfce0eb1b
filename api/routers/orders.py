"""
Orders API Endpoints.

Endpoints for browsing fulfillment orders and running the expiry sweep.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_engine
from api.models import ExpirySweepResponse, OrderListResponse, OrderResponse
from domain.errors import OrderEngineError
from domain.expiry import effective_status
from domain.order import Order, OrderStatus
from services.expiry_sweep import sweep_expired_orders
from services.wiring import FulfillmentEngine

router = APIRouter()


def _to_response(order: Order, label: str, now) -> OrderResponse:
    return OrderResponse(
        order_id=order.order_id,
        attorney_id=order.attorney_id,
        attorney_label=label,
        target_states=sorted(order.target_states),
        case_type=order.case_type,
        case_subtype=order.case_subtype,
        quota_total=order.quota_total,
        quota_filled=order.quota_filled,
        remaining=order.remaining,
        fill_percent=round(order.fill_percent, 2),
        status=order.status.value,
        effective_status=effective_status(order, now).value,
        expires_at=order.expires_at,
        created_at=order.created_at,
    )


@router.get(
    "/orders",
    response_model=OrderListResponse,
    summary="List Orders",
    description="List fulfillment orders newest first, optionally filtered by effective status."
)
def list_orders(
    status: Optional[str] = Query(None, description="Filter by effective status ('OPEN', 'FULFILLED', 'EXPIRED')"),
    engine: FulfillmentEngine = Depends(get_engine),
):
    """
    List orders with their quota progress.

    The filter applies to the *effective* status, so an OPEN row past its
    expiry is reported (and filtered) as EXPIRED even before the sweep runs.
    """
    wanted = None
    if status:
        try:
            wanted = OrderStatus(status.strip().upper())
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid status. Must be 'OPEN', 'FULFILLED' or 'EXPIRED', got '{status}'"
            )

    try:
        now = engine.clock()
        orders = [
            order
            for order in engine.store.list_orders()
            if wanted is None or effective_status(order, now) is wanted
        ]
        labels = engine.attorneys.labels_for(order.attorney_id for order in orders)
        items = [_to_response(order, labels[order.attorney_id], now) for order in orders]
    except OrderEngineError as e:
        raise HTTPException(status_code=503, detail=f"Failed to list orders: {e.message}")

    return OrderListResponse(items=items, total_count=len(items))


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    summary="Get Order",
)
def get_order(order_id: str, engine: FulfillmentEngine = Depends(get_engine)):
    """Fetch one order with its effective status."""
    try:
        order = engine.store.get_order(order_id)
    except OrderEngineError as e:
        raise HTTPException(status_code=503, detail=f"Failed to fetch order: {e.message}")

    if order is None:
        raise HTTPException(status_code=404, detail=f"Order not found: {order_id}")

    return _to_response(order, engine.attorneys.label_for(order.attorney_id), engine.clock())


@router.post(
    "/orders/expire",
    response_model=ExpirySweepResponse,
    summary="Expire Stale Orders",
    description="Persist EXPIRED for OPEN orders past their expiry. Idempotent."
)
def expire_orders(engine: FulfillmentEngine = Depends(get_engine)):
    """Run the expiry sweep once."""
    now = engine.clock()
    try:
        expired = sweep_expired_orders(engine.store, now)
    except OrderEngineError as e:
        raise HTTPException(status_code=503, detail=f"Expiry sweep failed: {e.message}")

    return ExpirySweepResponse(expired_count=expired, swept_at=now)
