"""
Order repository (persistence, Supabase backend).

Provides persistence for Order and Assignment rows. Reads and the expiry sweep
go through the PostgREST table API; the assignment commit goes through the
`assign_lead_to_order()` PostgreSQL function, which locks the order row
(SELECT ... FOR UPDATE), re-verifies quota, duplicates and expiry, inserts the
assignment and increments quota_filled in a single transaction.

See supabase/migrations/ for the schema and the function body.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client  # type: ignore[import-not-found]

from domain.assignment import Assignment, AssignmentErrorKind, assignment_exception
from domain.errors import TransientError
from domain.order import Order, OrderCriteria, OrderStatus, normalize_states
from domain.time import parse_utc_datetime, require_utc_timestamp, to_iso_utc
from repositories.order_store import OrderStore
from repositories.store_errors import is_invalid_identifier, translate_api_error

logger = logging.getLogger(__name__)

# Supabase table names.
# Keep these aligned with your database schema.
_ORDERS_TABLE: str = "orders"
_ASSIGNMENTS_TABLE: str = "order_assignments"

_ORDER_COLUMNS: str = (
    "id,lawyer_id,target_states,case_type,case_subtype,criteria,"
    "quota_total,quota_filled,status,expires_at,created_at"
)

_ASSIGN_RPC: str = "assign_lead_to_order"


def _row_to_order(row: Mapping[str, Any]) -> Order:
    """Convert a Supabase row into an Order."""

    targets = row.get("target_states") or []
    subtype = row.get("case_subtype")

    return Order(
        order_id=str(row["id"]),
        attorney_id=str(row["lawyer_id"]),
        target_states=normalize_states(targets),
        case_type=str(row["case_type"]),
        case_subtype=str(subtype) if subtype else None,
        criteria=OrderCriteria.from_mapping(row.get("criteria")),
        quota_total=int(row["quota_total"]),
        quota_filled=int(row["quota_filled"]),
        status=OrderStatus(str(row["status"])),
        expires_at=parse_utc_datetime(row["expires_at"]),
        created_at=parse_utc_datetime(row["created_at"]),
    )


def _order_to_row(order: Order) -> dict[str, Any]:
    """Convert an Order to a Supabase row payload."""

    return {
        "id": order.order_id,
        "lawyer_id": order.attorney_id,
        "target_states": sorted(order.target_states),
        "case_type": order.case_type,
        "case_subtype": order.case_subtype,
        "criteria": order.criteria.to_mapping(),
        "quota_total": order.quota_total,
        "quota_filled": order.quota_filled,
        "status": order.status.value,
        "expires_at": to_iso_utc(order.expires_at, name="expires_at"),
        "created_at": to_iso_utc(order.created_at, name="created_at"),
    }


def _row_to_assignment(row: Mapping[str, Any]) -> Assignment:
    """Convert a Supabase row into an Assignment."""

    return Assignment(
        assignment_id=str(row["id"]),
        order_id=str(row["order_id"]),
        lead_id=str(row["lead_id"]),
        agent_id=str(row["agent_id"]),
        submission_id=str(row.get("submission_id") or ""),
        assigned_at=parse_utc_datetime(row["assigned_at"]),
    )


def _execute(
    build: Callable[[], Any],
    action: str,
    *,
    lookup_by_id: bool = False,
) -> List[Mapping[str, Any]]:
    """
    Execute a PostgREST query and return its rows.

    Connectivity and server failures are reported as TransientError; data,
    constraint and access errors are not retryable (see store_errors). With
    `lookup_by_id`, an id the database cannot parse matches no rows.
    """

    try:
        response = build().execute()
    except APIError as e:
        if lookup_by_id and is_invalid_identifier(e):
            return []
        raise translate_api_error(e, action) from e
    except httpx.HTTPError as e:
        raise TransientError(f"Failed to {action}: storage unavailable ({e})") from e

    error = getattr(response, "error", None)
    if error:
        raise TransientError(f"Failed to {action}: {error}")

    return getattr(response, "data", None) or []


def _rpc_payload(error: APIError) -> dict[str, Any]:
    """
    Extract the JSON body of an APIError.

    Supabase-py may raise APIError for a JSON-returning function even when the
    function reported success, so the body is inspected rather than trusted.
    """

    try:
        payload = error.json() if callable(getattr(error, "json", None)) else {}
    except (TypeError, ValueError):
        payload = {}
    return payload if isinstance(payload, dict) else {}


class SupabaseOrderStore(OrderStore):
    def __init__(self, client: Client) -> None:
        self._client = client

    def get_order(self, order_id: str) -> Optional[Order]:
        rows = _execute(
            lambda: self._client.table(_ORDERS_TABLE)
            .select(_ORDER_COLUMNS)
            .eq("id", order_id)
            .limit(1),
            "fetch order",
            lookup_by_id=True,
        )
        if not rows:
            return None
        return _row_to_order(rows[0])

    def list_orders(self, status: Optional[OrderStatus] = None) -> List[Order]:
        def build() -> Any:
            query = self._client.table(_ORDERS_TABLE).select(_ORDER_COLUMNS)
            if status is not None:
                query = query.eq("status", status.value)
            return query.order("created_at", desc=True)

        return [_row_to_order(row) for row in _execute(build, "list orders")]

    def list_open_orders(self, now: datetime) -> List[Order]:
        rows = _execute(
            lambda: self._client.table(_ORDERS_TABLE)
            .select(_ORDER_COLUMNS)
            .eq("status", OrderStatus.OPEN.value)
            .gt("expires_at", to_iso_utc(now, name="now")),
            "list open orders",
        )
        return [_row_to_order(row) for row in rows]

    def insert_order(self, order: Order) -> Order:
        _execute(
            lambda: self._client.table(_ORDERS_TABLE).insert(_order_to_row(order)),
            "insert order",
        )
        return order

    def find_assignment(self, order_id: str, lead_id: str) -> Optional[Assignment]:
        rows = _execute(
            lambda: self._client.table(_ASSIGNMENTS_TABLE)
            .select("*")
            .eq("order_id", order_id)
            .eq("lead_id", lead_id)
            .limit(1),
            "fetch assignment",
            lookup_by_id=True,
        )
        if not rows:
            return None
        return _row_to_assignment(rows[0])

    def list_assignments(self, order_id: str) -> List[Assignment]:
        rows = _execute(
            lambda: self._client.table(_ASSIGNMENTS_TABLE)
            .select("*")
            .eq("order_id", order_id)
            .order("assigned_at"),
            "list assignments",
            lookup_by_id=True,
        )
        return [_row_to_assignment(row) for row in rows]

    def commit_assignment(
        self,
        order_id: str,
        lead_id: str,
        agent_id: str,
        submission_id: str,
        assigned_at: datetime,
    ) -> tuple[Order, Assignment]:
        require_utc_timestamp("assigned_at", assigned_at)
        params = {
            "p_order_id": order_id,
            "p_lead_id": lead_id,
            "p_agent_id": agent_id,
            "p_submission_id": submission_id,
            "p_assigned_at": to_iso_utc(assigned_at, name="assigned_at"),
        }

        try:
            response = self._client.rpc(_ASSIGN_RPC, params).execute()
            result = getattr(response, "data", None) or {}
        except APIError as e:
            result = _rpc_payload(e)
            if "success" not in result:
                if is_invalid_identifier(e):
                    raise assignment_exception(
                        AssignmentErrorKind.ORDER_NOT_FOUND, f"Order not found: {order_id}"
                    ) from e
                raise translate_api_error(e, "commit assignment") from e
        except httpx.HTTPError as e:
            raise TransientError(f"Failed to commit assignment: storage unavailable ({e})") from e

        if not result.get("success"):
            code = str(result.get("error") or "")
            message = str(result.get("message") or f"Assignment rejected for order {order_id}")
            try:
                kind = AssignmentErrorKind(code)
            except ValueError:
                logger.error("Unexpected %s response for order %s: %r", _ASSIGN_RPC, order_id, result)
                raise TransientError(f"Failed to commit assignment: {message}")
            raise assignment_exception(kind, message)

        return _row_to_order(result["order"]), _row_to_assignment(result["assignment"])

    def expire_stale_orders(self, now: datetime) -> int:
        # OPEN orders are never full, so status + expires_at identifies every stale row.
        # The UPDATE waits on rows locked by an in-flight commit and re-checks status.
        rows = _execute(
            lambda: self._client.table(_ORDERS_TABLE)
            .update({"status": OrderStatus.EXPIRED.value})
            .eq("status", OrderStatus.OPEN.value)
            .lte("expires_at", to_iso_utc(now, name="now")),
            "expire stale orders",
        )
        return len(rows)


__all__ = ["SupabaseOrderStore"]
