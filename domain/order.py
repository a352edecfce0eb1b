"""
Domain: fulfillment orders.

An Order is an attorney's standing request for up to `quota_total` leads that
match its criteria, open until `expires_at`.

Rules implemented here:
- 0 <= quota_filled <= quota_total, and quota_total > 0.
- status == FULFILLED iff quota_filled == quota_total.
- FULFILLED and EXPIRED are terminal; nothing transitions back to OPEN.
- target_states is a non-empty set of upper-cased jurisdiction codes.

This module contains only pure domain entities/value objects: no I/O, no database.
All timestamps must be passed explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, Iterable, Mapping, Optional

from .time import require_utc_timestamp


class OrderStatus(str, Enum):
    OPEN = "OPEN"
    FULFILLED = "FULFILLED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.OPEN


class TriStateRule(str, Enum):
    """Order-side rule for a yes/no lead attribute."""

    EITHER = "either"
    YES = "yes"
    NO = "no"

    @staticmethod
    def parse(value: Any) -> "TriStateRule":
        # Unknown or missing rules never exclude a lead.
        text = str(value or "").strip().lower()
        try:
            return TriStateRule(text)
        except ValueError:
            return TriStateRule.EITHER

    def allows(self, lead_value: Optional[bool]) -> bool:
        if self is TriStateRule.YES:
            return lead_value is True
        if self is TriStateRule.NO:
            return lead_value is False
        return True


class InsuredRule(str, Enum):
    INSURED_ONLY = "insured_only"
    UNINSURED_OK = "uninsured_ok"

    @staticmethod
    def parse(value: Any) -> Optional["InsuredRule"]:
        text = str(value or "").strip().lower()
        if not text:
            return None
        try:
            return InsuredRule(text)
        except ValueError:
            return None


# Lead attributes an order can constrain with a TriStateRule.
TRI_STATE_ATTRIBUTES: tuple[str, ...] = (
    "prior_attorney_involved",
    "currently_represented",
    "is_injured",
    "received_medical_treatment",
    "accident_last_12_months",
)


@dataclass(frozen=True, slots=True)
class OrderCriteria:
    """
    Optional exclusion rules and bonuses attached to an order.

    Persisted as a JSON object on the order row, e.g.
    {"is_injured": "yes", "prior_attorney_involved": "no", "insured": "insured_only"}
    """

    prior_attorney_involved: TriStateRule = TriStateRule.EITHER
    currently_represented: TriStateRule = TriStateRule.EITHER
    is_injured: TriStateRule = TriStateRule.EITHER
    received_medical_treatment: TriStateRule = TriStateRule.EITHER
    accident_last_12_months: TriStateRule = TriStateRule.EITHER
    insured: Optional[InsuredRule] = None

    @staticmethod
    def from_mapping(raw: Optional[Mapping[str, Any]]) -> "OrderCriteria":
        if not raw:
            return OrderCriteria()
        rules = {name: TriStateRule.parse(raw.get(name)) for name in TRI_STATE_ATTRIBUTES}
        return OrderCriteria(insured=InsuredRule.parse(raw.get("insured")), **rules)

    def to_mapping(self) -> dict[str, str]:
        out: dict[str, str] = {}
        for name in TRI_STATE_ATTRIBUTES:
            rule: TriStateRule = getattr(self, name)
            if rule is not TriStateRule.EITHER:
                out[name] = rule.value
        if self.insured is not None:
            out["insured"] = self.insured.value
        return out


def normalize_state(value: Any) -> str:
    return str(value or "").strip().upper()


def normalize_states(values: Iterable[Any]) -> FrozenSet[str]:
    return frozenset(s for s in (normalize_state(v) for v in values) if s)


@dataclass(frozen=True, slots=True)
class Order:
    """
    Immutable snapshot of a fulfillment order row.

    State transitions return new instances (`with_assignment`, `expired`); the
    store decides when a transition is persisted.
    """

    order_id: str
    attorney_id: str
    target_states: FrozenSet[str]
    case_type: str
    quota_total: int
    expires_at: datetime
    created_at: datetime
    quota_filled: int = 0
    status: OrderStatus = OrderStatus.OPEN
    case_subtype: Optional[str] = None
    criteria: OrderCriteria = field(default_factory=OrderCriteria)

    def __post_init__(self) -> None:
        require_utc_timestamp("expires_at", self.expires_at)
        require_utc_timestamp("created_at", self.created_at)

        if not self.order_id:
            raise ValueError("order_id is required")
        if not self.target_states:
            raise ValueError("target_states must contain at least one state")
        if not self.case_type:
            raise ValueError("case_type is required")
        if self.quota_total <= 0:
            raise ValueError("quota_total must be > 0")
        if not 0 <= self.quota_filled <= self.quota_total:
            raise ValueError("quota_filled must satisfy 0 <= quota_filled <= quota_total")

        is_full = self.quota_filled == self.quota_total
        if is_full != (self.status is OrderStatus.FULFILLED):
            raise ValueError(
                f"status {self.status.value} is inconsistent with quota "
                f"{self.quota_filled}/{self.quota_total}"
            )

    @property
    def remaining(self) -> int:
        return self.quota_total - self.quota_filled

    @property
    def fill_percent(self) -> float:
        """Share of the quota consumed, 0-100."""
        return max(0.0, min(100.0, self.quota_filled / self.quota_total * 100))

    def accepts_state(self, state: str) -> bool:
        return normalize_state(state) in self.target_states

    def with_assignment(self) -> "Order":
        """
        Return the order after consuming one unit of quota.

        Flips to FULFILLED when the last unit is consumed.
        """

        if self.status is not OrderStatus.OPEN:
            raise ValueError(f"cannot assign to an order in status {self.status.value}")
        if self.quota_filled >= self.quota_total:
            raise ValueError("quota already filled")

        filled = self.quota_filled + 1
        status = OrderStatus.FULFILLED if filled == self.quota_total else OrderStatus.OPEN
        return replace(self, quota_filled=filled, status=status)

    def expired(self) -> "Order":
        """Return the order persisted as EXPIRED. Only OPEN, non-full orders can expire."""

        if self.status is not OrderStatus.OPEN:
            raise ValueError(f"cannot expire an order in status {self.status.value}")
        return replace(self, status=OrderStatus.EXPIRED)


__all__ = [
    "InsuredRule",
    "Order",
    "OrderCriteria",
    "OrderStatus",
    "TRI_STATE_ATTRIBUTES",
    "TriStateRule",
    "normalize_state",
    "normalize_states",
]
