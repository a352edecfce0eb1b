"""
Recommendation service: rank open orders for a lead.

Eligibility (all must hold):
- effective_status(order, now) is OPEN
- lead.state is one of order.target_states (case-insensitive)
- remaining = quota_total - quota_filled > 0
- lead.case_type equals order.case_type (case-insensitive)
- the order's criteria exclusion rules accept the lead

Score (fixed weights):
- +40 state match
- +30 case type match
- +15 case subtype match (both present and equal; neutral otherwise)
- +10 * remaining / quota_total (rewards spare capacity, spreading load)
- +5 * max(0, 1 - hours_until_expiry / 72), clamped to [0, 5]
- criteria bonuses: +10 insured match, +2 uninsured ok

Ranking: score desc, expires_at asc, order_id asc; truncated to `limit`.

The reverse direction, ranking caller-supplied leads for one order, reuses the
same filters and score; leads are ordered by score desc, submission_id asc.

The service is a pure read with no caching: every call reflects the store as
of that call, so an assignment is visible to the next recommendation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from domain.assignment import AssignmentErrorKind
from domain.errors import NotFoundError, OrderEngineError, ValidationError
from domain.expiry import effective_status, hours_until_expiry
from domain.lead import LeadDescriptor
from domain.order import TRI_STATE_ATTRIBUTES, InsuredRule, Order, OrderCriteria, OrderStatus
from domain.time import require_utc_timestamp, utc_now
from repositories.attorney_directory import AttorneyDirectory
from repositories.lead_directory import LeadDirectory
from repositories.order_store import OrderStore

logger = logging.getLogger(__name__)

STATE_MATCH_WEIGHT = 40.0
CASE_TYPE_MATCH_WEIGHT = 30.0
CASE_SUBTYPE_MATCH_WEIGHT = 15.0
CAPACITY_WEIGHT = 10.0
URGENCY_WEIGHT = 5.0
URGENCY_HORIZON_HOURS = 72.0
INSURED_MATCH_BONUS = 10.0
UNINSURED_OK_BONUS = 2.0

REASON_STATE_MATCH = "state match"
REASON_CASE_TYPE_MATCH = "case type match"
REASON_CASE_SUBTYPE_MATCH = "case subtype match"
REASON_CAPACITY = "low quota pressure"
REASON_URGENCY = "expires soon"
REASON_INSURED_MATCH = "insured match"
REASON_UNINSURED_OK = "uninsured ok"

DEFAULT_LIMIT = 10
MAX_LIMIT = 25

_SCORE_PRECISION = 6


@dataclass(frozen=True, slots=True)
class Recommendation:
    order_id: str
    attorney_id: str
    attorney_label: str
    expires_at: datetime
    quota_total: int
    quota_filled: int
    remaining: int
    score: float
    reasons: List[str]


@dataclass(frozen=True, slots=True)
class LeadSummary:
    state: str
    submission_id: str
    lead_id: Optional[str]


@dataclass(frozen=True, slots=True)
class RecommendationError:
    kind: str
    category: str
    message: str
    retryable: bool = False


@dataclass(frozen=True, slots=True)
class RecommendationBatch:
    """
    Result of a recommendation request.

    On failure `recommendations` is empty and `error` describes why; failures
    are never raised to the caller.
    """

    lead: Optional[LeadSummary]
    recommendations: List[Recommendation] = field(default_factory=list)
    error: Optional[RecommendationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class LeadMatch:
    submission_id: str
    lead_id: Optional[str]
    state: str
    case_type: str
    score: float
    reasons: List[str]


@dataclass(frozen=True, slots=True)
class LeadMatchBatch:
    """Result of ranking candidate leads for one order. Never raised; see `error`."""

    order_id: str
    recommendations: List[LeadMatch] = field(default_factory=list)
    error: Optional[RecommendationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class CriteriaVerdict:
    accepted: bool
    bonus: float = 0.0
    reasons: tuple[str, ...] = ()


def _same_text(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return a.strip().casefold() == b.strip().casefold()


def evaluate_criteria(criteria: OrderCriteria, lead: LeadDescriptor) -> CriteriaVerdict:
    """Apply an order's exclusion rules and criteria bonuses to a lead."""

    for name in TRI_STATE_ATTRIBUTES:
        rule = getattr(criteria, name)
        if not rule.allows(getattr(lead, name)):
            return CriteriaVerdict(accepted=False)

    if criteria.insured is InsuredRule.INSURED_ONLY:
        if lead.insured is not True:
            return CriteriaVerdict(accepted=False)
        return CriteriaVerdict(accepted=True, bonus=INSURED_MATCH_BONUS, reasons=(REASON_INSURED_MATCH,))
    if criteria.insured is InsuredRule.UNINSURED_OK:
        return CriteriaVerdict(accepted=True, bonus=UNINSURED_OK_BONUS, reasons=(REASON_UNINSURED_OK,))

    return CriteriaVerdict(accepted=True)


def capacity_bonus(order: Order) -> float:
    return CAPACITY_WEIGHT * (order.remaining / order.quota_total)


def urgency_bonus(order: Order, now: datetime) -> float:
    hours = hours_until_expiry(order, now)
    value = URGENCY_WEIGHT * max(0.0, 1.0 - hours / URGENCY_HORIZON_HOURS)
    return min(URGENCY_WEIGHT, max(0.0, value))


def is_candidate(order: Order, lead: LeadDescriptor, now: datetime) -> bool:
    """Hard filters, excluding criteria rules."""

    return (
        effective_status(order, now) is OrderStatus.OPEN
        and order.accepts_state(lead.state)
        and order.remaining > 0
        and _same_text(order.case_type, lead.case_type)
    )


def score_order(order: Order, lead: LeadDescriptor, now: datetime) -> Optional[tuple[float, List[str]]]:
    """
    Score `order` for `lead`.

    Returns None when the order is not a candidate for the lead.
    """

    if not is_candidate(order, lead, now):
        return None

    verdict = evaluate_criteria(order.criteria, lead)
    if not verdict.accepted:
        return None

    score = STATE_MATCH_WEIGHT + CASE_TYPE_MATCH_WEIGHT
    reasons = [REASON_STATE_MATCH, REASON_CASE_TYPE_MATCH]

    if _same_text(order.case_subtype, lead.case_subtype):
        score += CASE_SUBTYPE_MATCH_WEIGHT
        reasons.append(REASON_CASE_SUBTYPE_MATCH)

    score += verdict.bonus
    reasons.extend(verdict.reasons)

    capacity = capacity_bonus(order)
    if capacity > 0:
        score += capacity
        reasons.append(REASON_CAPACITY)

    urgency = urgency_bonus(order, now)
    if urgency > 0:
        score += urgency
        reasons.append(REASON_URGENCY)

    return round(score, _SCORE_PRECISION), reasons


@dataclass(frozen=True, slots=True)
class _Scored:
    order: Order
    score: float
    reasons: List[str]


def _ranking_key(item: _Scored) -> tuple[float, datetime, str]:
    return (-item.score, item.order.expires_at, item.order.order_id)


class RecommendationEngine:
    """
    Filters and scores orders for a lead.

    Usage:
        engine = RecommendationEngine(store, attorneys, leads)
        batch = engine.recommend(LeadDescriptor(...), limit=8)
        if batch.ok:
            best = batch.recommendations[0]

        matches = engine.recommend_leads_for_order(order_id, candidate_leads)
    """

    def __init__(
        self,
        store: OrderStore,
        attorneys: Optional[AttorneyDirectory] = None,
        leads: Optional[LeadDirectory] = None,
        clock: Callable[[], datetime] = utc_now,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
    ) -> None:
        self._store = store
        self._attorneys = attorneys
        self._leads = leads
        self._clock = clock
        self._default_limit = default_limit
        self._max_limit = max_limit

    def clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            limit = self._default_limit
        return min(max(int(limit), 1), self._max_limit)

    def recommend(
        self,
        lead: Union[LeadDescriptor, Mapping[str, Any]],
        limit: Optional[int] = None,
    ) -> RecommendationBatch:
        """
        Rank eligible orders for `lead`.

        Malformed descriptors and storage failures degrade to an empty list
        with `error` set.
        """

        try:
            descriptor = _as_descriptor(lead)
        except ValidationError as e:
            logger.warning("Rejected lead descriptor: %s", e.message)
            return RecommendationBatch(lead=None, error=_to_error(e))

        summary = LeadSummary(
            state=descriptor.state,
            submission_id=descriptor.submission_id,
            lead_id=descriptor.lead_id or self._resolve_lead_id(descriptor.submission_id),
        )

        now = self._clock()
        require_utc_timestamp("now", now)
        size = self.clamp_limit(limit)

        try:
            orders = self._store.list_open_orders(now)
        except OrderEngineError as e:
            logger.error("Recommendation failed for submission %s: %s", descriptor.submission_id, e.message)
            return RecommendationBatch(lead=summary, error=_to_error(e))

        ranked = sorted(self._score_all(orders, descriptor, now), key=_ranking_key)[:size]
        recommendations = self._with_labels(ranked)

        logger.info(
            "Recommended %d of %d open orders for submission %s (state=%s, case_type=%s)",
            len(recommendations),
            len(orders),
            descriptor.submission_id,
            descriptor.state,
            descriptor.case_type,
        )
        return RecommendationBatch(lead=summary, recommendations=recommendations)

    def recommend_leads_for_order(
        self,
        order_id: str,
        leads: Iterable[Union[LeadDescriptor, Mapping[str, Any]]],
        limit: Optional[int] = None,
    ) -> LeadMatchBatch:
        """
        Rank caller-supplied leads for one order.

        Uses the same filters and score as `recommend`. Leads already assigned
        to the order are skipped, as are malformed descriptors. An order that
        is no longer OPEN yields an empty list; a missing order or a storage
        failure yields an empty list with `error` set.
        """

        order_id = (order_id or "").strip()
        now = self._clock()
        require_utc_timestamp("now", now)
        size = self.clamp_limit(limit)

        try:
            order = self._store.get_order(order_id) if order_id else None
            if order is None:
                raise NotFoundError(
                    f"Order not found: {order_id}", kind=AssignmentErrorKind.ORDER_NOT_FOUND.value
                )

            status = effective_status(order, now)
            if status is not OrderStatus.OPEN:
                logger.info("Order %s is %s; no leads recommended", order_id, status.value)
                return LeadMatchBatch(order_id=order_id)

            assigned = self._store.list_assignments(order_id)
        except OrderEngineError as e:
            logger.warning("Lead recommendation for order %s failed: %s", order_id, e.message)
            return LeadMatchBatch(order_id=order_id, error=_to_error(e))

        taken_submissions = {a.submission_id for a in assigned if a.submission_id}
        taken_leads = {a.lead_id for a in assigned}

        scored: List[tuple[LeadDescriptor, float, List[str]]] = []
        for raw in leads:
            try:
                descriptor = _as_descriptor(raw)
            except ValidationError as e:
                logger.warning("Skipped lead descriptor for order %s: %s", order_id, e.message)
                continue
            if descriptor.submission_id in taken_submissions or descriptor.lead_id in taken_leads:
                continue
            result = score_order(order, descriptor, now)
            if result is None:
                continue
            scored.append((descriptor, result[0], result[1]))

        scored.sort(key=lambda item: (-item[1], item[0].submission_id))
        matches: List[LeadMatch] = []
        for descriptor, score, reasons in scored:
            if len(matches) >= size:
                break
            # Resolved lazily so only leads that make the cut are looked up.
            lead_id = descriptor.lead_id or self._resolve_lead_id(descriptor.submission_id)
            if lead_id is not None and lead_id in taken_leads:
                continue
            matches.append(
                LeadMatch(
                    submission_id=descriptor.submission_id,
                    lead_id=lead_id,
                    state=descriptor.state,
                    case_type=descriptor.case_type,
                    score=score,
                    reasons=reasons,
                )
            )

        logger.info(
            "Recommended %d of %d supplied leads for order %s (%d already assigned)",
            len(matches),
            len(scored),
            order_id,
            len(assigned),
        )
        return LeadMatchBatch(order_id=order_id, recommendations=matches)

    def _score_all(self, orders: List[Order], lead: LeadDescriptor, now: datetime) -> List[_Scored]:
        scored: List[_Scored] = []
        for order in orders:
            result = score_order(order, lead, now)
            if result is None:
                continue
            score, reasons = result
            logger.debug("Scored order %s => %.3f %s", order.order_id, score, reasons)
            scored.append(_Scored(order=order, score=score, reasons=reasons))
        return scored

    def _with_labels(self, ranked: List[_Scored]) -> List[Recommendation]:
        labels = self._labels_for([item.order.attorney_id for item in ranked])
        return [
            Recommendation(
                order_id=item.order.order_id,
                attorney_id=item.order.attorney_id,
                attorney_label=labels.get(item.order.attorney_id, item.order.attorney_id),
                expires_at=item.order.expires_at,
                quota_total=item.order.quota_total,
                quota_filled=item.order.quota_filled,
                remaining=item.order.remaining,
                score=item.score,
                reasons=item.reasons,
            )
            for item in ranked
        ]

    def _labels_for(self, attorney_ids: List[str]) -> Dict[str, str]:
        if not attorney_ids:
            return {}
        if self._attorneys is None:
            return {attorney_id: attorney_id for attorney_id in attorney_ids}
        return self._attorneys.labels_for(attorney_ids)

    def _resolve_lead_id(self, submission_id: str) -> Optional[str]:
        if self._leads is None:
            return None
        try:
            return self._leads.resolve(submission_id)
        except OrderEngineError as e:
            # The lead id is informational here; assignment resolves it again.
            logger.warning("Lead lookup failed for submission %s: %s", submission_id, e.message)
            return None


def _as_descriptor(lead: Union[LeadDescriptor, Mapping[str, Any]]) -> LeadDescriptor:
    return lead if isinstance(lead, LeadDescriptor) else LeadDescriptor.from_mapping(lead)


def _to_error(exc: OrderEngineError) -> RecommendationError:
    return RecommendationError(
        kind=exc.kind,
        category=exc.category,
        message=exc.message,
        retryable=exc.retryable,
    )


__all__ = [
    "CriteriaVerdict",
    "LeadMatch",
    "LeadMatchBatch",
    "LeadSummary",
    "Recommendation",
    "RecommendationBatch",
    "RecommendationEngine",
    "RecommendationError",
    "evaluate_criteria",
    "score_order",
]
