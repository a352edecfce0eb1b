"""
Recommendations API Endpoints.

Endpoints for ranking open fulfillment orders against a lead, and candidate
leads against an order.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_engine
from api.models import (
    ErrorDetail,
    LeadRecommendationItem,
    LeadRecommendationRequest,
    LeadRecommendationResponse,
    LeadSummaryResponse,
    RecommendationItem,
    RecommendationRequest,
    RecommendationResponse,
)
from domain.errors import NotFoundError
from services.recommendation_service import RecommendationError
from services.wiring import FulfillmentEngine

router = APIRouter()


def _error_detail(error: Optional[RecommendationError]) -> Optional[ErrorDetail]:
    if error is None:
        return None
    return ErrorDetail(
        error_kind=error.kind,
        category=error.category,
        message=error.message,
        retryable=error.retryable,
    )


@router.post(
    "/recommendations",
    response_model=RecommendationResponse,
    summary="Recommend Open Orders",
    description="Rank open fulfillment orders that match a lead. Has no side effects."
)
def recommend_orders(request: RecommendationRequest, engine: FulfillmentEngine = Depends(get_engine)):
    """
    Rank open orders for a lead.

    **Eligibility:** effective status OPEN, lead state in the order's target
    states, remaining quota, matching case type, and order criteria.

    **Scoring:** state match (+40), case type match (+30), case subtype match
    (+15), spare capacity (up to +10), expiry urgency (up to +5), plus
    criteria bonuses.

    **Failures:** storage failures do not produce an HTTP error; the response
    carries an empty list and an `error` object so callers can retry on their
    own schedule.

    **Example request:**
    ```json
    {
      "lead": {"submission_id": "SUB-1042", "state": "TX", "case_type": "AUTO"},
      "limit": 8
    }
    ```
    """
    try:
        batch = engine.recommender.recommend(
            request.lead.model_dump(),
            limit=request.limit,
        )
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to compute recommendations: {str(e)}"
        )

    lead = None
    if batch.lead is not None:
        lead = LeadSummaryResponse(
            state=batch.lead.state,
            submission_id=batch.lead.submission_id,
            lead_id=batch.lead.lead_id,
        )

    return RecommendationResponse(
        lead=lead,
        recommendations=[
            RecommendationItem(
                order_id=rec.order_id,
                attorney_id=rec.attorney_id,
                attorney_label=rec.attorney_label,
                expires_at=rec.expires_at,
                quota_total=rec.quota_total,
                quota_filled=rec.quota_filled,
                remaining=rec.remaining,
                score=rec.score,
                reasons=list(rec.reasons),
            )
            for rec in batch.recommendations
        ],
        error=_error_detail(batch.error),
    )


@router.post(
    "/orders/{order_id}/lead-recommendations",
    response_model=LeadRecommendationResponse,
    summary="Recommend Leads For Order",
    description="Rank caller-supplied leads for one open order. Has no side effects."
)
def recommend_leads_for_order(
    order_id: str,
    request: LeadRecommendationRequest,
    engine: FulfillmentEngine = Depends(get_engine),
):
    """
    Rank candidate leads for an order using the same filters and score as
    order recommendations. Leads already assigned to the order are skipped.

    Returns 404 when the order does not exist. An order that is fulfilled or
    expired yields an empty list; storage failures are reported in `error`.
    """
    batch = engine.recommender.recommend_leads_for_order(
        order_id,
        [lead.model_dump() for lead in request.leads],
        limit=request.limit,
    )

    if batch.error is not None and batch.error.category == NotFoundError.category:
        raise HTTPException(status_code=404, detail=batch.error.message)

    return LeadRecommendationResponse(
        order_id=batch.order_id,
        recommendations=[
            LeadRecommendationItem(
                submission_id=match.submission_id,
                lead_id=match.lead_id,
                state=match.state,
                case_type=match.case_type,
                score=match.score,
                reasons=list(match.reasons),
            )
            for match in batch.recommendations
        ],
        error=_error_detail(batch.error),
    )
