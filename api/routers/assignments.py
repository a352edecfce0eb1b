"""
Assignments API Endpoints.

Endpoint for atomically assigning a lead to a fulfillment order.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from api.dependencies import get_engine
from api.models import AssignmentRequest, AssignmentResponse, ErrorDetail
from domain.assignment import AssignmentError, AssignmentErrorKind
from services.wiring import FulfillmentEngine

router = APIRouter()

# HTTP status reported for each rejection kind.
_STATUS_BY_KIND = {
    AssignmentErrorKind.INVALID_REQUEST: 400,
    AssignmentErrorKind.LEAD_UNRESOLVED: 404,
    AssignmentErrorKind.ORDER_NOT_FOUND: 404,
    AssignmentErrorKind.DUPLICATE_ASSIGNMENT: 409,
    AssignmentErrorKind.QUOTA_EXCEEDED: 409,
    AssignmentErrorKind.ORDER_NOT_OPEN: 410,
    AssignmentErrorKind.STORE_UNAVAILABLE: 503,
}


def _error_response(error: AssignmentError) -> JSONResponse:
    body = ErrorDetail(
        error_kind=error.kind.value,
        category=error.category,
        message=error.message,
        retryable=error.retryable,
    )
    return JSONResponse(status_code=_STATUS_BY_KIND.get(error.kind, 400), content=body.model_dump())


@router.post(
    "/assignments",
    response_model=AssignmentResponse,
    status_code=201,
    summary="Assign Lead To Order",
    description="Atomically assign a lead to an order, consuming one unit of its quota.",
    responses={
        400: {"model": ErrorDetail},
        404: {"model": ErrorDetail},
        409: {"model": ErrorDetail},
        410: {"model": ErrorDetail},
        503: {"model": ErrorDetail},
    },
)
def assign_lead(request: AssignmentRequest, engine: FulfillmentEngine = Depends(get_engine)):
    """
    Assign the lead behind `submission_id` to `order_id`.

    **Outcomes:**
    - 201: assigned; quota incremented (status FULFILLED when the last unit is used)
    - 404 `LEAD_UNRESOLVED` / `ORDER_NOT_FOUND`
    - 409 `DUPLICATE_ASSIGNMENT`: this lead is already on this order (a retry
      of an earlier success reports this)
    - 409 `QUOTA_EXCEEDED`: a concurrent assignment took the last unit
    - 410 `ORDER_NOT_OPEN`: the order is fulfilled or expired
    - 503 `STORE_UNAVAILABLE`: retry with the same identifiers

    The caller is responsible for confirming the submission has a deal record
    before assigning.
    """
    try:
        outcome = engine.coordinator.assign(
            order_id=request.order_id,
            submission_id=request.submission_id,
            agent_id=request.agent_id,
        )
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to assign lead: {str(e)}"
        )

    if isinstance(outcome, AssignmentError):
        return _error_response(outcome)

    return AssignmentResponse(
        order_id=outcome.order_id,
        lead_id=outcome.lead_id,
        attorney_id=outcome.attorney_id,
        attorney_label=engine.attorneys.label_for(outcome.attorney_id),
        assignment_id=outcome.assignment_id,
        assigned_at=outcome.assigned_at,
        quota_filled=outcome.quota_filled,
        quota_total=outcome.quota_total,
        status=outcome.status.value,
    )
