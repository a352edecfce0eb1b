"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Recommendation Models
# ============================================================================

class LeadPayload(BaseModel):
    """Lead descriptor supplied by the caller (live overrides included)."""
    submission_id: str = Field(..., min_length=1, description="External submission identifier")
    state: str = Field(..., min_length=1, description="Lead jurisdiction code (e.g., 'TX')")
    case_type: str = Field(..., min_length=1, description="Case type used as a hard filter")
    lead_id: Optional[str] = None
    case_subtype: Optional[str] = None

    insured: Optional[bool] = None
    prior_attorney_involved: Optional[bool] = None
    currently_represented: Optional[bool] = None
    is_injured: Optional[bool] = None
    received_medical_treatment: Optional[bool] = None
    accident_last_12_months: Optional[bool] = None


class RecommendationRequest(BaseModel):
    """Request for ranked open orders."""
    lead: LeadPayload
    limit: Optional[int] = Field(None, description="Maximum results (clamped to 1..25)")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "lead": {
                    "submission_id": "SUB-1042",
                    "state": "TX",
                    "case_type": "AUTO",
                    "insured": True,
                },
                "limit": 8
            }
        }
    )


class RecommendationItem(BaseModel):
    """Single ranked order."""
    order_id: str
    attorney_id: str
    attorney_label: str
    expires_at: datetime
    quota_total: int
    quota_filled: int
    remaining: int
    score: float
    reasons: List[str]


class LeadSummaryResponse(BaseModel):
    state: str
    submission_id: str
    lead_id: Optional[str] = None


class ErrorDetail(BaseModel):
    """Engine failure reported in a response body."""
    error_kind: str
    category: str
    message: str
    retryable: bool = False


class RecommendationResponse(BaseModel):
    """Ranked recommendations; `error` is set (and the list empty) on failure."""
    lead: Optional[LeadSummaryResponse] = None
    recommendations: List[RecommendationItem]
    error: Optional[ErrorDetail] = None


class LeadRecommendationRequest(BaseModel):
    """Candidate leads to rank for one order."""
    leads: List[LeadPayload] = Field(default_factory=list)
    limit: Optional[int] = Field(None, description="Maximum results (clamped to 1..25)")


class LeadRecommendationItem(BaseModel):
    """Single ranked lead."""
    submission_id: str
    lead_id: Optional[str] = None
    state: str
    case_type: str
    score: float
    reasons: List[str]


class LeadRecommendationResponse(BaseModel):
    """Ranked leads for an order; empty when the order is no longer open."""
    order_id: str
    recommendations: List[LeadRecommendationItem]
    error: Optional[ErrorDetail] = None


# ============================================================================
# Assignment Models
# ============================================================================

class AssignmentRequest(BaseModel):
    """Request to assign a lead to an order."""
    order_id: str = Field(..., min_length=1)
    submission_id: str = Field(..., min_length=1)
    agent_id: str = Field(..., min_length=1, description="Agent triggering the assignment")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "order_id": "4b0c2a7e-9d55-4b71-9a39-0f6f1f6f2b11",
                "submission_id": "SUB-1042",
                "agent_id": "agent-17"
            }
        }
    )


class AssignmentResponse(BaseModel):
    """Successful assignment."""
    order_id: str
    lead_id: str
    attorney_id: str
    attorney_label: str
    assignment_id: str
    assigned_at: datetime
    quota_filled: int
    quota_total: int
    status: str


# ============================================================================
# Order Models
# ============================================================================

class OrderResponse(BaseModel):
    """Order with its effective status."""
    order_id: str
    attorney_id: str
    attorney_label: str
    target_states: List[str]
    case_type: str
    case_subtype: Optional[str] = None
    quota_total: int
    quota_filled: int
    remaining: int
    fill_percent: float
    status: str
    effective_status: str
    expires_at: datetime
    created_at: datetime


class OrderListResponse(BaseModel):
    items: List[OrderResponse]
    total_count: int


class ExpirySweepResponse(BaseModel):
    expired_count: int
    swept_at: datetime
