"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Common schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None


class ItemResultSchema(BaseModel):
    """Outcome of one item in a batch operation."""

    model_config = ConfigDict(from_attributes=True)

    item_id: UUID
    status: str
    incentive_id: UUID | None = None
    message: str | None = None
    error_code: str | None = None


class BatchResponse(BaseModel):
    """Per-item results of a batch operation."""

    results: list[ItemResultSchema]
    success_count: int
    error_count: int
    skipped_count: int


# ============================================================================
# Configuration schemas
# ============================================================================


class IncentiveConfigResponse(BaseModel):
    """Effective incentive settings for an organization."""

    streak_bonus_7_days: Decimal
    streak_bonus_14_days: Decimal
    streak_bonus_30_days: Decimal
    review_bonus_per_review: Decimal

    penalty_late_arrival: Decimal
    penalty_unauthorized_absence: Decimal
    penalty_back_to_back_offs: Decimal
    penalty_low_compliance: Decimal
    penalty_high_error_rate: Decimal
    penalty_non_escalated_lost_lead: Decimal
    penalty_missing_documentation: Decimal
    penalty_low_team_eval: Decimal
    penalty_client_disrespect: Decimal
    penalty_ceiling_percentage: Decimal

    compliance_threshold: Decimal
    error_rate_threshold: Decimal
    team_eval_threshold: Decimal

    team_pool_top_performer: Decimal
    team_pool_second_performer: Decimal
    team_pool_third_performer: Decimal
    team_pool_manager: Decimal
    team_pool_support_staff: Decimal
    team_pool_others: Decimal

    default_monthly_target: Decimal
    salary_cap_enabled: bool
    require_review_for_commission: bool


class IncentiveConfigUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""

    streak_bonus_7_days: Decimal | None = None
    streak_bonus_14_days: Decimal | None = None
    streak_bonus_30_days: Decimal | None = None
    review_bonus_per_review: Decimal | None = None

    penalty_late_arrival: Decimal | None = None
    penalty_unauthorized_absence: Decimal | None = None
    penalty_back_to_back_offs: Decimal | None = None
    penalty_low_compliance: Decimal | None = None
    penalty_high_error_rate: Decimal | None = None
    penalty_non_escalated_lost_lead: Decimal | None = None
    penalty_missing_documentation: Decimal | None = None
    penalty_low_team_eval: Decimal | None = None
    penalty_client_disrespect: Decimal | None = None
    penalty_ceiling_percentage: Decimal | None = None

    compliance_threshold: Decimal | None = None
    error_rate_threshold: Decimal | None = None
    team_eval_threshold: Decimal | None = None

    team_pool_top_performer: Decimal | None = None
    team_pool_second_performer: Decimal | None = None
    team_pool_third_performer: Decimal | None = None
    team_pool_manager: Decimal | None = None
    team_pool_support_staff: Decimal | None = None
    team_pool_others: Decimal | None = None

    default_monthly_target: Decimal | None = None
    salary_cap_enabled: bool | None = None
    require_review_for_commission: bool | None = None


class CommissionRateUpsert(BaseModel):
    """Create or replace the rate for a category."""

    category_name: str = Field(min_length=1)
    commission_percentage: Decimal
    multiplier: Decimal = Decimal("1")
    min_sale_price: Decimal = Decimal("0")
    premium_threshold: Decimal = Decimal("50000")


class CommissionRateResponse(BaseModel):
    """Schema for commission rate response."""

    model_config = ConfigDict(from_attributes=True)

    commission_rate_id: UUID
    organization_id: UUID
    category_name: str
    commission_percentage: Decimal
    multiplier: Decimal
    min_sale_price: Decimal
    premium_threshold: Decimal
    is_active: bool


# ============================================================================
# Monthly incentive schemas
# ============================================================================


class IncentiveResponse(BaseModel):
    """Schema for a persisted monthly incentive."""

    model_config = ConfigDict(from_attributes=True)

    incentive_id: UUID
    organization_id: UUID
    user_id: UUID
    month: str
    status: str

    gross_commission: Decimal
    streak_bonus: Decimal
    review_bonus: Decimal
    total_bonuses: Decimal
    penalty_count: int
    penalty_percentage: Decimal
    penalty_amount: Decimal
    net_incentive: Decimal
    target_met: bool
    user_monthly_salary: Decimal | None = None
    salary_cap_applied: bool
    capped_amount: Decimal | None = None
    cap_excess_amount: Decimal | None = None
    final_approved_amount: Decimal | None = None
    amount_adjusted: bool

    breakdown_json: dict[str, Any]
    inputs_fingerprint: str

    submitted_at: datetime | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    paid_at: datetime | None = None
    payment_reference: str | None = None
    reopen_count: int
    created_at: datetime
    updated_at: datetime


class PreviewResponse(BaseModel):
    """Unsaved calculation result; amounts are rounded strings."""

    user_id: UUID
    month: str
    sales: list[dict[str, Any]]
    streak: dict[str, Any]
    reviews: dict[str, Any]
    penalties: dict[str, Any]
    summary: dict[str, Any]
    warnings: list[str]
    inputs_fingerprint: str


class RecalculateRequest(BaseModel):
    """Recompute one user's month while it is still calculating."""

    user_id: UUID
    month: str


class FinalizeRequest(BaseModel):
    """Finalize every active sales user of the organization."""

    month: str


class FinalizeResponse(BatchResponse):
    """Per-user finalization results."""

    organization_id: UUID
    month: str


class ApproveRequest(BaseModel):
    """Approve or reject a pending incentive."""

    approved: bool
    final_amount: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None


class BulkApproveRequest(BaseModel):
    """Approve many incentives at their computed amounts."""

    incentive_ids: list[UUID] = Field(min_length=1)
    notes: str | None = None


class MarkPaidRequest(BaseModel):
    """Mark approved incentives as paid."""

    incentive_ids: list[UUID] = Field(min_length=1)
    payment_reference: str | None = None


class ReopenRequest(BaseModel):
    """Send a finalized incentive back to calculating."""

    notes: str | None = None


# ============================================================================
# Penalty schemas
# ============================================================================


class PenaltyCreate(BaseModel):
    """Record a penalty against a user."""

    user_id: UUID
    penalty_type: str
    severity_value: Decimal | None = None
    description: str | None = None
    incident_date: date | None = None


class PenaltyResponse(BaseModel):
    """Schema for penalty record response."""

    model_config = ConfigDict(from_attributes=True)

    penalty_id: UUID
    organization_id: UUID
    user_id: UUID
    month: str
    penalty_type: str
    severity_value: Decimal | None = None
    penalty_percentage: Decimal
    status: str
    description: str | None = None
    incident_date: date | None = None
    created_by: UUID | None = None
    dispute_reason: str | None = None
    disputed_at: datetime | None = None
    resolution_notes: str | None = None
    resolved_by: UUID | None = None
    resolved_at: datetime | None = None
    created_at: datetime


class DisputeRequest(BaseModel):
    """Contest an active penalty."""

    reason: str = Field(min_length=1)


class ResolveRequest(BaseModel):
    """Decide a disputed penalty."""

    resolution: Literal["waived", "upheld"]
    notes: str | None = None


class ResolutionResponse(BaseModel):
    """Resolved penalty and its effect on the month's incentive."""

    penalty: PenaltyResponse
    incentive_status: str | None = None
    recalculated: bool
    recalculation_required: bool


# ============================================================================
# Target schemas
# ============================================================================


class TargetSet(BaseModel):
    """Set a user's sales target for a month."""

    user_id: UUID
    month: str
    target_amount: Decimal = Field(ge=0)


class TargetResponse(BaseModel):
    """Schema for monthly target response."""

    model_config = ConfigDict(from_attributes=True)

    monthly_target_id: UUID
    organization_id: UUID
    user_id: UUID
    month: str
    target_amount: Decimal
    achieved_amount: Decimal


class RecentSaleSchema(BaseModel):
    """A sale listed in a progress report."""

    model_config = ConfigDict(from_attributes=True)

    sale_id: UUID
    amount: Decimal
    created_at: datetime
    invoice_no: str | None
    customer_name: str | None


class TargetProgressResponse(BaseModel):
    """A user's standing against the month's target."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    month: str
    target_amount: Decimal
    achieved_amount: Decimal
    achievement_percentage: Decimal
    target_met: bool
    remaining_amount: Decimal
    sales_count: int
    days_remaining: int
    daily_rate_needed: Decimal
    recent_sales: list[RecentSaleSchema]


# ============================================================================
# Team pool schemas
# ============================================================================


class TeamPoolCalculate(BaseModel):
    """Rank the month's performers and allocate a pool."""

    month: str
    total_amount: Decimal = Field(ge=0)


class TeamPoolResponse(BaseModel):
    """Schema for team pool distribution response."""

    model_config = ConfigDict(from_attributes=True)

    distribution_id: UUID
    organization_id: UUID
    month: str
    status: str
    total_pool_amount: Decimal
    top_performer_user_id: UUID | None = None
    top_performer_amount: Decimal
    second_performer_user_id: UUID | None = None
    second_performer_amount: Decimal
    third_performer_user_id: UUID | None = None
    third_performer_amount: Decimal
    manager_amount: Decimal
    support_staff_amount: Decimal
    others_amount: Decimal
    unallocated_amount: Decimal
    allocations_json: list[dict[str, Any]]
    created_by: UUID | None = None
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    distributed_at: datetime | None = None
