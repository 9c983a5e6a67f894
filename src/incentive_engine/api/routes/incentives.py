"""Monthly incentive API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from incentive_engine.api.dependencies import CurrentActor, Incentives
from incentive_engine.api.schemas import (
    ApproveRequest,
    BatchResponse,
    BulkApproveRequest,
    ErrorResponse,
    FinalizeRequest,
    FinalizeResponse,
    IncentiveResponse,
    ItemResultSchema,
    MarkPaidRequest,
    PreviewResponse,
    RecalculateRequest,
    ReopenRequest,
)
from incentive_engine.errors import NotFoundError
from incentive_engine.services import BatchResult
from incentive_engine.services.state_machine import ensure_same_organization

router = APIRouter(prefix="/incentives", tags=["incentives"])


def _batch_response(batch: BatchResult) -> BatchResponse:
    return BatchResponse(
        results=[ItemResultSchema.model_validate(r) for r in batch.results],
        success_count=batch.success_count,
        error_count=batch.error_count,
        skipped_count=batch.skipped_count,
    )


# ============================================================================
# Reads
# ============================================================================


@router.get("", response_model=list[IncentiveResponse])
async def list_incentives(
    incentives: Incentives,
    actor: CurrentActor,
    month: Annotated[str | None, Query()] = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    user_id: UUID | None = None,
) -> list[IncentiveResponse]:
    """List incentives; sales users only see their own."""
    if not actor.is_manager:
        user_id = actor.user_id
    records = await incentives.list_incentives(
        actor.organization_id, month=month, status=status_filter, user_id=user_id
    )
    return [IncentiveResponse.model_validate(r) for r in records]


@router.get(
    "/preview",
    response_model=PreviewResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def preview_incentive(
    incentives: Incentives,
    actor: CurrentActor,
    user_id: Annotated[UUID, Query()],
    month: Annotated[str, Query()],
) -> PreviewResponse:
    """Calculate a user's month without saving it."""
    breakdown = await incentives.preview_incentive(user_id, month, actor)
    return PreviewResponse.model_validate(breakdown.to_dict())


@router.get(
    "/{incentive_id}",
    response_model=IncentiveResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_incentive(
    incentives: Incentives,
    actor: CurrentActor,
    incentive_id: Annotated[UUID, Path()],
) -> IncentiveResponse:
    """Get a specific incentive by ID."""
    record = await incentives.get_incentive(incentive_id)
    ensure_same_organization(actor, record.organization_id, "MonthlyIncentive", incentive_id)
    if not actor.is_manager and record.user_id != actor.user_id:
        raise NotFoundError("MonthlyIncentive", incentive_id)
    return IncentiveResponse.model_validate(record)


# ============================================================================
# Calculation
# ============================================================================


@router.post(
    "/recalculate",
    response_model=IncentiveResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def recalculate_incentive(
    incentives: Incentives,
    actor: CurrentActor,
    payload: RecalculateRequest,
) -> IncentiveResponse:
    """Recompute a user's month while it is still calculating."""
    record = await incentives.recalculate_incentive(payload.user_id, payload.month, actor)
    return IncentiveResponse.model_validate(record)


@router.post(
    "/finalize",
    response_model=FinalizeResponse,
    responses={403: {"model": ErrorResponse}},
)
async def finalize_month(
    incentives: Incentives,
    actor: CurrentActor,
    payload: FinalizeRequest,
) -> FinalizeResponse:
    """Calculate every sales user and submit the month for review.

    One user's failure never blocks the others; see the per-user results.
    """
    result = await incentives.finalize_organization_month(
        actor.organization_id, payload.month, actor
    )
    return FinalizeResponse(
        **_batch_response(result).model_dump(),
        organization_id=actor.organization_id,
        month=payload.month,
    )


# ============================================================================
# Approval workflow
# ============================================================================


@router.post(
    "/bulk-approve",
    response_model=BatchResponse,
    responses={403: {"model": ErrorResponse}},
)
async def bulk_approve(
    incentives: Incentives,
    actor: CurrentActor,
    payload: BulkApproveRequest,
) -> BatchResponse:
    """Approve several incentives at their computed amounts."""
    batch = await incentives.bulk_approve(payload.incentive_ids, actor, notes=payload.notes)
    return _batch_response(batch)


@router.post(
    "/mark-paid",
    response_model=BatchResponse,
    responses={403: {"model": ErrorResponse}},
)
async def mark_paid(
    incentives: Incentives,
    actor: CurrentActor,
    payload: MarkPaidRequest,
) -> BatchResponse:
    """Mark approved incentives as paid."""
    batch = await incentives.mark_paid(
        payload.incentive_ids, actor, payment_reference=payload.payment_reference
    )
    return _batch_response(batch)


@router.post(
    "/{incentive_id}/approve",
    response_model=IncentiveResponse,
    status_code=status.HTTP_200_OK,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def approve_incentive(
    incentives: Incentives,
    actor: CurrentActor,
    incentive_id: Annotated[UUID, Path()],
    payload: ApproveRequest,
) -> IncentiveResponse:
    """Approve (optionally at an adjusted amount) or reject an incentive."""
    record = await incentives.approve_incentive(
        incentive_id,
        payload.approved,
        actor,
        final_amount=payload.final_amount,
        notes=payload.notes,
    )
    return IncentiveResponse.model_validate(record)


@router.post(
    "/{incentive_id}/reopen",
    response_model=IncentiveResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def reopen_incentive(
    incentives: Incentives,
    actor: CurrentActor,
    incentive_id: Annotated[UUID, Path()],
    payload: ReopenRequest | None = None,
) -> IncentiveResponse:
    """Send an incentive back to calculating so it can be recomputed."""
    notes = payload.notes if payload else None
    record = await incentives.reopen_incentive(incentive_id, actor, notes=notes)
    return IncentiveResponse.model_validate(record)
