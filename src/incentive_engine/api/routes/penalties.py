"""Penalty and dispute endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from incentive_engine.api.dependencies import CurrentActor, Penalties
from incentive_engine.api.schemas import (
    DisputeRequest,
    ErrorResponse,
    PenaltyCreate,
    PenaltyResponse,
    ResolutionResponse,
    ResolveRequest,
)

router = APIRouter(prefix="/penalties", tags=["penalties"])


@router.get("", response_model=list[PenaltyResponse])
async def list_penalties(
    penalties: Penalties,
    actor: CurrentActor,
    month: Annotated[str | None, Query()] = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    user_id: UUID | None = None,
) -> list[PenaltyResponse]:
    """List penalties; sales users only see their own."""
    if not actor.is_manager:
        user_id = actor.user_id
    records = await penalties.list_penalties(
        actor.organization_id, month=month, user_id=user_id, status=status_filter
    )
    return [PenaltyResponse.model_validate(r) for r in records]


@router.post(
    "",
    response_model=PenaltyResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def create_penalty(
    penalties: Penalties,
    actor: CurrentActor,
    payload: PenaltyCreate,
) -> PenaltyResponse:
    """Record a penalty; its percentage is fixed at creation."""
    record = await penalties.create_penalty(
        actor.organization_id,
        payload.user_id,
        payload.penalty_type,
        actor,
        severity=payload.severity_value,
        description=payload.description,
        incident_date=payload.incident_date,
    )
    return PenaltyResponse.model_validate(record)


@router.post(
    "/{penalty_id}/dispute",
    response_model=PenaltyResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def dispute_penalty(
    penalties: Penalties,
    actor: CurrentActor,
    penalty_id: Annotated[UUID, Path()],
    payload: DisputeRequest,
) -> PenaltyResponse:
    """Contest an active penalty (the penalized user only)."""
    record = await penalties.dispute_penalty(penalty_id, payload.reason, actor)
    return PenaltyResponse.model_validate(record)


@router.post(
    "/{penalty_id}/resolve",
    response_model=ResolutionResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def resolve_penalty(
    penalties: Penalties,
    actor: CurrentActor,
    penalty_id: Annotated[UUID, Path()],
    payload: ResolveRequest,
) -> ResolutionResponse:
    """Waive or uphold a disputed penalty.

    ``recalculation_required`` is set when the month's incentive was
    already finalized; reopen it to apply the change.
    """
    result = await penalties.resolve_penalty(
        penalty_id, payload.resolution, actor, notes=payload.notes
    )
    return ResolutionResponse(
        penalty=PenaltyResponse.model_validate(result.penalty),
        incentive_status=result.incentive_status,
        recalculated=result.recalculated,
        recalculation_required=result.recalculation_required,
    )
