"""Monthly sales target endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from incentive_engine.api.dependencies import CurrentActor, Targets
from incentive_engine.api.schemas import (
    ErrorResponse,
    TargetProgressResponse,
    TargetResponse,
    TargetSet,
)

router = APIRouter(prefix="/targets", tags=["targets"])


@router.get("", response_model=list[TargetResponse])
async def list_targets(
    targets: Targets,
    actor: CurrentActor,
    month: Annotated[str, Query()],
) -> list[TargetResponse]:
    records = await targets.list_targets(actor.organization_id, month)
    return [TargetResponse.model_validate(r) for r in records]


@router.put(
    "",
    response_model=TargetResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def set_target(
    targets: Targets,
    actor: CurrentActor,
    payload: TargetSet,
) -> TargetResponse:
    """Create or replace a user's target for the month."""
    record = await targets.set_target(
        payload.user_id, payload.month, payload.target_amount, actor
    )
    return TargetResponse.model_validate(record)


@router.get(
    "/{user_id}/progress",
    response_model=TargetProgressResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_target_progress(
    targets: Targets,
    actor: CurrentActor,
    user_id: Annotated[UUID, Path()],
    month: Annotated[str | None, Query()] = None,
) -> TargetProgressResponse:
    """Achievement, remaining amount and the daily pace still needed."""
    progress = await targets.get_progress(user_id, actor, month=month)
    return TargetProgressResponse.model_validate(progress)
