"""Team bonus pool endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from incentive_engine.api.dependencies import CurrentActor, TeamPools
from incentive_engine.api.schemas import ErrorResponse, TeamPoolCalculate, TeamPoolResponse

router = APIRouter(prefix="/team-pool", tags=["team-pool"])


@router.get(
    "",
    response_model=TeamPoolResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_team_pool(
    pools: TeamPools,
    actor: CurrentActor,
    month: Annotated[str, Query()],
) -> TeamPoolResponse:
    record = await pools.get_team_pool(actor.organization_id, month)
    return TeamPoolResponse.model_validate(record)


@router.post(
    "/calculate",
    response_model=TeamPoolResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def calculate_team_pool(
    pools: TeamPools,
    actor: CurrentActor,
    payload: TeamPoolCalculate,
) -> TeamPoolResponse:
    """Rank the month's performers and allocate the pool.

    A distributed pool is returned unchanged.
    """
    record = await pools.calculate_team_pool(
        actor.organization_id, payload.month, payload.total_amount, actor
    )
    return TeamPoolResponse.model_validate(record)


@router.post(
    "/{distribution_id}/approve",
    response_model=TeamPoolResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def approve_team_pool(
    pools: TeamPools,
    actor: CurrentActor,
    distribution_id: Annotated[UUID, Path()],
) -> TeamPoolResponse:
    record = await pools.approve_team_pool(distribution_id, actor)
    return TeamPoolResponse.model_validate(record)


@router.post(
    "/{distribution_id}/distribute",
    response_model=TeamPoolResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def distribute_team_pool(
    pools: TeamPools,
    actor: CurrentActor,
    distribution_id: Annotated[UUID, Path()],
) -> TeamPoolResponse:
    record = await pools.distribute_team_pool(distribution_id, actor)
    return TeamPoolResponse.model_validate(record)
