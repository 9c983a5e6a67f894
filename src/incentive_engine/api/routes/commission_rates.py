"""Commission rate endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from incentive_engine.api.dependencies import Configs, CurrentActor
from incentive_engine.api.schemas import (
    CommissionRateResponse,
    CommissionRateUpsert,
    ErrorResponse,
)

router = APIRouter(prefix="/commission-rates", tags=["configuration"])


@router.get("", response_model=list[CommissionRateResponse])
async def list_commission_rates(
    configs: Configs,
    actor: CurrentActor,
    include_inactive: Annotated[bool, Query()] = False,
) -> list[CommissionRateResponse]:
    """List the organization's rates, active only by default."""
    rates = await configs.list_commission_rates(actor.organization_id, include_inactive)
    return [CommissionRateResponse.model_validate(r) for r in rates]


@router.put(
    "",
    response_model=CommissionRateResponse,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def upsert_commission_rate(
    configs: Configs,
    actor: CurrentActor,
    payload: CommissionRateUpsert,
) -> CommissionRateResponse:
    """Create or replace the rate for a category."""
    rate = await configs.upsert_commission_rate(
        actor.organization_id,
        payload.category_name,
        payload.commission_percentage,
        actor,
        multiplier=payload.multiplier,
        min_sale_price=payload.min_sale_price,
        premium_threshold=payload.premium_threshold,
    )
    return CommissionRateResponse.model_validate(rate)


@router.post(
    "/seed",
    response_model=list[CommissionRateResponse],
    responses={403: {"model": ErrorResponse}},
)
async def seed_default_rates(
    configs: Configs,
    actor: CurrentActor,
) -> list[CommissionRateResponse]:
    """Add the standard category rates; existing categories are kept as they are."""
    rates = await configs.seed_default_rates(actor.organization_id, actor)
    return [CommissionRateResponse.model_validate(r) for r in rates]


@router.delete(
    "/{commission_rate_id}",
    response_model=CommissionRateResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def deactivate_commission_rate(
    configs: Configs,
    actor: CurrentActor,
    commission_rate_id: Annotated[UUID, Path()],
) -> CommissionRateResponse:
    """Deactivate a rate unless that would leave sales without coverage."""
    rate = await configs.deactivate_commission_rate(commission_rate_id, actor)
    return CommissionRateResponse.model_validate(rate)
