"""Organization incentive settings endpoints."""

from dataclasses import asdict

from fastapi import APIRouter

from incentive_engine.api.dependencies import Configs, CurrentActor
from incentive_engine.api.schemas import (
    ErrorResponse,
    IncentiveConfigResponse,
    IncentiveConfigUpdate,
)

router = APIRouter(prefix="/incentive-config", tags=["configuration"])


@router.get("", response_model=IncentiveConfigResponse)
async def get_incentive_config(
    configs: Configs,
    actor: CurrentActor,
) -> IncentiveConfigResponse:
    """Effective settings (stored values or the defaults)."""
    config = await configs.get_config(actor.organization_id)
    return IncentiveConfigResponse(**asdict(config))


@router.put(
    "",
    response_model=IncentiveConfigResponse,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_incentive_config(
    configs: Configs,
    actor: CurrentActor,
    payload: IncentiveConfigUpdate,
) -> IncentiveConfigResponse:
    """Apply a partial update; the merged result is validated as a whole."""
    config = await configs.update_config(
        actor.organization_id, payload.model_dump(exclude_none=True), actor
    )
    return IncentiveConfigResponse(**asdict(config))
