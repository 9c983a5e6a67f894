"""API routes."""

from incentive_engine.api.routes.commission_rates import router as commission_rates_router
from incentive_engine.api.routes.health import router as health_router
from incentive_engine.api.routes.incentive_config import router as incentive_config_router
from incentive_engine.api.routes.incentives import router as incentives_router
from incentive_engine.api.routes.penalties import router as penalties_router
from incentive_engine.api.routes.targets import router as targets_router
from incentive_engine.api.routes.team_pool import router as team_pool_router

__all__ = [
    "commission_rates_router",
    "health_router",
    "incentive_config_router",
    "incentives_router",
    "penalties_router",
    "targets_router",
    "team_pool_router",
]
