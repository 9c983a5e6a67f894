"""Incentive engine services."""

from incentive_engine.services.config_service import ConfigService
from incentive_engine.services.incentive_service import (
    BatchResult,
    FinalizeResult,
    IncentiveService,
    ItemResult,
)
from incentive_engine.services.locking_service import KeyedLock, LockingService
from incentive_engine.services.penalty_service import PenaltyService, ResolutionResult
from incentive_engine.services.state_machine import (
    Actor,
    IncentiveStateMachine,
    IncentiveStatus,
    PenaltyStateMachine,
    PenaltyStatus,
    TeamPoolStateMachine,
    TeamPoolStatus,
)
from incentive_engine.services.target_service import TargetService
from incentive_engine.services.team_pool_service import TeamPoolService

__all__ = [
    "Actor",
    "BatchResult",
    "ConfigService",
    "FinalizeResult",
    "IncentiveService",
    "IncentiveStateMachine",
    "IncentiveStatus",
    "ItemResult",
    "KeyedLock",
    "LockingService",
    "PenaltyService",
    "PenaltyStateMachine",
    "PenaltyStatus",
    "ResolutionResult",
    "TargetService",
    "TeamPoolService",
    "TeamPoolStateMachine",
    "TeamPoolStatus",
]
