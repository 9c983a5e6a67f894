"""Incentive calculation pipeline."""

from incentive_engine.calculators.commission import resolve_commission
from incentive_engine.calculators.engine import IncentiveCalculator, build_incentive_breakdown
from incentive_engine.calculators.penalty import compute_penalty_percentage, penalty_percentage_for
from incentive_engine.calculators.review_bonus import compute_review_bonus
from incentive_engine.calculators.rules import DEFAULT_CONFIG, OrganizationConfig, PenaltyType
from incentive_engine.calculators.streak import compute_streak
from incentive_engine.calculators.team_pool import distribute_team_pool
from incentive_engine.calculators.types import IncentiveBreakdown, TeamPoolBreakdown

__all__ = [
    "DEFAULT_CONFIG",
    "IncentiveBreakdown",
    "IncentiveCalculator",
    "OrganizationConfig",
    "PenaltyType",
    "TeamPoolBreakdown",
    "build_incentive_breakdown",
    "compute_penalty_percentage",
    "compute_review_bonus",
    "compute_streak",
    "distribute_team_pool",
    "penalty_percentage_for",
    "resolve_commission",
]
