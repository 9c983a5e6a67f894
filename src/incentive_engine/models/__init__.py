"""ORM models."""

from incentive_engine.models.audit import AuditEvent
from incentive_engine.models.base import Base
from incentive_engine.models.incentive import (
    CommissionRate,
    MonthlyIncentive,
    PenaltyRecord,
    TeamPoolDistribution,
)
from incentive_engine.models.organization import (
    MANAGER_ROLES,
    SALES_ROLES,
    IncentiveSettings,
    Organization,
    User,
)
from incentive_engine.models.sales import DailyActivity, MonthlyTarget, Sale

__all__ = [
    "AuditEvent",
    "Base",
    "CommissionRate",
    "DailyActivity",
    "IncentiveSettings",
    "MANAGER_ROLES",
    "MonthlyIncentive",
    "MonthlyTarget",
    "Organization",
    "PenaltyRecord",
    "SALES_ROLES",
    "Sale",
    "TeamPoolDistribution",
    "User",
]
