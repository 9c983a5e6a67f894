"""Team bonus pool service."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from incentive_engine.calculators.engine import load_organization_config
from incentive_engine.calculators.periods import MonthPeriod, parse_month
from incentive_engine.calculators.team_pool import distribute_team_pool as allocate_pool
from incentive_engine.calculators.types import (
    PerformerStanding,
    PoolMember,
    TeamPoolBreakdown,
)
from incentive_engine.errors import NotFoundError, PreconditionError, ValidationError
from incentive_engine.models import Sale, TeamPoolDistribution, User
from incentive_engine.models.organization import SALES_ROLES
from incentive_engine.services.audit import record_audit
from incentive_engine.services.locking_service import KeyedLock, LockingService, team_pool_key
from incentive_engine.services.state_machine import (
    Actor,
    TeamPoolStateMachine,
    TeamPoolStatus,
    ensure_same_organization,
    require_manager,
)

logger = logging.getLogger(__name__)

# Pool buckets go to these roles; owners and admins take no share
MANAGER_POOL_ROLE = "manager"
SUPPORT_ROLE = "support_staff"


def apply_pool_breakdown(record: TeamPoolDistribution, breakdown: TeamPoolBreakdown) -> None:
    ranked = breakdown.ranked()
    slots = [
        ("top_performer_user_id", "top_performer_amount"),
        ("second_performer_user_id", "second_performer_amount"),
        ("third_performer_user_id", "third_performer_amount"),
    ]
    for index, (id_attr, amount_attr) in enumerate(slots):
        allocation = ranked[index] if index < len(ranked) else None
        setattr(record, id_attr, allocation.user_id if allocation else None)
        setattr(record, amount_attr, allocation.amount if allocation else Decimal("0"))

    record.total_pool_amount = breakdown.total_pool
    record.manager_amount = breakdown.bucket_total("manager")
    record.support_staff_amount = breakdown.bucket_total("support_staff")
    record.others_amount = breakdown.bucket_total("others")
    record.unallocated_amount = breakdown.unallocated_amount
    record.allocations_json = [a.to_dict() for a in breakdown.allocations]


class TeamPoolService:
    """Service for team pool distributions.

    Lifecycle: pending_approval -> approved -> distributed, every step a
    manager action. Calculating again recomputes a pending record, returns
    a distributed record unchanged and refuses an approved one.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        locks: KeyedLock | None = None,
    ):
        self.session_factory = session_factory
        self.locking = LockingService(session_factory, locks)

    async def get_team_pool(self, organization_id: UUID, month: str) -> TeamPoolDistribution:
        parse_month(month)
        async with self.session_factory() as session:
            record = await self._find(session, organization_id, month)
            if record is None:
                raise NotFoundError("TeamPoolDistribution", f"{organization_id}/{month}")
            return record

    async def calculate_team_pool(
        self,
        organization_id: UUID,
        month: str,
        total_amount: Decimal,
        actor: Actor,
    ) -> TeamPoolDistribution:
        """Rank the month's performers and allocate ``total_amount``."""
        require_manager(actor, "calculate the team pool")
        period = parse_month(month)
        total_amount = Decimal(str(total_amount))
        if total_amount < 0:
            raise ValidationError("Team pool amount cannot be negative")

        async with self.locking.transaction(team_pool_key(organization_id, month)) as session:
            record = await self._find(session, organization_id, month)
            if record is not None:
                if record.status == TeamPoolStatus.DISTRIBUTED:
                    logger.info("Team pool %s already distributed; returning it", month)
                    return record
                if record.status == TeamPoolStatus.APPROVED:
                    raise PreconditionError(
                        "team pool must be pending approval to recalculate",
                        f"Team pool for {month} is already approved",
                    )

            config = await load_organization_config(session, organization_id)
            performers, managers, support = await self._load_members(
                session, organization_id, period
            )
            breakdown = allocate_pool(total_amount, performers, managers, support, config)

            if record is None:
                record = TeamPoolDistribution(
                    organization_id=organization_id,
                    month=month,
                    status=TeamPoolStatus.PENDING_APPROVAL.value,
                    created_by=actor.user_id,
                )
                session.add(record)
            apply_pool_breakdown(record, breakdown)
            await session.flush()

            record_audit(
                session,
                organization_id=organization_id,
                entity_type="team_pool_distribution",
                entity_id=record.distribution_id,
                action="calculated",
                actor=actor,
                details={
                    "total_pool_amount": str(total_amount),
                    "unallocated_amount": str(breakdown.unallocated_amount),
                },
            )

        logger.info(
            "Team pool %s for organization %s: %s allocated, %s unallocated",
            month,
            organization_id,
            breakdown.total_allocated,
            breakdown.unallocated_amount,
        )
        return record

    async def approve_team_pool(self, distribution_id: UUID, actor: Actor) -> TeamPoolDistribution:
        return await self._transition(distribution_id, TeamPoolStatus.APPROVED, actor)

    async def distribute_team_pool(
        self, distribution_id: UUID, actor: Actor
    ) -> TeamPoolDistribution:
        """Mark an approved pool distributed; repeating it is a no-op."""
        return await self._transition(distribution_id, TeamPoolStatus.DISTRIBUTED, actor)

    async def _transition(
        self, distribution_id: UUID, to_status: TeamPoolStatus, actor: Actor
    ) -> TeamPoolDistribution:
        require_manager(actor, f"move the team pool to {to_status.value}")
        async with self.session_factory() as session:
            current = await session.get(TeamPoolDistribution, distribution_id)
            if current is None:
                raise NotFoundError("TeamPoolDistribution", distribution_id)
            ensure_same_organization(
                actor, current.organization_id, "TeamPoolDistribution", distribution_id
            )
            key = team_pool_key(current.organization_id, current.month)

        async with self.locking.transaction(key) as session:
            record = await session.get(TeamPoolDistribution, distribution_id)
            if record is None:
                raise NotFoundError("TeamPoolDistribution", distribution_id)
            if to_status == TeamPoolStatus.DISTRIBUTED and record.status == to_status:
                return record

            from_status = record.status
            TeamPoolStateMachine.validate_transition(from_status, to_status, actor)
            record.status = to_status.value
            now = datetime.now(timezone.utc)
            if to_status == TeamPoolStatus.APPROVED:
                record.approved_by = actor.user_id
                record.approved_at = now
            else:
                record.distributed_at = now

            record_audit(
                session,
                organization_id=record.organization_id,
                entity_type="team_pool_distribution",
                entity_id=record.distribution_id,
                action=f"status_change:{from_status}:{to_status.value}",
                actor=actor,
            )

        logger.info("Team pool %s moved to %s", distribution_id, to_status.value)
        return record

    async def _find(
        self, session: AsyncSession, organization_id: UUID, month: str
    ) -> TeamPoolDistribution | None:
        result = await session.execute(
            select(TeamPoolDistribution).where(
                TeamPoolDistribution.organization_id == organization_id,
                TeamPoolDistribution.month == month,
            )
        )
        return result.scalar_one_or_none()

    async def _load_members(
        self, session: AsyncSession, organization_id: UUID, period: MonthPeriod
    ) -> tuple[list[PerformerStanding], list[PoolMember], list[PoolMember]]:
        """Revenue standings for sales users plus the role buckets."""
        users_result = await session.execute(
            select(User)
            .where(User.organization_id == organization_id, User.is_active.is_(True))
            .order_by(User.user_id)
        )
        users = list(users_result.scalars().all())

        revenue_result = await session.execute(
            select(
                Sale.user_id,
                func.sum(Sale.sale_price),
                func.min(Sale.created_at),
            )
            .where(
                Sale.organization_id == organization_id,
                Sale.created_at >= period.start_at,
                Sale.created_at < period.next_start_at,
            )
            .group_by(Sale.user_id)
        )
        revenue = {row[0]: (Decimal(str(row[1])), row[2]) for row in revenue_result.all()}

        performers: list[PerformerStanding] = []
        managers: list[PoolMember] = []
        support: list[PoolMember] = []
        for user in users:
            if user.role in SALES_ROLES:
                total, first_sale_at = revenue.get(user.user_id, (Decimal("0"), None))
                performers.append(
                    PerformerStanding(user.user_id, user.name, total, first_sale_at)
                )
            elif user.role == MANAGER_POOL_ROLE:
                managers.append(PoolMember(user.user_id, user.name))
            elif user.role == SUPPORT_ROLE:
                support.append(PoolMember(user.user_id, user.name))
        return performers, managers, support
