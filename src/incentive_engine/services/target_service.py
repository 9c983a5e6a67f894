"""Monthly sales targets and achievement rollup."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from incentive_engine.calculators.engine import load_organization_config
from incentive_engine.calculators.periods import current_month, parse_month
from incentive_engine.calculators.progress import RecentSale, TargetProgress, build_target_progress
from incentive_engine.errors import ActorNotAllowedError, NotFoundError, ValidationError
from incentive_engine.models import MonthlyTarget, Sale, User
from incentive_engine.services.audit import record_audit
from incentive_engine.services.state_machine import (
    Actor,
    ensure_same_organization,
    require_manager,
)

logger = logging.getLogger(__name__)


async def achieved_sales(session: AsyncSession, user_id: UUID, month: str) -> Decimal:
    """Sum of win sale prices for the user's calendar month."""
    period = parse_month(month)
    result = await session.execute(
        select(func.coalesce(func.sum(Sale.sale_price), 0)).where(
            Sale.user_id == user_id,
            Sale.created_at >= period.start_at,
            Sale.created_at < period.next_start_at,
        )
    )
    return Decimal(str(result.scalar_one()))


async def refresh_target_progress(
    session: AsyncSession, user_id: UUID, month: str
) -> MonthlyTarget | None:
    """Recompute ``achieved_amount`` for an existing target row."""
    result = await session.execute(
        select(MonthlyTarget).where(MonthlyTarget.user_id == user_id, MonthlyTarget.month == month)
    )
    target = result.scalar_one_or_none()
    if target is not None:
        target.achieved_amount = await achieved_sales(session, user_id, month)
    return target


class TargetService:
    """Manager-set sales targets per user and month."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def set_target(
        self, user_id: UUID, month: str, target_amount: Decimal, actor: Actor
    ) -> MonthlyTarget:
        """Create or replace a user's target and refresh its achievement."""
        require_manager(actor, "set sales targets")
        parse_month(month)
        target_amount = Decimal(str(target_amount))
        if target_amount < 0:
            raise ValidationError("target_amount cannot be negative")

        async with self.session_factory() as session:
            async with session.begin():
                user = await session.get(User, user_id)
                if user is None:
                    raise NotFoundError("User", user_id)
                ensure_same_organization(actor, user.organization_id, "User", user_id)

                target = await refresh_target_progress(session, user_id, month)
                if target is None:
                    target = MonthlyTarget(
                        organization_id=user.organization_id,
                        user_id=user_id,
                        month=month,
                        achieved_amount=await achieved_sales(session, user_id, month),
                    )
                    session.add(target)
                target.target_amount = target_amount
                await session.flush()

                record_audit(
                    session,
                    organization_id=user.organization_id,
                    entity_type="monthly_target",
                    entity_id=target.monthly_target_id,
                    action="target_set",
                    actor=actor,
                    details={"month": month, "target_amount": str(target_amount)},
                )

        logger.info("Target for user %s %s set to %s", user_id, month, target_amount)
        return target

    async def get_progress(
        self,
        user_id: UUID,
        actor: Actor,
        month: str | None = None,
        today: date | None = None,
    ) -> TargetProgress:
        """Report a user's progress toward the month's target.

        Refreshes the stored achievement first. Sales users may only see
        their own progress. ``month`` defaults to the current month.
        """
        month = month or current_month()
        period = parse_month(month)
        today = today or datetime.now(timezone.utc).date()

        async with self.session_factory() as session:
            async with session.begin():
                user = await session.get(User, user_id)
                if user is None:
                    raise NotFoundError("User", user_id)
                ensure_same_organization(actor, user.organization_id, "User", user_id)
                if not actor.is_manager and actor.user_id != user_id:
                    raise ActorNotAllowedError(
                        "actor must be a manager or the user",
                        "Only managers may view other users' targets",
                    )

                target = await refresh_target_progress(session, user_id, month)
                if target is not None and target.target_amount > 0:
                    target_amount = target.target_amount
                else:
                    config = await load_organization_config(session, user.organization_id)
                    target_amount = config.default_monthly_target

                result = await session.execute(
                    select(Sale)
                    .where(
                        Sale.user_id == user_id,
                        Sale.created_at >= period.start_at,
                        Sale.created_at < period.next_start_at,
                    )
                    .order_by(Sale.created_at, Sale.sale_id)
                )
                sales = [
                    RecentSale(
                        sale_id=s.sale_id,
                        amount=s.sale_price,
                        created_at=s.created_at,
                        invoice_no=s.invoice_no,
                        customer_name=s.customer_name,
                    )
                    for s in result.scalars().all()
                ]

        return build_target_progress(user_id, period, target_amount, sales, today)

    async def list_targets(self, organization_id: UUID, month: str) -> list[MonthlyTarget]:
        parse_month(month)
        async with self.session_factory() as session:
            result = await session.execute(
                select(MonthlyTarget)
                .where(
                    MonthlyTarget.organization_id == organization_id,
                    MonthlyTarget.month == month,
                )
                .order_by(MonthlyTarget.user_id)
            )
            return list(result.scalars().all())
