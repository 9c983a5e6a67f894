"""Monthly incentive calculation - main orchestrator."""

from __future__ import annotations

import hashlib
import json
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from incentive_engine.calculators.commission import resolve_commission
from incentive_engine.calculators.penalty import compute_penalty_percentage
from incentive_engine.calculators.periods import MonthPeriod, parse_month
from incentive_engine.calculators.review_bonus import compute_review_bonus
from incentive_engine.calculators.rules import DEFAULT_CONFIG, OrganizationConfig
from incentive_engine.calculators.streak import compute_streak
from incentive_engine.calculators.types import (
    ZERO,
    IncentiveBreakdown,
    IncentiveInputs,
    IncentiveSummary,
    PenaltyInput,
    SaleCommissionLine,
    SaleInput,
    round_currency,
)
from incentive_engine.config import get_settings
from incentive_engine.errors import NotFoundError
from incentive_engine.models import (
    CommissionRate,
    DailyActivity,
    IncentiveSettings,
    MonthlyTarget,
    PenaltyRecord,
    Sale,
    User,
)


def build_incentive_breakdown(
    inputs: IncentiveInputs,
    config: OrganizationConfig,
    engine_version: str = "",
) -> IncentiveBreakdown:
    """Combine commission, bonuses and penalties into a breakdown.

    Pipeline (stable order):
    1) Resolve commission per sale and sum to gross commission
    2) Streak bonus and review bonus
    3) Penalty percentage and penalty amount on (gross + bonuses)
    4) Net = gross + bonuses - penalty, floored at zero
    5) Target gate: net forced to zero when achieved < target
    6) Salary cap: payout limited to the monthly salary, excess recorded

    Pure: no I/O, no clock. Identical inputs give an identical breakdown.
    """
    period = parse_month(inputs.month)
    as_of = inputs.as_of or period.end
    warnings: list[str] = []

    # 1) Commission
    sales = sorted(inputs.sales, key=lambda s: (_naive(s.created_at), str(s.sale_id)))
    lines: list[SaleCommissionLine] = []
    for sale in sales:
        commission = resolve_commission(sale, inputs.rates)
        counted = not config.require_review_for_commission or sale.review_qualified is True
        lines.append(SaleCommissionLine(sale=sale, commission=commission, counted=counted))
        if commission.reason == "no_rate":
            warnings.append(
                f"no_commission_rate: sale {sale.invoice_no or sale.sale_id} "
                f"(category {sale.category_name!r}) has no rate and no Default rate"
            )

    gross_commission = sum((l.commission.amount for l in lines if l.counted), ZERO)

    # 2) Bonuses
    streak = compute_streak(inputs.activity_dates, as_of, period.start, config)
    reviews = compute_review_bonus(sales, config.review_bonus_per_review)
    if reviews.pending_count:
        warnings.append(
            f"pending_reviews: {reviews.pending_count} review(s) not yet triaged; "
            "review bonus is not final"
        )
    total_bonuses = streak.bonus_amount + reviews.total_bonus

    # 3) Penalties
    penalties = compute_penalty_percentage(
        sorted(inputs.penalties, key=lambda p: str(p.penalty_id)), config
    )
    gross_total = gross_commission + total_bonuses
    penalty_amount = gross_total * penalties.percentage / 100

    # 4) Net, never negative
    net_before_gate = max(ZERO, gross_total - penalty_amount)

    # 5) Target gate
    if inputs.target_amount is not None and inputs.target_amount > 0:
        target_amount = inputs.target_amount
    else:
        target_amount = config.default_monthly_target
    achieved_amount = sum((s.sale_price for s in sales), ZERO)
    target_met = target_amount <= 0 or achieved_amount >= target_amount
    net_incentive = net_before_gate if target_met else ZERO
    if not target_met:
        warnings.append(
            f"target_not_met: achieved {round_currency(achieved_amount)} "
            f"of target {round_currency(target_amount)}; payout is zero"
        )

    # 6) Salary cap
    salary = inputs.monthly_salary
    salary_cap_applied = False
    capped_amount: Decimal | None = None
    cap_excess_amount: Decimal | None = None
    if config.salary_cap_enabled and salary is not None and salary > 0 and net_incentive > salary:
        salary_cap_applied = True
        capped_amount = salary
        cap_excess_amount = net_incentive - salary
        warnings.append(
            f"salary_cap_review: net {round_currency(net_incentive)} exceeds monthly "
            f"salary {round_currency(salary)} by {round_currency(cap_excess_amount)}"
        )

    summary = IncentiveSummary(
        gross_commission=gross_commission,
        streak_bonus=streak.bonus_amount,
        review_bonus=reviews.total_bonus,
        total_bonuses=total_bonuses,
        penalty_percentage=penalties.percentage,
        penalty_amount=penalty_amount,
        net_before_target_gate=net_before_gate,
        target_amount=target_amount,
        achieved_amount=achieved_amount,
        target_met=target_met,
        net_incentive=net_incentive,
        monthly_salary=salary,
        salary_cap_applied=salary_cap_applied,
        capped_amount=capped_amount,
        cap_excess_amount=cap_excess_amount,
    )

    return IncentiveBreakdown(
        user_id=inputs.user_id,
        month=inputs.month,
        sales=lines,
        streak=streak,
        reviews=reviews,
        penalties=penalties,
        summary=summary,
        warnings=warnings,
        inputs_fingerprint=compute_inputs_fingerprint(inputs, config, as_of, engine_version),
    )


def compute_inputs_fingerprint(
    inputs: IncentiveInputs,
    config: OrganizationConfig,
    as_of: date,
    engine_version: str = "",
) -> str:
    """SHA-256 over a canonical JSON rendering of every calculation input."""
    data: dict[str, Any] = {
        "engine_version": engine_version,
        "user_id": str(inputs.user_id),
        "month": inputs.month,
        "as_of": as_of.isoformat(),
        "sales": sorted(
            (
                {
                    "id": str(s.sale_id),
                    "price": str(s.sale_price),
                    "category": s.category_name,
                    "created_at": _naive(s.created_at).isoformat(),
                    "review_qualified": s.review_qualified,
                }
                for s in inputs.sales
            ),
            key=lambda d: d["id"],
        ),
        "rates": sorted(
            (
                {
                    "category": r.category_name,
                    "pct": str(r.commission_percentage),
                    "multiplier": str(r.multiplier),
                    "min": str(r.min_sale_price),
                    "threshold": str(r.premium_threshold),
                    "active": bool(r.is_active),
                }
                for r in inputs.rates
            ),
            key=lambda d: d["category"],
        ),
        "activity": sorted(d.isoformat() for d in inputs.activity_dates),
        "penalties": sorted(
            (
                {
                    "id": str(p.penalty_id),
                    "type": p.penalty_type,
                    "pct": str(p.penalty_percentage),
                    "status": p.status,
                }
                for p in inputs.penalties
            ),
            key=lambda d: d["id"],
        ),
        "target": None if inputs.target_amount is None else str(inputs.target_amount),
        "salary": None if inputs.monthly_salary is None else str(inputs.monthly_salary),
        "config": config.to_dict(),
    }
    json_str = json.dumps(data, sort_keys=True)
    return hashlib.sha256(json_str.encode()).hexdigest()


def _naive(value: datetime) -> datetime:
    """Drop tzinfo after normalizing to UTC (SQLite hands back naive values)."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


async def load_organization_config(
    session: AsyncSession, organization_id: UUID
) -> OrganizationConfig:
    """Immutable config snapshot for an organization (defaults when unset)."""
    row = await session.get(IncentiveSettings, organization_id)
    if row is None:
        return DEFAULT_CONFIG
    return OrganizationConfig.from_mapping(row.to_dict())


class IncentiveCalculator:
    """Loads a user's month from the database and runs the pure pipeline."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings = get_settings()

    async def calculate_monthly_incentive(
        self,
        user_id: UUID,
        month: str,
        as_of: date | None = None,
    ) -> IncentiveBreakdown:
        """Calculate the incentive breakdown for one user and month.

        ``as_of`` defaults to the end of the month, or today while the
        month is still running.
        """
        period = parse_month(month)
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        config = await load_organization_config(self.session, user.organization_id)
        inputs = await self.load_inputs(user, period, as_of)
        return build_incentive_breakdown(inputs, config, self.settings.engine_version)

    async def load_inputs(
        self, user: User, period: MonthPeriod, as_of: date | None = None
    ) -> IncentiveInputs:
        if as_of is None:
            as_of = min(period.end, datetime.now(timezone.utc).date())

        sales = await self._get_sales(user.user_id, period)
        rates = await self._get_rates(user.organization_id)
        activity = await self._get_activity_dates(user.user_id, as_of)
        penalties = await self._get_penalties(user.user_id, period.month)
        target = await self._get_target(user.user_id, period.month)

        return IncentiveInputs(
            user_id=user.user_id,
            month=period.month,
            sales=[
                SaleInput(
                    sale_id=s.sale_id,
                    sale_price=s.sale_price,
                    category_name=s.category_name,
                    created_at=s.created_at,
                    review_qualified=s.review_qualified,
                    invoice_no=s.invoice_no,
                )
                for s in sales
            ],
            rates=list(rates),
            activity_dates=activity,
            penalties=[
                PenaltyInput(
                    penalty_id=p.penalty_id,
                    penalty_type=p.penalty_type,
                    penalty_percentage=p.penalty_percentage,
                    status=p.status,
                    description=p.description,
                )
                for p in penalties
            ],
            target_amount=target.target_amount if target is not None else None,
            monthly_salary=user.monthly_salary,
            as_of=as_of,
        )

    async def _get_sales(self, user_id: UUID, period: MonthPeriod) -> list[Sale]:
        result = await self.session.execute(
            select(Sale)
            .where(
                Sale.user_id == user_id,
                Sale.created_at >= period.start_at,
                Sale.created_at < period.next_start_at,
            )
            .order_by(Sale.created_at, Sale.sale_id)
        )
        return list(result.scalars().all())

    async def _get_rates(self, organization_id: UUID) -> list[CommissionRate]:
        result = await self.session.execute(
            select(CommissionRate)
            .where(
                CommissionRate.organization_id == organization_id,
                CommissionRate.is_active.is_(True),
            )
            .order_by(CommissionRate.category_name)
        )
        return list(result.scalars().all())

    async def _get_activity_dates(self, user_id: UUID, as_of: date) -> list[date]:
        result = await self.session.execute(
            select(DailyActivity.activity_date)
            .where(
                DailyActivity.user_id == user_id,
                DailyActivity.activity_date <= as_of,
                DailyActivity.action_count > 0,
            )
            .order_by(DailyActivity.activity_date)
        )
        return list(result.scalars().all())

    async def _get_penalties(self, user_id: UUID, month: str) -> list[PenaltyRecord]:
        result = await self.session.execute(
            select(PenaltyRecord)
            .where(PenaltyRecord.user_id == user_id, PenaltyRecord.month == month)
            .order_by(PenaltyRecord.penalty_id)
        )
        return list(result.scalars().all())

    async def _get_target(self, user_id: UUID, month: str) -> MonthlyTarget | None:
        result = await self.session.execute(
            select(MonthlyTarget).where(
                MonthlyTarget.user_id == user_id, MonthlyTarget.month == month
            )
        )
        return result.scalar_one_or_none()
