"""Progress toward a monthly sales target."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from incentive_engine.calculators.periods import MonthPeriod
from incentive_engine.calculators.types import ZERO, round_currency

HUNDRED = Decimal("100")
MAX_ACHIEVEMENT_PERCENTAGE = Decimal("200")
ONE_PLACE = Decimal("0.1")
RECENT_SALES_LIMIT = 5


@dataclass(frozen=True)
class RecentSale:
    """A win sale as listed in a progress report."""

    sale_id: UUID
    amount: Decimal
    created_at: datetime
    invoice_no: str | None = None
    customer_name: str | None = None


@dataclass(frozen=True)
class TargetProgress:
    """Where a user stands against the month's target."""

    user_id: UUID
    month: str
    target_amount: Decimal
    achieved_amount: Decimal
    achievement_percentage: Decimal  # one decimal place, capped at 200
    target_met: bool
    remaining_amount: Decimal
    sales_count: int
    days_remaining: int
    daily_rate_needed: Decimal
    recent_sales: list[RecentSale] = field(default_factory=list)


def days_remaining(period: MonthPeriod, today: date) -> int:
    """Whole days of the month left after ``today``.

    The full month while it has not started, zero once it is over.
    """
    if today < period.start:
        return (period.next_start - period.start).days
    if today > period.end:
        return 0
    return (period.end - today).days


def build_target_progress(
    user_id: UUID,
    period: MonthPeriod,
    target_amount: Decimal,
    sales: Sequence[RecentSale],
    today: date,
) -> TargetProgress:
    """Summarize achievement, the shortfall and the pace needed to close it.

    A zero target counts as met and reports 0% achievement. The daily
    rate is zero when nothing remains or no days are left.
    """
    achieved = sum((s.amount for s in sales), ZERO)
    if target_amount > 0:
        percentage = min(achieved / target_amount * HUNDRED, MAX_ACHIEVEMENT_PERCENTAGE)
    else:
        percentage = ZERO
    remaining = max(ZERO, target_amount - achieved)
    left = days_remaining(period, today)
    daily_rate = round_currency(remaining / left) if left > 0 and remaining > 0 else ZERO

    newest_first = sorted(sales, key=lambda s: (s.created_at, s.sale_id), reverse=True)
    return TargetProgress(
        user_id=user_id,
        month=period.month,
        target_amount=target_amount,
        achieved_amount=achieved,
        achievement_percentage=percentage.quantize(ONE_PLACE, rounding=ROUND_HALF_UP),
        target_met=target_amount <= 0 or achieved >= target_amount,
        remaining_amount=remaining,
        sales_count=len(sales),
        days_remaining=left,
        daily_rate_needed=daily_rate,
        recent_sales=newest_first[:RECENT_SALES_LIMIT],
    )
