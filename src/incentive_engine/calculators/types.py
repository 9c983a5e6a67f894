"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Any, Protocol
from uuid import UUID

ZERO = Decimal("0")
WHOLE_UNIT = Decimal("1")


def round_currency(amount: Decimal) -> Decimal:
    """Round to whole currency units (persistence and display only)."""
    return amount.quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


def floor_currency(amount: Decimal) -> Decimal:
    """Round down to whole currency units; never over-allocates."""
    return amount.quantize(WHOLE_UNIT, rounding=ROUND_DOWN)


def _pct(value: Decimal) -> str:
    return format(value.normalize(), "f")


class CommissionRateLike(Protocol):
    """Anything shaped like a commission rate row."""

    category_name: str
    commission_percentage: Decimal
    multiplier: Decimal
    min_sale_price: Decimal
    premium_threshold: Decimal
    is_active: bool


@dataclass(frozen=True)
class CommissionRateSpec:
    """In-memory commission rate, used where no ORM row exists."""

    category_name: str
    commission_percentage: Decimal
    multiplier: Decimal = Decimal("1")
    min_sale_price: Decimal = ZERO
    premium_threshold: Decimal = Decimal("50000")
    is_active: bool = True


@dataclass(frozen=True)
class SaleInput:
    """A win sale as seen by the calculators."""

    sale_id: UUID
    sale_price: Decimal
    category_name: str | None
    created_at: datetime
    review_qualified: bool | None = None  # None = review still pending
    invoice_no: str | None = None


@dataclass(frozen=True)
class CommissionResult:
    """Commission resolved for one sale."""

    amount: Decimal
    rate: Decimal | None  # commission_percentage of the matched rate
    multiplier_applied: Decimal
    matched_category: str | None
    reason: str  # matched, default_fallback, below_minimum, no_rate

    @property
    def effective_percentage(self) -> Decimal:
        if self.rate is None:
            return ZERO
        return self.rate * self.multiplier_applied

    @property
    def premium(self) -> bool:
        return self.multiplier_applied > 1


@dataclass(frozen=True)
class SaleCommissionLine:
    """Per-sale commission line in a breakdown."""

    sale: SaleInput
    commission: CommissionResult
    counted: bool  # False when review gating excluded the sale

    def to_dict(self) -> dict[str, Any]:
        return {
            "sale_id": str(self.sale.sale_id),
            "invoice_no": self.sale.invoice_no,
            "sale_price": str(round_currency(self.sale.sale_price)),
            "category_name": self.sale.category_name,
            "created_at": self.sale.created_at.isoformat(),
            "review_qualified": self.sale.review_qualified,
            "commission_rate": _pct(self.commission.rate) if self.commission.rate is not None else None,
            "multiplier_applied": _pct(self.commission.multiplier_applied),
            "commission_amount": str(round_currency(self.commission.amount)),
            "reason": self.commission.reason,
            "counted": self.counted,
        }


@dataclass(frozen=True)
class StreakResult:
    """Streak state and the bonus tier reached."""

    current_streak: int
    longest_streak: int
    peak_streak: int  # highest streak reached inside the evaluated period
    tier: int  # 0, 7, 14 or 30
    bonus_amount: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "peak_streak": self.peak_streak,
            "tier": self.tier,
            "bonus_amount": str(round_currency(self.bonus_amount)),
        }


@dataclass(frozen=True)
class ReviewBonusResult:
    """Review bonus for a period."""

    reviewed_count: int
    pending_count: int
    bonus_per_review: Decimal
    total_bonus: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "reviewed_count": self.reviewed_count,
            "pending_count": self.pending_count,
            "bonus_per_review": str(self.bonus_per_review),
            "total_bonus": str(round_currency(self.total_bonus)),
        }


@dataclass(frozen=True)
class PenaltyInput:
    """A penalty record as seen by the penalty engine."""

    penalty_id: UUID
    penalty_type: str
    penalty_percentage: Decimal
    status: str
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "penalty_id": str(self.penalty_id),
            "penalty_type": self.penalty_type,
            "penalty_percentage": _pct(self.penalty_percentage),
            "status": self.status,
            "description": self.description,
        }


@dataclass(frozen=True)
class PenaltyComputation:
    """Total deduction percentage and how it was reached."""

    percentage: Decimal
    additive_total: Decimal
    counted: list[PenaltyInput] = field(default_factory=list)
    excluded: list[PenaltyInput] = field(default_factory=list)
    nuclear: bool = False
    ceiling_applied: bool = False

    @property
    def count(self) -> int:
        return len(self.counted)

    def to_dict(self) -> dict[str, Any]:
        return {
            "percentage": _pct(self.percentage),
            "additive_total": _pct(self.additive_total),
            "nuclear": self.nuclear,
            "ceiling_applied": self.ceiling_applied,
            "counted": [p.to_dict() for p in self.counted],
            "excluded": [p.to_dict() for p in self.excluded],
        }


@dataclass(frozen=True)
class IncentiveSummary:
    """Top-line figures of a monthly incentive (unrounded)."""

    gross_commission: Decimal
    streak_bonus: Decimal
    review_bonus: Decimal
    total_bonuses: Decimal
    penalty_percentage: Decimal
    penalty_amount: Decimal
    net_before_target_gate: Decimal
    target_amount: Decimal
    achieved_amount: Decimal
    target_met: bool
    net_incentive: Decimal
    monthly_salary: Decimal | None
    salary_cap_applied: bool
    capped_amount: Decimal | None
    cap_excess_amount: Decimal | None

    @property
    def gross_total(self) -> Decimal:
        return self.gross_commission + self.total_bonuses

    @property
    def final_amount(self) -> Decimal:
        """Computed payout before any manager adjustment."""
        if self.salary_cap_applied and self.capped_amount is not None:
            return self.capped_amount
        return self.net_incentive

    def to_dict(self) -> dict[str, Any]:
        def money(v: Decimal | None) -> str | None:
            return None if v is None else str(round_currency(v))

        return {
            "gross_commission": money(self.gross_commission),
            "streak_bonus": money(self.streak_bonus),
            "review_bonus": money(self.review_bonus),
            "total_bonuses": money(self.total_bonuses),
            "gross_total": money(self.gross_total),
            "penalty_percentage": _pct(self.penalty_percentage),
            "penalty_amount": money(self.penalty_amount),
            "net_before_target_gate": money(self.net_before_target_gate),
            "target_amount": money(self.target_amount),
            "achieved_amount": money(self.achieved_amount),
            "target_met": self.target_met,
            "net_incentive": money(self.net_incentive),
            "monthly_salary": money(self.monthly_salary),
            "salary_cap_applied": self.salary_cap_applied,
            "capped_amount": money(self.capped_amount),
            "cap_excess_amount": money(self.cap_excess_amount),
            "final_amount": money(self.final_amount),
        }


@dataclass(frozen=True)
class IncentiveBreakdown:
    """Full breakdown of one user's incentive for one month."""

    user_id: UUID
    month: str
    sales: list[SaleCommissionLine]
    streak: StreakResult
    reviews: ReviewBonusResult
    penalties: PenaltyComputation
    summary: IncentiveSummary
    warnings: list[str]
    inputs_fingerprint: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": str(self.user_id),
            "month": self.month,
            "sales": [line.to_dict() for line in self.sales],
            "streak": self.streak.to_dict(),
            "reviews": self.reviews.to_dict(),
            "penalties": self.penalties.to_dict(),
            "summary": self.summary.to_dict(),
            "warnings": list(self.warnings),
            "inputs_fingerprint": self.inputs_fingerprint,
        }


@dataclass(frozen=True)
class IncentiveInputs:
    """Everything the aggregator needs, already loaded."""

    user_id: UUID
    month: str
    sales: list[SaleInput]
    rates: list[CommissionRateLike]
    activity_dates: list[date]
    penalties: list[PenaltyInput]
    target_amount: Decimal | None
    monthly_salary: Decimal | None
    as_of: date | None = None  # defaults to the last day of the month


# ===== Team pool =====


@dataclass(frozen=True)
class PerformerStanding:
    """A sales user's revenue for the month, used for ranking."""

    user_id: UUID
    name: str
    revenue: Decimal
    first_sale_at: datetime | None = None


@dataclass(frozen=True)
class PoolMember:
    """A non-ranked pool participant (manager or support staff)."""

    user_id: UUID
    name: str


@dataclass(frozen=True)
class PoolAllocation:
    """Money allocated to one user from the team pool."""

    user_id: UUID
    name: str
    bucket: str  # top_performer, second_performer, third_performer, manager, support_staff, others
    percentage: Decimal  # share of the pool for the bucket this allocation came from
    amount: Decimal
    rank: int | None = None
    total_sales: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": str(self.user_id),
            "name": self.name,
            "bucket": self.bucket,
            "percentage": _pct(self.percentage),
            "amount": str(self.amount),
            "rank": self.rank,
            "total_sales": None if self.total_sales is None else str(round_currency(self.total_sales)),
        }


@dataclass(frozen=True)
class TeamPoolBreakdown:
    """Full allocation of a team pool."""

    total_pool: Decimal
    allocations: list[PoolAllocation]
    unallocated_amount: Decimal

    def bucket_total(self, bucket: str) -> Decimal:
        return sum((a.amount for a in self.allocations if a.bucket == bucket), ZERO)

    def ranked(self) -> list[PoolAllocation]:
        return sorted(
            (a for a in self.allocations if a.rank is not None and a.rank <= 3),
            key=lambda a: a.rank or 0,
        )

    @property
    def total_allocated(self) -> Decimal:
        return sum((a.amount for a in self.allocations), ZERO)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_pool": str(self.total_pool),
            "allocations": [a.to_dict() for a in self.allocations],
            "unallocated_amount": str(self.unallocated_amount),
        }
