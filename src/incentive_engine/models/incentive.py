"""Commission rate, penalty, monthly incentive and team pool models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from incentive_engine.models.base import Base, JSONType, TimestampMixin, UpdatedAtMixin


class CommissionRate(Base, TimestampMixin, UpdatedAtMixin):
    """Commission rate for one product category of an organization."""

    __tablename__ = "commission_rate"

    commission_rate_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    category_name: Mapped[str] = mapped_column(String, nullable=False)
    commission_percentage: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    multiplier: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False, default=1)
    min_sale_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    premium_threshold: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=50000
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "category_name", name="commission_rate_org_category_unique"
        ),
        CheckConstraint(
            "commission_percentage >= 0 AND commission_percentage <= 100",
            name="commission_rate_percentage_check",
        ),
        CheckConstraint(
            "multiplier >= 1 AND multiplier <= 10", name="commission_rate_multiplier_check"
        ),
    )


class PenaltyRecord(Base, TimestampMixin, UpdatedAtMixin):
    """A penalty against a user for a month.

    ``penalty_percentage`` is resolved from config when the record is
    created and never recomputed afterwards.
    """

    __tablename__ = "penalty_record"

    penalty_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    penalty_type: Mapped[str] = mapped_column(String, nullable=False)
    severity_value: Mapped[Decimal | None] = mapped_column(Numeric(9, 3), nullable=True)
    penalty_percentage: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    incident_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(nullable=True)

    dispute_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    disputed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_by: Mapped[UUID | None] = mapped_column(nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'disputed', 'waived', 'resolved')",
            name="penalty_record_status_check",
        ),
        CheckConstraint(
            "penalty_percentage > 0 AND penalty_percentage <= 100",
            name="penalty_record_percentage_check",
        ),
    )


class MonthlyIncentive(Base, TimestampMixin, UpdatedAtMixin):
    """Persisted incentive breakdown for one user and month."""

    __tablename__ = "monthly_incentive"

    incentive_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False)

    gross_commission: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    streak_bonus: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    review_bonus: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    total_bonuses: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    penalty_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    penalty_percentage: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False, default=0)
    penalty_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    net_incentive: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    target_met: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    user_monthly_salary: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    salary_cap_applied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    capped_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    cap_excess_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    final_approved_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    status: Mapped[str] = mapped_column(String, nullable=False, default="calculating")
    breakdown_json: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    inputs_fingerprint: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reviewed_by: Mapped[UUID | None] = mapped_column(nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount_adjusted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String, nullable=True)
    reopen_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("user_id", "month", name="monthly_incentive_user_month_unique"),
        CheckConstraint(
            "status IN ('calculating', 'pending_review', 'approved', 'rejected', 'paid')",
            name="monthly_incentive_status_check",
        ),
        CheckConstraint("net_incentive >= 0", name="monthly_incentive_net_non_negative"),
        CheckConstraint(
            "final_approved_amount IS NULL OR status IN ('approved', 'paid')",
            name="monthly_incentive_final_amount_check",
        ),
    )

    @property
    def computed_payout(self) -> Decimal:
        """Amount a manager approves when not adjusting it."""
        if self.salary_cap_applied and self.capped_amount is not None:
            return self.capped_amount
        return self.net_incentive


class TeamPoolDistribution(Base, TimestampMixin, UpdatedAtMixin):
    """Team bonus pool allocation for an organization and month."""

    __tablename__ = "team_pool_distribution"

    distribution_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    total_pool_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    top_performer_user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    top_performer_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    second_performer_user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    second_performer_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=0
    )
    third_performer_user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    third_performer_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=0
    )
    manager_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    support_staff_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    others_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    unallocated_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    allocations_json: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )

    status: Mapped[str] = mapped_column(String, nullable=False, default="pending_approval")
    created_by: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_by: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    distributed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "month", name="team_pool_org_month_unique"),
        CheckConstraint(
            "status IN ('pending_approval', 'approved', 'distributed')",
            name="team_pool_status_check",
        ),
        CheckConstraint("total_pool_amount >= 0", name="team_pool_total_non_negative"),
    )
