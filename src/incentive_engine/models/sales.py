"""Externally supplied sales, activity and target models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from incentive_engine.models.base import Base, UpdatedAtMixin, utcnow

REVIEW_STATUSES = ("pending", "reviewed", "not_reviewed")


class Sale(Base):
    """A closed ("win") lead. Immutable apart from its review status."""

    __tablename__ = "sale"

    sale_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sale_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    category_name: Mapped[str | None] = mapped_column(String, nullable=True)
    review_status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    invoice_no: Mapped[str | None] = mapped_column(String, nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("sale_price >= 0", name="sale_price_non_negative"),
        CheckConstraint(
            "review_status IN ('pending', 'reviewed', 'not_reviewed')",
            name="sale_review_status_check",
        ),
    )

    @property
    def review_qualified(self) -> bool | None:
        """Tri-state review outcome: None while still pending."""
        if self.review_status == "pending":
            return None
        return self.review_status == "reviewed"


class DailyActivity(Base):
    """One row per user per day with at least one qualifying action."""

    __tablename__ = "daily_activity"

    daily_activity_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    activity_date: Mapped[date] = mapped_column(Date, nullable=False)
    action_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("user_id", "activity_date", name="daily_activity_user_date_unique"),
    )


class MonthlyTarget(Base, UpdatedAtMixin):
    """Sales target for a user and month, with the rolled-up achievement."""

    __tablename__ = "monthly_target"

    monthly_target_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    target_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    achieved_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("user_id", "month", name="monthly_target_user_month_unique"),
        CheckConstraint("target_amount >= 0", name="monthly_target_amount_check"),
    )

    @property
    def target_met(self) -> bool:
        return self.achieved_amount >= self.target_amount
