"""Organization, user and per-organization incentive settings models."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from incentive_engine.models.base import Base, TimestampMixin, UpdatedAtMixin

SALES_ROLES = ("sales_rep", "staff")
MANAGER_ROLES = ("manager", "owner", "admin")
USER_ROLES = (*SALES_ROLES, "support_staff", *MANAGER_ROLES)


class Organization(Base, TimestampMixin):
    """Tenant organization (a retail business)."""

    __tablename__ = "organization"

    organization_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)

    users: Mapped[list[User]] = relationship(back_populates="organization")


class User(Base, TimestampMixin):
    """Staff member; supplied by the surrounding CRM."""

    __tablename__ = "app_user"

    user_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[str] = mapped_column(String, nullable=False, default="sales_rep")
    monthly_salary: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "role IN ('sales_rep', 'staff', 'support_staff', 'manager', 'owner', 'admin')",
            name="app_user_role_check",
        ),
    )

    organization: Mapped[Organization] = relationship(back_populates="users")

    @property
    def is_sales(self) -> bool:
        return self.role in SALES_ROLES

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES


class IncentiveSettings(Base, TimestampMixin, UpdatedAtMixin):
    """Stored incentive configuration for one organization.

    Mirrors ``OrganizationConfig`` column for column; the dataclass is the
    validated, immutable snapshot handed to calculations.
    """

    __tablename__ = "incentive_settings"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        primary_key=True,
    )

    streak_bonus_7_days: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    streak_bonus_14_days: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    streak_bonus_30_days: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    review_bonus_per_review: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    penalty_late_arrival: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    penalty_unauthorized_absence: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    penalty_back_to_back_offs: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    penalty_low_compliance: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    penalty_high_error_rate: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    penalty_non_escalated_lost_lead: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    penalty_missing_documentation: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    penalty_low_team_eval: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    penalty_client_disrespect: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    penalty_ceiling_percentage: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)

    compliance_threshold: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    error_rate_threshold: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    team_eval_threshold: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)

    team_pool_top_performer: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    team_pool_second_performer: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    team_pool_third_performer: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    team_pool_manager: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    team_pool_support_staff: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    team_pool_others: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)

    default_monthly_target: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    salary_cap_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    require_review_for_commission: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
