"""Organization incentive configuration.

Explicit, immutable configuration snapshot handed to every calculation.

Rules:
    1. No globals. Each calculation receives its own config.
    2. Validated on construction, so an invalid config never reaches the
       database or a calculation.
    3. Immutable after creation (frozen dataclass).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from incentive_engine.errors import ConfigurationError, ValidationError

HUNDRED = Decimal("100")
POOL_SUM_TOLERANCE = Decimal("0.01")


class PenaltyType(str, Enum):
    """Penalty types a manager can record."""

    LATE_ARRIVAL = "late_arrival"
    UNAUTHORIZED_ABSENCE = "unauthorized_absence"
    BACK_TO_BACK_OFFS = "back_to_back_offs"
    LOW_COMPLIANCE = "low_compliance"
    HIGH_ERROR_RATE = "high_error_rate"
    NON_ESCALATED_LOST_LEAD = "non_escalated_lost_lead"
    MISSING_DOCUMENTATION = "missing_documentation"
    LOW_TEAM_EVAL = "low_team_eval"
    CLIENT_DISRESPECT = "client_disrespect"


# Percentage scales with how far the supplied value is past its threshold
SEVERITY_PENALTY_TYPES = frozenset(
    {
        PenaltyType.LOW_COMPLIANCE,
        PenaltyType.HIGH_ERROR_RATE,
        PenaltyType.LOW_TEAM_EVAL,
    }
)

# Full forfeiture; overrides additive stacking
NUCLEAR_PENALTY_TYPES = frozenset({PenaltyType.CLIENT_DISRESPECT})


def parse_penalty_type(value: str) -> PenaltyType:
    try:
        return PenaltyType(value)
    except ValueError:
        valid = ", ".join(t.value for t in PenaltyType)
        raise ValidationError(f"Invalid penalty type '{value}'. Expected one of: {valid}")


@dataclass(frozen=True)
class OrganizationConfig:
    """
    Per-organization incentive tunables.

    Attributes:
        streak_bonus_*: Bonus paid for the highest streak tier reached.
        review_bonus_per_review: Bonus per sale with a submitted review.
        penalty_*: Fixed percentage (or per-point base for severity types).
        penalty_ceiling_percentage: Cap on the additive (non-nuclear) group.
        *_threshold: Where severity penalties start to apply.
        team_pool_*: Bucket percentages; must total exactly 100.
        default_monthly_target: Target used when a user has none set.
            Zero disables the target gate.
        salary_cap_enabled: Cap payouts at the user's monthly salary.
        require_review_for_commission: Only reviewed sales earn commission.
    """

    streak_bonus_7_days: Decimal = Decimal("300")
    streak_bonus_14_days: Decimal = Decimal("700")
    streak_bonus_30_days: Decimal = Decimal("1500")
    review_bonus_per_review: Decimal = Decimal("10")

    penalty_late_arrival: Decimal = Decimal("2")
    penalty_unauthorized_absence: Decimal = Decimal("5")
    penalty_back_to_back_offs: Decimal = Decimal("5")
    penalty_low_compliance: Decimal = Decimal("1")
    penalty_high_error_rate: Decimal = Decimal("5")
    penalty_non_escalated_lost_lead: Decimal = Decimal("5")
    penalty_missing_documentation: Decimal = Decimal("2")
    penalty_low_team_eval: Decimal = Decimal("5")
    penalty_client_disrespect: Decimal = Decimal("100")
    penalty_ceiling_percentage: Decimal = Decimal("50")

    compliance_threshold: Decimal = Decimal("96")
    error_rate_threshold: Decimal = Decimal("1")
    team_eval_threshold: Decimal = Decimal("4.0")

    team_pool_top_performer: Decimal = Decimal("20")
    team_pool_second_performer: Decimal = Decimal("12")
    team_pool_third_performer: Decimal = Decimal("8")
    team_pool_manager: Decimal = Decimal("20")
    team_pool_support_staff: Decimal = Decimal("20")
    team_pool_others: Decimal = Decimal("20")

    default_monthly_target: Decimal = Decimal("0")
    salary_cap_enabled: bool = True
    require_review_for_commission: bool = False

    def __post_init__(self) -> None:
        """Normalize numbers to Decimal and validate."""
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool):
                continue
            if not isinstance(value, Decimal):
                try:
                    object.__setattr__(self, f.name, Decimal(str(value)))
                except InvalidOperation:
                    raise ValidationError(f"{f.name} must be numeric, got {value!r}")

        for name in self._percentage_fields():
            value = getattr(self, name)
            if value < 0 or value > HUNDRED:
                raise ValidationError(f"{name} must be between 0 and 100, got {value}")

        for name in (
            "streak_bonus_7_days",
            "streak_bonus_14_days",
            "streak_bonus_30_days",
            "review_bonus_per_review",
            "default_monthly_target",
            "error_rate_threshold",
            "team_eval_threshold",
        ):
            if getattr(self, name) < 0:
                raise ValidationError(f"{name} cannot be negative")

        pool_total = sum(self.team_pool_shares(), Decimal("0"))
        if abs(pool_total - HUNDRED) > POOL_SUM_TOLERANCE:
            raise ConfigurationError(
                f"Team pool must total 100%. Currently: {pool_total}%",
                pool_total=str(pool_total),
            )

    @staticmethod
    def _percentage_fields() -> list[str]:
        names = [f.name for f in fields(OrganizationConfig)]
        return [
            n
            for n in names
            if n.startswith("penalty_") or n.startswith("team_pool_") or n == "compliance_threshold"
        ]

    def team_pool_shares(self) -> tuple[Decimal, ...]:
        """Bucket percentages in order: top, second, third, manager, support, others."""
        return (
            self.team_pool_top_performer,
            self.team_pool_second_performer,
            self.team_pool_third_performer,
            self.team_pool_manager,
            self.team_pool_support_staff,
            self.team_pool_others,
        )

    def base_penalty_percentage(self, penalty_type: PenaltyType) -> Decimal:
        return getattr(self, f"penalty_{penalty_type.value}")

    def streak_tier_bonus(self, tier: int) -> Decimal:
        return {
            7: self.streak_bonus_7_days,
            14: self.streak_bonus_14_days,
            30: self.streak_bonus_30_days,
        }.get(tier, Decimal("0"))

    def to_dict(self) -> dict[str, Any]:
        return {
            k: (v if isinstance(v, bool) else str(v)) for k, v in asdict(self).items()
        }

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> OrganizationConfig:
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known and v is not None})

    def with_updates(self, updates: dict[str, Any]) -> OrganizationConfig:
        """Return a new validated config with ``updates`` applied."""
        merged = {f.name: getattr(self, f.name) for f in fields(self)}
        merged.update({k: v for k, v in updates.items() if v is not None})
        return OrganizationConfig.from_mapping(merged)


DEFAULT_CONFIG = OrganizationConfig()
