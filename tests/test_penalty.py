"""Tests for penalty percentage resolution and stacking."""

from decimal import Decimal
from uuid import uuid4

import pytest

from incentive_engine.calculators.penalty import (
    compute_penalty_percentage,
    penalty_percentage_for,
)
from incentive_engine.calculators.rules import DEFAULT_CONFIG, OrganizationConfig, PenaltyType
from incentive_engine.calculators.types import PenaltyInput
from incentive_engine.errors import ValidationError


def penalty(pct: str, penalty_type: str = "late_arrival", status: str = "active") -> PenaltyInput:
    return PenaltyInput(
        penalty_id=uuid4(),
        penalty_type=penalty_type,
        penalty_percentage=Decimal(pct),
        status=status,
    )


class TestPenaltyPercentageFor:
    """Test the percentage frozen onto a new penalty record."""

    def test_fixed_types_use_configured_percentage(self):
        assert penalty_percentage_for(PenaltyType.LATE_ARRIVAL, None, DEFAULT_CONFIG) == Decimal("2")
        assert penalty_percentage_for(
            PenaltyType.UNAUTHORIZED_ABSENCE, None, DEFAULT_CONFIG
        ) == Decimal("5")
        assert penalty_percentage_for(
            PenaltyType.CLIENT_DISRESPECT, None, DEFAULT_CONFIG
        ) == Decimal("100")

    def test_low_compliance_scales_with_points_below_threshold(self):
        # threshold 96, base 1% per point
        pct = penalty_percentage_for(PenaltyType.LOW_COMPLIANCE, Decimal("93"), DEFAULT_CONFIG)

        assert pct == Decimal("3")

    def test_severity_is_floored_at_base(self):
        # error rate 1.5 vs threshold 1: factor 0.5 would give 2.5%, floored at 5%
        pct = penalty_percentage_for(PenaltyType.HIGH_ERROR_RATE, Decimal("1.5"), DEFAULT_CONFIG)

        assert pct == Decimal("5")

    def test_low_team_eval(self):
        pct = penalty_percentage_for(PenaltyType.LOW_TEAM_EVAL, Decimal("1.0"), DEFAULT_CONFIG)

        assert pct == Decimal("15")

    def test_severity_is_capped_at_100(self):
        config = OrganizationConfig(penalty_low_compliance=Decimal("5"))
        pct = penalty_percentage_for(PenaltyType.LOW_COMPLIANCE, Decimal("50"), config)

        assert pct == Decimal("100")

    def test_severity_type_requires_value(self):
        with pytest.raises(ValidationError, match="requires a severity value"):
            penalty_percentage_for(PenaltyType.LOW_COMPLIANCE, None, DEFAULT_CONFIG)

    def test_value_at_threshold_does_not_qualify(self):
        with pytest.raises(ValidationError, match="does not cross"):
            penalty_percentage_for(PenaltyType.LOW_COMPLIANCE, Decimal("96"), DEFAULT_CONFIG)

    def test_disabled_type_is_rejected(self):
        config = OrganizationConfig(penalty_late_arrival=Decimal("0"))

        with pytest.raises(ValidationError, match="disabled"):
            penalty_percentage_for(PenaltyType.LATE_ARRIVAL, None, config)


class TestComputePenaltyPercentage:
    """Test stacking, the ceiling and the nuclear override."""

    def test_additive_sum(self):
        result = compute_penalty_percentage([penalty("10"), penalty("15")], DEFAULT_CONFIG)

        assert result.percentage == Decimal("25")
        assert result.count == 2
        assert result.ceiling_applied is False
        assert result.nuclear is False

    def test_ceiling_clamps_additive_group(self):
        result = compute_penalty_percentage(
            [penalty("30"), penalty("25"), penalty("10")], DEFAULT_CONFIG
        )

        assert result.additive_total == Decimal("65")
        assert result.percentage == Decimal("50")
        assert result.ceiling_applied is True

    def test_nuclear_overrides_everything(self):
        result = compute_penalty_percentage(
            [penalty("10"), penalty("100", "client_disrespect")], DEFAULT_CONFIG
        )

        assert result.percentage == Decimal("100")
        assert result.nuclear is True
        assert result.ceiling_applied is False

    def test_nuclear_alone(self):
        result = compute_penalty_percentage(
            [penalty("100", "client_disrespect")], DEFAULT_CONFIG
        )

        assert result.percentage == Decimal("100")
        assert result.additive_total == Decimal("0")

    def test_disputed_and_waived_are_excluded(self):
        result = compute_penalty_percentage(
            [
                penalty("10"),
                penalty("15", status="disputed"),
                penalty("20", status="waived"),
                penalty("5", status="resolved"),
            ],
            DEFAULT_CONFIG,
        )

        assert result.percentage == Decimal("15")
        assert len(result.counted) == 2
        assert len(result.excluded) == 2

    def test_disputed_nuclear_does_not_apply(self):
        result = compute_penalty_percentage(
            [penalty("10"), penalty("100", "client_disrespect", status="disputed")],
            DEFAULT_CONFIG,
        )

        assert result.percentage == Decimal("10")
        assert result.nuclear is False

    def test_custom_ceiling(self):
        config = OrganizationConfig(penalty_ceiling_percentage=Decimal("20"))
        result = compute_penalty_percentage([penalty("15"), penalty("15")], config)

        assert result.percentage == Decimal("20")

    def test_no_penalties(self):
        result = compute_penalty_percentage([], DEFAULT_CONFIG)

        assert result.percentage == Decimal("0")
