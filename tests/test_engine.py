"""Tests for the monthly incentive pipeline."""

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from incentive_engine.calculators.engine import build_incentive_breakdown
from incentive_engine.calculators.rules import DEFAULT_CONFIG, OrganizationConfig
from incentive_engine.calculators.types import (
    CommissionRateSpec,
    IncentiveInputs,
    PenaltyInput,
    SaleInput,
)

USER_ID = UUID("00000000-0000-0000-0000-000000000101")
MONTH = "2026-03"

# 1% on everything, premium threshold out of reach
FLAT_RATE = CommissionRateSpec(
    category_name="Default",
    commission_percentage=Decimal("1"),
    premium_threshold=Decimal("100000000"),
)

# 500 per review and nothing else, so a single reviewed sale adds 500
REVIEW_500 = OrganizationConfig(review_bonus_per_review=Decimal("500"))


def sale(price: str, review_qualified: bool | None = True, day: int = 5) -> SaleInput:
    return SaleInput(
        sale_id=uuid4(),
        sale_price=Decimal(price),
        category_name="Solar",
        created_at=datetime(2026, 3, day, 9, 0, tzinfo=timezone.utc),
        review_qualified=review_qualified,
    )


def penalty(pct: str, penalty_type: str = "late_arrival", status: str = "active") -> PenaltyInput:
    return PenaltyInput(
        penalty_id=uuid4(),
        penalty_type=penalty_type,
        penalty_percentage=Decimal(pct),
        status=status,
    )


@pytest.fixture
def base_inputs() -> IncentiveInputs:
    """Gross 10,000, bonuses 500, penalties 10% + 15%."""
    return IncentiveInputs(
        user_id=USER_ID,
        month=MONTH,
        sales=[sale("1000000")],
        rates=[FLAT_RATE],
        activity_dates=[],
        penalties=[penalty("10"), penalty("15", "missing_documentation")],
        target_amount=None,
        monthly_salary=None,
    )


class TestBuildIncentiveBreakdown:
    """Test the six-step aggregation."""

    def test_net_after_penalties(self, base_inputs):
        breakdown = build_incentive_breakdown(base_inputs, REVIEW_500)
        summary = breakdown.summary

        assert summary.gross_commission == Decimal("10000")
        assert summary.total_bonuses == Decimal("500")
        assert summary.penalty_percentage == Decimal("25")
        assert summary.penalty_amount == Decimal("2625")
        assert summary.net_incentive == Decimal("7875")
        assert summary.target_met is True
        assert summary.salary_cap_applied is False
        assert summary.final_amount == Decimal("7875")

    def test_target_not_met_zeroes_payout(self):
        inputs = IncentiveInputs(
            user_id=USER_ID,
            month=MONTH,
            sales=[sale("500000", day=3), sale("400000", day=10)],
            rates=[FLAT_RATE],
            activity_dates=[],
            penalties=[],
            target_amount=Decimal("1000000"),
            monthly_salary=None,
        )
        breakdown = build_incentive_breakdown(inputs, DEFAULT_CONFIG)
        summary = breakdown.summary

        assert summary.gross_commission == Decimal("9000")
        assert summary.achieved_amount == Decimal("900000")
        assert summary.target_met is False
        assert summary.net_before_target_gate > 0
        assert summary.net_incentive == Decimal("0")
        assert any(w.startswith("target_not_met:") for w in breakdown.warnings)

    def test_default_target_applies_when_user_has_none(self, base_inputs):
        config = OrganizationConfig(default_monthly_target=Decimal("2000000"))
        breakdown = build_incentive_breakdown(base_inputs, config)

        assert breakdown.summary.target_amount == Decimal("2000000")
        assert breakdown.summary.net_incentive == Decimal("0")

    def test_zero_target_disables_gate(self, base_inputs):
        inputs = replace(base_inputs, target_amount=Decimal("0"))
        breakdown = build_incentive_breakdown(inputs, REVIEW_500)

        assert breakdown.summary.target_met is True

    def test_nuclear_penalty_forfeits_everything(self, base_inputs):
        inputs = replace(
            base_inputs,
            penalties=[penalty("10"), penalty("100", "client_disrespect")],
        )
        breakdown = build_incentive_breakdown(inputs, REVIEW_500)

        assert breakdown.summary.penalty_percentage == Decimal("100")
        assert breakdown.summary.net_incentive == Decimal("0")
        assert breakdown.penalties.nuclear is True

    def test_salary_cap(self, base_inputs):
        inputs = replace(base_inputs, monthly_salary=Decimal("5000"))
        breakdown = build_incentive_breakdown(inputs, REVIEW_500)
        summary = breakdown.summary

        assert summary.net_incentive == Decimal("7875")
        assert summary.salary_cap_applied is True
        assert summary.capped_amount == Decimal("5000")
        assert summary.cap_excess_amount == Decimal("2875")
        assert summary.final_amount == Decimal("5000")
        assert any(w.startswith("salary_cap_review:") for w in breakdown.warnings)

    def test_salary_cap_can_be_disabled(self, base_inputs):
        config = replace(REVIEW_500, salary_cap_enabled=False)
        inputs = replace(base_inputs, monthly_salary=Decimal("5000"))
        breakdown = build_incentive_breakdown(inputs, config)

        assert breakdown.summary.salary_cap_applied is False
        assert breakdown.summary.capped_amount is None

    def test_no_salary_means_no_cap(self, base_inputs):
        breakdown = build_incentive_breakdown(base_inputs, REVIEW_500)

        assert breakdown.summary.monthly_salary is None
        assert breakdown.summary.capped_amount is None

    def test_review_gating_excludes_unreviewed_sales(self):
        config = OrganizationConfig(require_review_for_commission=True)
        inputs = IncentiveInputs(
            user_id=USER_ID,
            month=MONTH,
            sales=[sale("100000", True), sale("100000", None), sale("100000", False)],
            rates=[FLAT_RATE],
            activity_dates=[],
            penalties=[],
            target_amount=None,
            monthly_salary=None,
        )
        breakdown = build_incentive_breakdown(inputs, config)

        assert breakdown.summary.gross_commission == Decimal("1000")
        assert [line.counted for line in breakdown.sales].count(True) == 1
        assert any(w.startswith("pending_reviews:") for w in breakdown.warnings)

    def test_missing_rate_is_warned(self, base_inputs):
        inputs = replace(base_inputs, rates=[])
        breakdown = build_incentive_breakdown(inputs, REVIEW_500)

        assert breakdown.summary.gross_commission == Decimal("0")
        assert any(w.startswith("no_commission_rate:") for w in breakdown.warnings)

    def test_streak_bonus_is_included(self, base_inputs):
        activity = [date(2026, 3, 1) + timedelta(days=i) for i in range(7)]
        inputs = replace(base_inputs, activity_dates=activity, penalties=[])
        breakdown = build_incentive_breakdown(inputs, REVIEW_500)

        assert breakdown.streak.tier == 7
        assert breakdown.summary.streak_bonus == Decimal("300")
        assert breakdown.summary.net_incentive == Decimal("10800")


class TestFingerprint:
    """Test that the inputs fingerprint identifies the calculation."""

    def test_same_inputs_same_breakdown(self, base_inputs):
        first = build_incentive_breakdown(base_inputs, REVIEW_500, "1.0.0")
        second = build_incentive_breakdown(base_inputs, REVIEW_500, "1.0.0")

        assert first.inputs_fingerprint == second.inputs_fingerprint
        assert first.to_dict() == second.to_dict()

    def test_order_of_inputs_does_not_matter(self, base_inputs):
        shuffled = replace(base_inputs, penalties=list(reversed(base_inputs.penalties)))

        assert (
            build_incentive_breakdown(base_inputs, REVIEW_500).inputs_fingerprint
            == build_incentive_breakdown(shuffled, REVIEW_500).inputs_fingerprint
        )

    def test_penalty_status_changes_fingerprint(self, base_inputs):
        waived = replace(base_inputs.penalties[0], status="waived")
        changed = replace(base_inputs, penalties=[waived, base_inputs.penalties[1]])

        assert (
            build_incentive_breakdown(base_inputs, REVIEW_500).inputs_fingerprint
            != build_incentive_breakdown(changed, REVIEW_500).inputs_fingerprint
        )

    def test_config_and_version_change_fingerprint(self, base_inputs):
        base = build_incentive_breakdown(base_inputs, REVIEW_500, "1.0.0")

        assert base.inputs_fingerprint != build_incentive_breakdown(
            base_inputs, DEFAULT_CONFIG, "1.0.0"
        ).inputs_fingerprint
        assert base.inputs_fingerprint != build_incentive_breakdown(
            base_inputs, REVIEW_500, "1.0.1"
        ).inputs_fingerprint


class TestBreakdownSerialization:
    def test_to_dict_rounds_money(self, base_inputs):
        data = build_incentive_breakdown(base_inputs, REVIEW_500).to_dict()

        assert data["user_id"] == str(USER_ID)
        assert data["month"] == MONTH
        assert data["summary"]["net_incentive"] == "7875"
        assert data["summary"]["penalty_percentage"] == "25"
        assert data["sales"][0]["commission_amount"] == "10000"
        assert len(data["penalties"]["counted"]) == 2
