"""Tests for commission resolution."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from incentive_engine.calculators.commission import DEFAULT_RATES, resolve_commission, select_rate
from incentive_engine.calculators.types import CommissionRateSpec, SaleInput


def make_sale(price: str, category: str | None = "Electric") -> SaleInput:
    return SaleInput(
        sale_id=uuid4(),
        sale_price=Decimal(price),
        category_name=category,
        created_at=datetime(2026, 3, 5, 10, 0, tzinfo=timezone.utc),
    )


ELECTRIC = CommissionRateSpec(
    category_name="Electric",
    commission_percentage=Decimal("0.7"),
    multiplier=Decimal("1.5"),
    premium_threshold=Decimal("50000"),
)
DEFAULT = CommissionRateSpec(category_name="Default", commission_percentage=Decimal("1"))


class TestResolveCommission:
    """Test category matching, premium multiplier and minimums."""

    def test_premium_sale_applies_multiplier(self):
        """60,000 at 0.7% with a 1.5x premium multiplier earns 630."""
        result = resolve_commission(make_sale("60000"), [ELECTRIC, DEFAULT])

        assert result.amount == Decimal("630")
        assert result.rate == Decimal("0.7")
        assert result.multiplier_applied == Decimal("1.5")
        assert result.reason == "matched"
        assert result.premium is True

    def test_below_premium_threshold_has_no_multiplier(self):
        result = resolve_commission(make_sale("40000"), [ELECTRIC])

        assert result.amount == Decimal("280")
        assert result.multiplier_applied == Decimal("1")
        assert result.premium is False

    def test_threshold_is_inclusive(self):
        result = resolve_commission(make_sale("50000"), [ELECTRIC])

        assert result.amount == Decimal("525")
        assert result.multiplier_applied == Decimal("1.5")

    def test_unknown_category_falls_back_to_default(self):
        result = resolve_commission(make_sale("10000", "Plumbing"), [ELECTRIC, DEFAULT])

        assert result.amount == Decimal("100")
        assert result.matched_category == "Default"
        assert result.reason == "default_fallback"

    def test_missing_category_falls_back_to_default(self):
        result = resolve_commission(make_sale("10000", None), [ELECTRIC, DEFAULT])

        assert result.reason == "default_fallback"
        assert result.amount == Decimal("100")

    def test_no_rate_earns_zero(self):
        result = resolve_commission(make_sale("10000", "Plumbing"), [ELECTRIC])

        assert result.amount == Decimal("0")
        assert result.rate is None
        assert result.reason == "no_rate"
        assert result.effective_percentage == Decimal("0")

    def test_category_match_is_case_sensitive(self):
        result = resolve_commission(make_sale("10000", "electric"), [ELECTRIC, DEFAULT])

        assert result.matched_category == "Default"

    def test_below_minimum_sale_price_earns_zero(self):
        rate = CommissionRateSpec(
            category_name="Electric",
            commission_percentage=Decimal("2"),
            min_sale_price=Decimal("5000"),
        )
        result = resolve_commission(make_sale("4999"), [rate])

        assert result.amount == Decimal("0")
        assert result.reason == "below_minimum"
        assert result.rate == Decimal("2")

    def test_inactive_rates_are_ignored(self):
        inactive = CommissionRateSpec(
            category_name="Electric",
            commission_percentage=Decimal("5"),
            is_active=False,
        )
        rate, is_fallback = select_rate("Electric", [inactive, DEFAULT])

        assert rate is DEFAULT
        assert is_fallback is True

    def test_effective_percentage(self):
        result = resolve_commission(make_sale("60000"), [ELECTRIC])

        assert result.effective_percentage == Decimal("1.05")


class TestDefaultRates:
    """Standard rates seeded for new organizations."""

    def test_premium_bike_earns_multiplier(self):
        result = resolve_commission(make_sale("60000", "Premium"), DEFAULT_RATES)

        assert result.amount == Decimal("630")
        assert result.reason == "matched"

    def test_kids_rate(self):
        result = resolve_commission(make_sale("10000", "Kids"), DEFAULT_RATES)

        assert result.amount == Decimal("100")

    def test_uncategorised_sale_uses_default(self):
        result = resolve_commission(make_sale("10000", None), DEFAULT_RATES)

        assert result.amount == Decimal("80")
        assert result.reason == "default_fallback"
