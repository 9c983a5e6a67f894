"""Commission resolution by product category."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from incentive_engine.calculators.types import (
    ZERO,
    CommissionRateLike,
    CommissionRateSpec,
    CommissionResult,
    SaleInput,
)

DEFAULT_CATEGORY = "Default"
ONE = Decimal("1")

# Starting rates for a new organization
DEFAULT_RATES = (
    CommissionRateSpec("Kids", Decimal("1.0")),
    CommissionRateSpec("Single Speed", Decimal("0.8")),
    CommissionRateSpec("Geared", Decimal("0.8")),
    CommissionRateSpec("2nd Hand", Decimal("0.8")),
    CommissionRateSpec("Services", Decimal("0.8")),
    CommissionRateSpec("Premium", Decimal("0.7"), multiplier=Decimal("1.5")),
    CommissionRateSpec("Electric", Decimal("0.7"), multiplier=Decimal("1.5")),
    CommissionRateSpec(DEFAULT_CATEGORY, Decimal("0.8")),
)


def select_rate(
    category_name: str | None, rates: Iterable[CommissionRateLike]
) -> tuple[CommissionRateLike | None, bool]:
    """Pick the rate for a category.

    Returns the rate (or None) and whether it came from the ``Default``
    fallback. Matching is exact and case-sensitive; inactive rates are
    ignored.
    """
    active = {r.category_name: r for r in rates if r.is_active}
    if category_name is not None and category_name in active:
        return active[category_name], False
    fallback = active.get(DEFAULT_CATEGORY)
    if fallback is not None:
        return fallback, True
    return None, False


def resolve_commission(sale: SaleInput, rates: Iterable[CommissionRateLike]) -> CommissionResult:
    """Resolve the commission earned by one sale.

    Resolution order:
    1. Active rate for the sale's exact category
    2. Active ``Default`` rate
    3. Nothing: zero commission with reason ``no_rate``

    A sale priced below the matched rate's ``min_sale_price`` earns zero.
    At or above ``premium_threshold`` the amount is scaled by the rate's
    multiplier. Stored rates are trusted; nothing is clamped here.
    """
    rate, is_fallback = select_rate(sale.category_name, rates)
    if rate is None:
        return CommissionResult(
            amount=ZERO,
            rate=None,
            multiplier_applied=ONE,
            matched_category=None,
            reason="no_rate",
        )

    if sale.sale_price < rate.min_sale_price:
        return CommissionResult(
            amount=ZERO,
            rate=rate.commission_percentage,
            multiplier_applied=ONE,
            matched_category=rate.category_name,
            reason="below_minimum",
        )

    amount = sale.sale_price * rate.commission_percentage / 100
    multiplier = ONE
    if sale.sale_price >= rate.premium_threshold:
        multiplier = rate.multiplier
        amount = amount * multiplier

    return CommissionResult(
        amount=amount,
        rate=rate.commission_percentage,
        multiplier_applied=multiplier,
        matched_category=rate.category_name,
        reason="default_fallback" if is_fallback else "matched",
    )
