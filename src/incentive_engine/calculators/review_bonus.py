"""Per-review bonus accumulation."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from incentive_engine.calculators.types import ReviewBonusResult, SaleInput


def compute_review_bonus(sales: Iterable[SaleInput], per_review_amount: Decimal) -> ReviewBonusResult:
    """Bonus for every sale with a confirmed review.

    Pending reviews pay nothing yet; their count is reported so a manager
    can see the bonus is not final.
    """
    reviewed = 0
    pending = 0
    for sale in sales:
        if sale.review_qualified is True:
            reviewed += 1
        elif sale.review_qualified is None:
            pending += 1

    return ReviewBonusResult(
        reviewed_count=reviewed,
        pending_count=pending,
        bonus_per_review=per_review_amount,
        total_bonus=per_review_amount * reviewed,
    )
