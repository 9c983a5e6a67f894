"""Tests for team pool ranking and distribution."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from incentive_engine.calculators.rules import DEFAULT_CONFIG
from incentive_engine.calculators.team_pool import distribute_team_pool, rank_performers
from incentive_engine.calculators.types import PerformerStanding, PoolMember
from incentive_engine.errors import ValidationError


def uid(n: int) -> UUID:
    return UUID(int=n)


def performer(n: int, revenue: str, first_sale_day: int | None = 1) -> PerformerStanding:
    first_sale_at = (
        datetime(2026, 3, first_sale_day, tzinfo=timezone.utc) if first_sale_day else None
    )
    return PerformerStanding(uid(n), f"rep-{n}", Decimal(revenue), first_sale_at)


PERFORMERS = [
    performer(1, "500000"),
    performer(2, "300000"),
    performer(3, "200000"),
    performer(4, "100000"),
    performer(5, "50000"),
    performer(6, "0"),
]
MANAGERS = [PoolMember(uid(100), "manager")]
SUPPORT = [PoolMember(uid(200), "support-a"), PoolMember(uid(201), "support-b")]


class TestRankPerformers:
    def test_orders_by_revenue_and_drops_zero(self):
        ranked = rank_performers(PERFORMERS)

        assert [p.user_id for p in ranked] == [uid(1), uid(2), uid(3), uid(4), uid(5)]

    def test_tie_goes_to_earliest_first_sale(self):
        ranked = rank_performers(
            [performer(1, "1000", first_sale_day=9), performer(2, "1000", first_sale_day=4)]
        )

        assert ranked[0].user_id == uid(2)

    def test_tie_with_same_first_sale_goes_to_lower_user_id(self):
        ranked = rank_performers([performer(9, "1000"), performer(3, "1000")])

        assert [p.user_id for p in ranked] == [uid(3), uid(9)]

    def test_naive_and_aware_timestamps_compare(self):
        naive = PerformerStanding(uid(1), "a", Decimal("10"), datetime(2026, 3, 2))
        aware = PerformerStanding(
            uid(2), "b", Decimal("10"), datetime(2026, 3, 1, tzinfo=timezone.utc)
        )

        assert rank_performers([naive, aware])[0].user_id == uid(2)


class TestDistributeTeamPool:
    """Test the bucket allocation."""

    def test_default_split(self):
        breakdown = distribute_team_pool(
            Decimal("100000"), PERFORMERS, MANAGERS, SUPPORT, DEFAULT_CONFIG
        )
        by_user = {a.user_id: a for a in breakdown.allocations}

        assert by_user[uid(1)].amount == Decimal("20000")
        assert by_user[uid(1)].bucket == "top_performer"
        assert by_user[uid(2)].amount == Decimal("12000")
        assert by_user[uid(3)].amount == Decimal("8000")
        assert by_user[uid(100)].amount == Decimal("20000")
        assert by_user[uid(200)].amount == Decimal("10000")
        assert by_user[uid(201)].amount == Decimal("10000")
        assert by_user[uid(4)].amount == Decimal("10000")
        assert by_user[uid(4)].rank == 4
        assert by_user[uid(5)].rank == 5
        assert uid(6) not in by_user
        assert breakdown.total_allocated == Decimal("100000")
        assert breakdown.unallocated_amount == Decimal("0")

    def test_ranked_allocations(self):
        breakdown = distribute_team_pool(
            Decimal("100000"), PERFORMERS, MANAGERS, SUPPORT, DEFAULT_CONFIG
        )

        assert [a.rank for a in breakdown.ranked()] == [1, 2, 3]
        assert breakdown.bucket_total("others") == Decimal("20000")

    def test_empty_buckets_stay_unallocated(self):
        breakdown = distribute_team_pool(
            Decimal("100000"), PERFORMERS[:2], [], [], DEFAULT_CONFIG
        )

        # third place, manager, support and others have nobody
        assert breakdown.total_allocated == Decimal("32000")
        assert breakdown.unallocated_amount == Decimal("68000")

    def test_amounts_are_floored(self):
        support = [PoolMember(uid(200 + i), f"s{i}") for i in range(3)]
        breakdown = distribute_team_pool(
            Decimal("1000"), PERFORMERS, MANAGERS, support, DEFAULT_CONFIG
        )

        assert breakdown.bucket_total("support_staff") == Decimal("198")
        assert all(a.amount == a.amount.to_integral_value() for a in breakdown.allocations)
        assert breakdown.total_allocated <= Decimal("1000")
        assert breakdown.unallocated_amount == Decimal("2")

    def test_payout_never_exceeds_pool(self):
        many = [performer(i, str(1000 + i)) for i in range(1, 40)]
        breakdown = distribute_team_pool(
            Decimal("99999"), many, MANAGERS * 3, SUPPORT, DEFAULT_CONFIG
        )

        assert breakdown.total_allocated + breakdown.unallocated_amount == Decimal("99999")
        assert breakdown.unallocated_amount >= 0

    def test_negative_pool_rejected(self):
        with pytest.raises(ValidationError):
            distribute_team_pool(Decimal("-1"), PERFORMERS, MANAGERS, SUPPORT, DEFAULT_CONFIG)

    def test_to_dict(self):
        data = distribute_team_pool(
            Decimal("100000"), PERFORMERS, MANAGERS, SUPPORT, DEFAULT_CONFIG
        ).to_dict()

        assert data["total_pool"] == "100000"
        assert data["allocations"][0]["bucket"] == "top_performer"
        assert data["allocations"][0]["total_sales"] == "500000"
