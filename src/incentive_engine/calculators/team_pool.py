"""Team bonus pool distribution."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

from incentive_engine.calculators.rules import OrganizationConfig
from incentive_engine.calculators.types import (
    ZERO,
    PerformerStanding,
    PoolAllocation,
    PoolMember,
    TeamPoolBreakdown,
    floor_currency,
)
from incentive_engine.errors import ValidationError

RANK_BUCKETS = ("top_performer", "second_performer", "third_performer")
_NO_SALE = datetime.max.replace(tzinfo=timezone.utc)


def _as_utc(value: datetime | None) -> datetime:
    if value is None:
        return _NO_SALE
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def rank_performers(performers: Sequence[PerformerStanding]) -> list[PerformerStanding]:
    """Order performers with revenue by revenue, highest first.

    Ties go to the earlier first sale of the month, then to the lower
    user id, so the ranking is stable across runs.
    """
    eligible = [p for p in performers if p.revenue > 0]
    return sorted(
        eligible,
        key=lambda p: (-p.revenue, _as_utc(p.first_sale_at), str(p.user_id)),
    )


def _split_equally(
    total: Decimal,
    percentage: Decimal,
    members: Sequence[PoolMember | PerformerStanding],
    bucket: str,
) -> list[PoolAllocation]:
    if not members:
        return []
    share = floor_currency(total * percentage / 100 / len(members))
    return [
        PoolAllocation(
            user_id=m.user_id,
            name=m.name,
            bucket=bucket,
            percentage=percentage,
            amount=share,
            total_sales=getattr(m, "revenue", None),
        )
        for m in members
    ]


def distribute_team_pool(
    total_pool: Decimal,
    performers: Sequence[PerformerStanding],
    managers: Sequence[PoolMember],
    support_staff: Sequence[PoolMember],
    config: OrganizationConfig,
) -> TeamPoolBreakdown:
    """Allocate a team pool across ranked performers and role buckets.

    Every individual amount is rounded down to whole units. Money that
    cannot be placed (an empty bucket, rounding remainders) is reported as
    ``unallocated_amount`` so the payout never exceeds the pool.

    Bucket percentages are trusted: they were validated when the
    configuration was written.
    """
    total_pool = Decimal(str(total_pool))
    if total_pool < 0:
        raise ValidationError("Team pool amount cannot be negative")

    top, second, third, manager_pct, support_pct, others_pct = config.team_pool_shares()
    ranked = rank_performers(performers)

    allocations: list[PoolAllocation] = []
    for index, (bucket, pct) in enumerate(zip(RANK_BUCKETS, (top, second, third))):
        if index >= len(ranked):
            break
        performer = ranked[index]
        allocations.append(
            PoolAllocation(
                user_id=performer.user_id,
                name=performer.name,
                bucket=bucket,
                percentage=pct,
                amount=floor_currency(total_pool * pct / 100),
                rank=index + 1,
                total_sales=performer.revenue,
            )
        )

    allocations.extend(_split_equally(total_pool, manager_pct, managers, "manager"))
    allocations.extend(_split_equally(total_pool, support_pct, support_staff, "support_staff"))

    others = _split_equally(total_pool, others_pct, ranked[len(RANK_BUCKETS):], "others")
    allocations.extend(
        replace(allocation, rank=rank)
        for rank, allocation in enumerate(others, start=len(RANK_BUCKETS) + 1)
    )

    allocated = sum((a.amount for a in allocations), ZERO)
    return TeamPoolBreakdown(
        total_pool=total_pool,
        allocations=allocations,
        unallocated_amount=total_pool - allocated,
    )
