"""Activity streak tracking."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta

from incentive_engine.calculators.rules import DEFAULT_CONFIG, OrganizationConfig
from incentive_engine.calculators.types import StreakResult

# Tiers in descending order; the highest one reached is paid
STREAK_TIERS = (30, 14, 7)
MISS_WINDOW_DAYS = 7


def streak_tier(streak: int) -> int:
    for tier in STREAK_TIERS:
        if streak >= tier:
            return tier
    return 0


def compute_streak(
    activity_dates: Iterable[date],
    as_of: date,
    period_start: date | None = None,
    config: OrganizationConfig = DEFAULT_CONFIG,
) -> StreakResult:
    """Walk the activity log day by day up to ``as_of``.

    An active day extends the streak. An inactive day while a streak is
    running is tolerated once per rolling 7-day window (the day itself and
    the six days before it); a second miss inside the window resets the
    streak to zero. Free misses neither extend nor break the streak.

    The bonus tier comes from the highest streak reached on any day in
    ``[period_start, as_of]``, so it never drops within the period even
    if the streak later breaks.
    """
    active = {d for d in activity_dates if d <= as_of}
    if not active:
        return StreakResult(0, 0, 0, 0, config.streak_tier_bonus(0))

    current = 0
    longest = 0
    peak = 0
    last_free_miss: date | None = None

    day = min(active)
    while day <= as_of:
        if day in active:
            current += 1
        elif current > 0:
            window_start = day - timedelta(days=MISS_WINDOW_DAYS - 1)
            if last_free_miss is not None and last_free_miss >= window_start:
                current = 0
                last_free_miss = None
            else:
                last_free_miss = day

        longest = max(longest, current)
        if period_start is None or day >= period_start:
            peak = max(peak, current)
        day += timedelta(days=1)

    tier = streak_tier(peak)
    return StreakResult(
        current_streak=current,
        longest_streak=longest,
        peak_streak=peak,
        tier=tier,
        bonus_amount=config.streak_tier_bonus(tier),
    )
