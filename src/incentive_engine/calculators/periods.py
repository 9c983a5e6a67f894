"""Calendar month helpers for ``YYYY-MM`` identifiers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from incentive_engine.errors import ValidationError

MONTH_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


@dataclass(frozen=True)
class MonthPeriod:
    """A calendar month: ``start`` inclusive, ``next_start`` exclusive."""

    month: str
    start: date
    next_start: date

    @property
    def end(self) -> date:
        """Last day of the month."""
        return self.next_start - timedelta(days=1)

    @property
    def start_at(self) -> datetime:
        return datetime(self.start.year, self.start.month, 1, tzinfo=timezone.utc)

    @property
    def next_start_at(self) -> datetime:
        return datetime(self.next_start.year, self.next_start.month, 1, tzinfo=timezone.utc)


def parse_month(month: str) -> MonthPeriod:
    """Validate a ``YYYY-MM`` month identifier and return its boundaries."""
    match = MONTH_PATTERN.match(month or "")
    if match is None:
        raise ValidationError(f"Month must be in YYYY-MM format, got {month!r}")

    year, month_num = int(match.group(1)), int(match.group(2))
    start = date(year, month_num, 1)
    if month_num == 12:
        next_start = date(year + 1, 1, 1)
    else:
        next_start = date(year, month_num + 1, 1)
    return MonthPeriod(month=month, start=start, next_start=next_start)


def month_of(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def current_month() -> str:
    return month_of(datetime.now(timezone.utc).date())
