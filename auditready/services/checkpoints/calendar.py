from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
import re

from auditready.core.errors import InvalidPeriodError
from auditready.domain.constants import (
    RECURRENCE_ANNUAL,
    RECURRENCE_MONTHLY,
    RECURRENCE_QUARTERLY,
    RECURRENCE_SEMI_ANNUAL,
)


_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")

# Months in which each recurrence falls due (quarter/half/year ends).
_DUE_MONTHS: dict[str, frozenset[int]] = {
    RECURRENCE_MONTHLY: frozenset(range(1, 13)),
    RECURRENCE_QUARTERLY: frozenset({3, 6, 9, 12}),
    RECURRENCE_SEMI_ANNUAL: frozenset({6, 12}),
    RECURRENCE_ANNUAL: frozenset({12}),
}


def current_period(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{now.year:04d}-{now.month:02d}"


def previous_period(now: datetime | None = None) -> str:
    # The month that closed before `now`; January rolls back to December.
    now = now or datetime.now(timezone.utc)
    if now.month == 1:
        return f"{now.year - 1:04d}-12"
    return f"{now.year:04d}-{now.month - 1:02d}"


def parse_period(period: str) -> tuple[int, int]:
    match = _PERIOD_RE.match(period or "")
    if not match:
        raise InvalidPeriodError(f"Invalid period {period!r}: use YYYY-MM.")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidPeriodError(f"Invalid period {period!r}: month must be 01-12.")
    return year, month


def period_bounds(period: str) -> tuple[date, date]:
    year, month = parse_period(period)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def last_business_day(year: int, month: int) -> date:
    day = date(year, month, calendar.monthrange(year, month)[1])
    # Walk back over Saturday (5) and Sunday (6).
    while day.weekday() >= 5:
        day -= timedelta(days=1)
    return day


def matches_period(frequency: str, month: int) -> bool:
    due_months = _DUE_MONTHS.get(frequency)
    if due_months is None:
        return False
    return month in due_months


def period_label(frequency: str, year: int, month: int) -> str:
    """Checkpoint period key for a recurrence in the given month.

    monthly -> "2026-03", quarterly -> "2026-Q1", semi_annual -> "2026-H1",
    annual -> "2026".
    """
    if frequency == RECURRENCE_QUARTERLY:
        return f"{year:04d}-Q{(month + 2) // 3}"
    if frequency == RECURRENCE_SEMI_ANNUAL:
        return f"{year:04d}-{'H1' if month <= 6 else 'H2'}"
    if frequency == RECURRENCE_ANNUAL:
        return f"{year:04d}"
    return f"{year:04d}-{month:02d}"
