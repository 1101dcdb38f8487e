from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from auditready.core.errors import InvalidPeriodError
from auditready.services.checkpoints import (
    current_period,
    last_business_day,
    matches_period,
    parse_period,
    period_bounds,
    period_label,
    previous_period,
)


@pytest.mark.parametrize("period", ["2026-13", "2026-00", "2026-3", "March 2026", ""])
def test_parse_period_rejects_malformed_keys(period: str) -> None:
    with pytest.raises(InvalidPeriodError):
        parse_period(period)


def test_period_bounds_cover_the_whole_month() -> None:
    assert parse_period("2026-02") == (2026, 2)
    assert period_bounds("2026-02") == (date(2026, 2, 1), date(2026, 2, 28))
    assert period_bounds("2028-02") == (date(2028, 2, 1), date(2028, 2, 29))


def test_last_business_day_skips_weekends() -> None:
    # 2026-05-31 is a Sunday, 2026-02-28 a Saturday.
    assert last_business_day(2026, 5) == date(2026, 5, 29)
    assert last_business_day(2026, 2) == date(2026, 2, 27)
    assert last_business_day(2026, 3) == date(2026, 3, 31)


def test_recurrences_fall_due_in_their_months() -> None:
    assert all(matches_period("monthly", month) for month in range(1, 13))
    assert [m for m in range(1, 13) if matches_period("quarterly", m)] == [3, 6, 9, 12]
    assert [m for m in range(1, 13) if matches_period("semi_annual", m)] == [6, 12]
    assert [m for m in range(1, 13) if matches_period("annual", m)] == [12]
    assert matches_period("weekly", 3) is False


def test_period_labels_per_recurrence() -> None:
    assert period_label("monthly", 2026, 3) == "2026-03"
    assert period_label("quarterly", 2026, 3) == "2026-Q1"
    assert period_label("quarterly", 2026, 12) == "2026-Q4"
    assert period_label("semi_annual", 2026, 6) == "2026-H1"
    assert period_label("semi_annual", 2026, 12) == "2026-H2"
    assert period_label("annual", 2026, 12) == "2026"


def test_current_period_uses_the_given_clock() -> None:
    assert current_period(datetime(2026, 7, 4, 23, 59, tzinfo=timezone.utc)) == "2026-07"


def test_previous_period_rolls_back_across_years() -> None:
    assert previous_period(datetime(2026, 4, 1, 8, 0, tzinfo=timezone.utc)) == "2026-03"
    assert previous_period(datetime(2027, 1, 1, 8, 0, tzinfo=timezone.utc)) == "2026-12"
