from datetime import date

import pytest

from periods import month_period, parse_month, previous_month, resolve_period, shift_month


def test_month_period_covers_whole_month() -> None:
    feb = month_period(2024, 2)
    assert feb.slug == "2024-02"
    assert feb.start == date(2024, 2, 1)
    assert feb.end == date(2024, 2, 29)


def test_shift_month_crosses_years() -> None:
    assert shift_month(2025, 1, -1) == (2024, 12)
    assert shift_month(2024, 12, 1) == (2025, 1)
    assert shift_month(2025, 3, -14) == (2024, 1)


def test_previous_month() -> None:
    assert previous_month(date(2025, 1, 15)).slug == "2024-12"


def test_parse_month() -> None:
    assert parse_month("2025-03").start == date(2025, 3, 1)
    assert parse_month(None, today=date(2025, 7, 9)).slug == "2025-07"
    with pytest.raises(ValueError):
        parse_month("2025-13")
    with pytest.raises(ValueError):
        parse_month("March")


def test_resolve_period() -> None:
    today = date(2025, 3, 18)
    assert resolve_period(None, None, None, today=today).start == date(2025, 3, 1)
    assert resolve_period("last_month", None, None, today=today).slug == "2025-02"
    assert resolve_period("all", None, None, today=today).end == today

    custom = resolve_period("custom", "2025-01-05", "2025-02-10", today=today)
    assert (custom.start, custom.end) == (date(2025, 1, 5), date(2025, 2, 10))
    with pytest.raises(ValueError):
        resolve_period("custom", "2025-02-10", "2025-01-05", today=today)
    with pytest.raises(ValueError):
        resolve_period("custom", None, "2025-01-05", today=today)
