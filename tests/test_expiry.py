import datetime

import pytest

from portal.services.expiry import filter_live, is_expired

DUE = datetime.date(2024, 3, 10)


@pytest.mark.parametrize(
    "today, expected",
    [
        (datetime.date(2024, 3, 9), False),
        (datetime.date(2024, 3, 10), False),
        (datetime.date(2024, 3, 11), False),
        (datetime.date(2024, 3, 12), True),
        (datetime.date(2024, 4, 1), True),
    ],
)
def test_grace_day_after_due_date(today, expected):
    assert is_expired(DUE, today) is expected


def test_time_of_day_is_ignored():
    assert not is_expired(DUE, datetime.datetime(2024, 3, 11, 23, 59, 59))
    assert is_expired(datetime.datetime(2024, 3, 10, 23, 0), datetime.datetime(2024, 3, 12, 0, 0, 1))


def test_month_and_year_boundaries():
    assert not is_expired(datetime.date(2024, 2, 28), datetime.date(2024, 2, 29))
    assert is_expired(datetime.date(2024, 2, 28), datetime.date(2024, 3, 1))
    assert not is_expired(datetime.date(2024, 12, 31), datetime.date(2025, 1, 1))
    assert is_expired(datetime.date(2024, 12, 31), datetime.date(2025, 1, 2))


class _Row:
    def __init__(self, name, date):
        self.name = name
        self.date = date


def test_filter_live_drops_expired_and_sorts():
    rows = [
        _Row("late", datetime.date(2024, 3, 20)),
        _Row("gone", datetime.date(2024, 3, 1)),
        _Row("grace", datetime.date(2024, 3, 10)),
        _Row("same-day-a", datetime.date(2024, 3, 15)),
        _Row("same-day-b", datetime.date(2024, 3, 15)),
    ]
    live = filter_live(rows, datetime.date(2024, 3, 11))
    assert [r.name for r in live] == ["grace", "same-day-a", "same-day-b", "late"]
