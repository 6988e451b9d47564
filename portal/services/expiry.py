"""Activity expiry: visible through the due date plus one grace day."""
from datetime import date, datetime, timedelta
from typing import Iterable, TypeVar, Union

GRACE_PERIOD = timedelta(days=1)

DateLike = Union[date, datetime]
T = TypeVar("T")


def _as_day(value: DateLike) -> date:
    # datetime is a subclass of date; drop the time of day
    if isinstance(value, datetime):
        return value.date()
    return value


def is_expired(due: DateLike, today: DateLike) -> bool:
    """True once `today` is strictly after `due + 1 day`, compared by calendar day."""
    return _as_day(today) > _as_day(due) + GRACE_PERIOD


def filter_live(activities: Iterable[T], today: DateLike) -> list[T]:
    """Drop expired activities (anything with a `date` attribute) and sort by due date."""
    live = [a for a in activities if not is_expired(a.date, today)]
    return sorted(live, key=lambda a: a.date)
