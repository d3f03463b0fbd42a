import calendar
from datetime import date, timedelta
from functools import lru_cache


@lru_cache(maxsize=None)
def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


@lru_cache(maxsize=None)
def year_dates(year: int) -> tuple[date, ...]:
    start = date(year, 1, 1)
    count = 366 if calendar.isleap(year) else 365
    return tuple(start + timedelta(days=i) for i in range(count))


def year_month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def quarter_of(month: int) -> int:
    return (month - 1) // 3 + 1
