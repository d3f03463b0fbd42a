from tracker.domain import Expense


def by_year_month(year_month: str):
    def _filter(e: Expense) -> bool:
        return e.date[:7] == year_month

    return _filter


def by_year(year: int):
    prefix = f"{year:04d}-"

    def _filter(e: Expense) -> bool:
        return e.date.startswith(prefix)

    return _filter


def by_date_range(start: str, end: str):
    def _filter(e: Expense) -> bool:
        return start <= e.date <= end

    return _filter


def by_text(needle: str):
    needle = needle.strip().lower()

    def _filter(e: Expense) -> bool:
        return not needle or any(needle in s.lower() for s in (e.name, e.place, e.description))

    return _filter
