from typing import Callable, Iterable, Iterator

from tracker.domain import Expense

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def iter_expenses(expenses: Iterable[Expense], pred: Callable[[Expense], bool]) -> Iterator[Expense]:
    for e in expenses:
        if pred(e):
            yield e


def month_filter_options(expenses: Iterable[Expense]) -> Iterator[tuple[str, str]]:
    """Yield ("all", "All Months") then one (YYYY-MM, "Month YYYY") per month seen, newest first."""
    yield "all", "All Months"
    seen = {e.date[:7] for e in expenses if len(e.date) >= 7}
    for ym in sorted(seen, reverse=True):
        year, month = ym.split("-")
        yield ym, f"{MONTH_NAMES[int(month) - 1]} {year}"


def top_expenses(expenses: Iterable[Expense], k: int) -> Iterator[Expense]:
    ordered = sorted(expenses, key=lambda e: e.amount, reverse=True)
    for e in ordered[: max(0, k)]:
        yield e
