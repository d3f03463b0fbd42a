"""Completion and expense arithmetic over small in-memory collections.

Task inputs are mappings of task name -> completed days (any iterable or
mapping of day numbers). Percentages are on the closed interval [0, 100] and
every denominator of zero yields 0 instead of raising.
"""
from collections import defaultdict
from datetime import date
from typing import Iterable, Mapping

from tracker.domain import Expense
from tracker.memo import days_in_month


def _completed(days, month_days: int) -> set:
    return {int(d) for d in days if 1 <= int(d) <= month_days}


def daily_completion_series(tasks: Mapping[str, Iterable[int]], month_days: int) -> list[float]:
    n = len(tasks)
    if n == 0:
        return [0.0] * month_days
    counts = [0] * month_days
    for days in tasks.values():
        for d in _completed(days, month_days):
            counts[d - 1] += 1
    return [100.0 * k / n for k in counts]


def monthly_average(tasks: Mapping[str, Iterable[int]], month_days: int) -> float:
    n = len(tasks)
    if n == 0 or month_days <= 0:
        return 0.0
    done = sum(len(_completed(days, month_days)) for days in tasks.values())
    return 100.0 * done / (n * month_days)


def per_task_completion(days: Iterable[int], month_days: int) -> float:
    # fixed month length, also for the month still in progress
    if month_days <= 0:
        return 0.0
    return 100.0 * len(_completed(days, month_days)) / month_days


def task_completion_table(tasks: Mapping[str, Iterable[int]], month_days: int) -> dict[str, float]:
    return {name: per_task_completion(days, month_days) for name, days in tasks.items()}


def year_completion_by_date(tasks_by_month: Mapping[int, Mapping[str, Iterable[int]]], year: int) -> dict[str, float]:
    """ISO date -> daily completion percentage for every date of the year."""
    series = {}
    for month in range(1, 13):
        tasks = tasks_by_month.get(month) or {}
        for day, pct in enumerate(daily_completion_series(tasks, days_in_month(year, month)), start=1):
            series[date(year, month, day).isoformat()] = pct
    return series


# --- expenses

def expense_total(expenses: Iterable[Expense]) -> float:
    return sum(e.amount for e in expenses)


def average_per_day(expenses: Iterable[Expense]) -> float:
    """Total divided by the inclusive day span between earliest and latest expense."""
    expenses = list(expenses)
    if not expenses:
        return 0.0
    dates = [date.fromisoformat(e.date) for e in expenses]
    span = max(1, (max(dates) - min(dates)).days + 1)
    return expense_total(expenses) / span


def average_per_month(expenses: Iterable[Expense]) -> float:
    expenses = list(expenses)
    months = {e.date[:7] for e in expenses}
    if not months:
        return 0.0
    return expense_total(expenses) / len(months)


def expense_summary(expenses: Iterable[Expense]) -> dict[str, float]:
    expenses = list(expenses)
    return {
        "total": expense_total(expenses),
        "avg_per_day": average_per_day(expenses),
        "avg_per_month": average_per_month(expenses),
    }


def daily_expense_series(expenses: Iterable[Expense], year: int, month: int) -> list[float]:
    n = days_in_month(year, month)
    data = [0.0] * n
    for e in expenses:
        d = date.fromisoformat(e.date)
        if d.year == year and d.month == month:
            data[d.day - 1] += e.amount
    return data


def monthly_expense_series(expenses: Iterable[Expense], year: int) -> list[float]:
    totals = defaultdict(float)
    for e in expenses:
        d = date.fromisoformat(e.date)
        if d.year == year:
            totals[d.month] += e.amount
    return [totals[m] for m in range(1, 13)]
