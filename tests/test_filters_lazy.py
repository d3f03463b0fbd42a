from itertools import islice

from tracker.domain import Expense
from tracker.filters import by_date_range, by_text, by_year, by_year_month
from tracker.lazy import iter_expenses, month_filter_options, top_expenses


def make_sample():
    return (
        Expense("1", "Groceries", 45.0, "2025-01-03", 1, place="FreshMart"),
        Expense("2", "Bus pass", 20.0, "2025-01-15", 2),
        Expense("3", "Dinner", 60.0, "2025-02-01", 3, description="Anniversary"),
        Expense("4", "Groceries", 38.0, "2024-12-30", 4, place="FreshMart"),
    )


def test_by_year_month_and_year():
    exp = make_sample()
    assert [e.id for e in iter_expenses(exp, by_year_month("2025-01"))] == ["1", "2"]
    assert [e.id for e in iter_expenses(exp, by_year(2024))] == ["4"]


def test_by_date_range_is_inclusive():
    exp = make_sample()
    got = [e.id for e in iter_expenses(exp, by_date_range("2025-01-03", "2025-02-01"))]
    assert got == ["1", "2", "3"]


def test_by_text_searches_name_place_and_description():
    exp = make_sample()
    assert [e.id for e in iter_expenses(exp, by_text("freshmart"))] == ["1", "4"]
    assert [e.id for e in iter_expenses(exp, by_text("ANNIV"))] == ["3"]
    assert len(list(iter_expenses(exp, by_text("  ")))) == 4


def test_iter_expenses_is_lazy():
    exp = make_sample()
    calls = {"n": 0}

    def pred(e):
        calls["n"] += 1
        return True

    first = list(islice(iter_expenses(exp, pred), 1))
    assert len(first) == 1
    assert calls["n"] == 1


def test_month_filter_options_newest_first():
    opts = list(month_filter_options(make_sample()))
    assert opts == [
        ("all", "All Months"),
        ("2025-02", "February 2025"),
        ("2025-01", "January 2025"),
        ("2024-12", "December 2024"),
    ]


def test_top_expenses():
    assert [e.id for e in top_expenses(make_sample(), 2)] == ["3", "1"]
    assert list(top_expenses(make_sample(), 0)) == []
