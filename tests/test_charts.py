from datetime import date

from app.charts import (
    FUTURE_COLOR,
    daily_completion_figure,
    expense_daily_figure,
    expenses_frame,
    heatmap_figure,
    portfolio_frame,
    task_completion_figure,
    task_frame,
)
from tracker.domain import Expense, MONTH_KEYS, Portfolio, PortfolioMonth, Task
from tracker.aggregator import daily_expense_series
from tracker.heatmap import build_heatmap


def test_portfolio_frame_has_total_row():
    months = {k: PortfolioMonth() for k in MONTH_KEYS}
    months["jan"] = PortfolioMonth(rent=100, mainIncome=400)
    months["dec"] = PortfolioMonth(misc=50, sideIncome=20)
    df = portfolio_frame(Portfolio(opening_balance=0, months=months))

    assert len(df) == 13
    assert df.iloc[0]["Month"] == "January"
    assert df.iloc[0]["savings"] == 300
    total = df.iloc[-1]
    assert total["Month"] == "TOTAL"
    assert total["totalExpense"] == 150
    assert total["totalIncome"] == 420
    assert total["savings"] == 270


def test_expenses_frame_columns():
    df = expenses_frame([Expense("x", "Tea", 2.0, "2025-01-01", 1)])
    assert list(df.columns) == ["Date", "Name", "Amount", "Place", "Description", "id"]
    assert df.iloc[0]["Place"] == "-"
    assert expenses_frame([]).empty


def test_task_frame_day_columns():
    df = task_frame([Task("Read", frozenset({2})), Task("Walk")], 28)
    assert list(df.columns)[:3] == ["Task", "1", "2"]
    assert len(df.columns) == 29
    assert bool(df.at[0, "2"]) is True
    assert bool(df.at[0, "1"]) is False
    assert df.at[1, "Task"] == "Walk"


def test_heatmap_figure_greys_out_future_days():
    grid = build_heatmap({"2025-01-01": 100.0}, 2025, today=date(2025, 1, 1))
    fig = heatmap_figure(grid)
    colors = fig.data[0].marker.color
    assert len(colors) == 365
    assert colors[0] == grid.cells[0].color
    assert colors[1] == FUTURE_COLOR
    assert fig.layout.xaxis.ticktext[0] == "Jan"


def test_line_and_bar_figures():
    fig = daily_completion_figure([0.0, 50.0, 100.0])
    assert list(fig.data[0].y) == [0.0, 50.0, 100.0]
    fig = task_completion_figure({"Read": 40.0})
    assert fig.data[0].orientation == "h"


def test_daily_expense_figure_follows_the_selected_month():
    expenses = [
        Expense(id="a", name="Rent", amount=900, date="2025-02-01", created_at=1),
        Expense(id="b", name="Coffee", amount=4, date="2025-02-28", created_at=2),
        Expense(id="c", name="Lunch", amount=12, date="2025-07-03", created_at=3),
    ]
    fig = expense_daily_figure(daily_expense_series(expenses, 2025, 2), "$", "Daily spend - February 2025")
    trace = fig.data[0]
    assert len(trace.x) == 28
    assert trace.y[0] == 900
    assert trace.y[27] == 4
    assert sum(trace.y) == 904
    assert fig.layout.title.text == "Daily spend - February 2025"
