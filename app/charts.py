import pandas as pd
import plotly.graph_objects as go

from tracker.domain import EXPENSE_FIELDS, INCOME_FIELDS, MONTH_KEYS, Portfolio
from tracker.heatmap import HeatmapGrid
from tracker.lazy import MONTH_NAMES
from tracker.portfolio import totals_row

SHORT_MONTHS = [m[:3] for m in MONTH_NAMES]
WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
FUTURE_COLOR = "#e9ecef"
TEMPLATE = "plotly_white"


def _percent_axis(fig: go.Figure, axis: str = "y") -> go.Figure:
    fig.update_layout(**{f"{axis}axis": dict(range=[0, 100], ticksuffix="%")})
    return fig


def daily_completion_figure(series: list[float]) -> go.Figure:
    fig = go.Figure(go.Scatter(
        x=[f"Day {d}" for d in range(1, len(series) + 1)],
        y=series,
        mode="lines",
        fill="tozeroy",
        line=dict(color="#495057", width=1),
        name="Completion %",
    ))
    fig.update_layout(template=TEMPLATE, showlegend=False, margin=dict(t=30, b=10, l=10, r=10))
    return _percent_axis(fig)


def monthly_average_figure(averages: list[float]) -> go.Figure:
    fig = go.Figure(go.Bar(x=SHORT_MONTHS, y=averages, marker_color="#6c757d", name="Average Completion %"))
    fig.update_layout(template=TEMPLATE, showlegend=False, margin=dict(t=30, b=10, l=10, r=10))
    return _percent_axis(fig)


def task_completion_figure(table: dict[str, float]) -> go.Figure:
    fig = go.Figure(go.Bar(
        x=list(table.values()),
        y=list(table.keys()),
        orientation="h",
        marker_color="#868e96",
        name="Completion %",
    ))
    fig.update_layout(template=TEMPLATE, showlegend=False, margin=dict(t=30, b=10, l=10, r=10))
    return _percent_axis(fig, "x")


def heatmap_figure(grid: HeatmapGrid) -> go.Figure:
    """One square marker per day at (week column, weekday row)."""
    cells = grid.cells
    fig = go.Figure(go.Scatter(
        x=[c.column for c in cells],
        y=[c.row for c in cells],
        mode="markers",
        marker=dict(
            symbol="square",
            size=grid.cell_size,
            color=[FUTURE_COLOR if c.future else c.color for c in cells],
        ),
        text=[
            f"{c.date.isoformat()}: " + ("upcoming" if c.future else f"{c.percentage:.0f}%")
            for c in cells
        ],
        hoverinfo="text",
    ))
    fig.update_layout(
        template=TEMPLATE,
        showlegend=False,
        height=grid.cell_size * 7 + 90,
        margin=dict(t=30, b=10, l=40, r=10),
        xaxis=dict(
            tickmode="array",
            tickvals=[col for _, col in grid.month_labels],
            ticktext=[label for label, _ in grid.month_labels],
            side="top",
            showgrid=False,
            zeroline=False,
            range=[-1, grid.week_count],
        ),
        yaxis=dict(
            tickmode="array",
            tickvals=list(range(7)),
            ticktext=WEEKDAYS,
            autorange="reversed",
            showgrid=False,
            zeroline=False,
            scaleanchor="x",
        ),
    )
    return fig


def expense_daily_figure(series: list[float], currency: str, title: str = "") -> go.Figure:
    fig = go.Figure(go.Scatter(
        x=[f"Day {d}" for d in range(1, len(series) + 1)],
        y=series,
        mode="lines",
        fill="tozeroy",
        line=dict(color="#495057", width=1),
        name="Expenses",
    ))
    fig.update_layout(template=TEMPLATE, showlegend=False, title=title or None, yaxis=dict(tickprefix=currency, rangemode="tozero"))
    return fig


def expense_monthly_figure(series: list[float], currency: str) -> go.Figure:
    fig = go.Figure(go.Bar(x=SHORT_MONTHS, y=series, marker_color="#6c757d", name="Expenses"))
    fig.update_layout(template=TEMPLATE, showlegend=False, yaxis=dict(tickprefix=currency, rangemode="tozero"))
    return fig


def expenses_frame(expenses) -> pd.DataFrame:
    rows = [
        {
            "Date": e.date,
            "Name": e.name,
            "Amount": e.amount,
            "Place": e.place or "-",
            "Description": e.description or "-",
            "id": e.id,
        }
        for e in expenses
    ]
    return pd.DataFrame(rows, columns=["Date", "Name", "Amount", "Place", "Description", "id"])


def portfolio_frame(portfolio: Portfolio) -> pd.DataFrame:
    """Twelve month rows plus a TOTAL row, derived columns included."""
    rows = []
    for key, name in zip(MONTH_KEYS, MONTH_NAMES):
        m = portfolio.months[key]
        row = {"Month": name}
        row.update({f: getattr(m, f) for f in EXPENSE_FIELDS})
        row["totalExpense"] = m.total_expense
        row.update({f: getattr(m, f) for f in INCOME_FIELDS})
        row["totalIncome"] = m.total_income
        row["savings"] = m.savings
        rows.append(row)
    total = {"Month": "TOTAL"}
    total.update(totals_row(portfolio))
    rows.append(total)
    columns = ["Month", *EXPENSE_FIELDS, "totalExpense", *INCOME_FIELDS, "totalIncome", "savings"]
    return pd.DataFrame(rows, columns=columns)


def task_frame(tasks, month_days: int) -> pd.DataFrame:
    """One row per task: its name, then a completed flag per day column "1".."n"."""
    rows = []
    for t in tasks:
        row = {"Task": t.name}
        row.update({str(d): d in t.days for d in range(1, month_days + 1)})
        rows.append(row)
    return pd.DataFrame(rows, columns=["Task", *[str(d) for d in range(1, month_days + 1)]])
