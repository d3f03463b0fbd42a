import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
import logging

import numpy as np
import plotly.express as px
import streamlit as st

from app.charts import (
    daily_completion_figure,
    expense_daily_figure,
    expense_monthly_figure,
    expenses_frame,
    heatmap_figure,
    monthly_average_figure,
    portfolio_frame,
    task_completion_figure,
    task_frame,
)
from tracker.aggregator import daily_expense_series, expense_summary, monthly_expense_series
from tracker.async_reports import year_completion
from tracker.auth import sign_in, sign_up
from tracker.config import YearPreference, configure_logging, load_settings, year_options
from tracker.domain import EXPENSE_FIELDS, GOAL_TYPES, MONTH_KEYS, PORTFOLIO_FIELDS
from tracker.errors import AuthError, RemoteReadError, RemoteWriteError, ValidationError
from tracker.events import Command, CommandBus, register_default_handlers
from tracker.expenses import ExpenseService
from tracker.filters import by_date_range, by_text, by_year
from tracker.goals import GoalService
from tracker.heatmap import build_heatmap
from tracker.lazy import MONTH_NAMES, iter_expenses, top_expenses
from tracker.memo import days_in_month, year_month_key
from tracker.portfolio import PortfolioService
from tracker.services import DEFAULT_CALCULATORS, CompletionReportService
from tracker.session import SessionContext
from tracker.store import create_store
from tracker.tasks import TaskService

st.set_page_config(page_title="Habit Ledger", layout="wide")


def _secrets() -> dict:
    try:
        return dict(st.secrets)
    except Exception:
        # no secrets.toml
        return {}


settings = load_settings(secrets=_secrets())
configure_logging(settings.log_level)
logger = logging.getLogger("app")


@st.cache_resource(show_spinner=False)
def get_store():
    return create_store(settings)


store = get_store()
prefs = YearPreference(settings.prefs_path)

if "ctx" not in st.session_state:
    ctx = SessionContext(year=prefs.load())
    if settings.backend == "memory":
        ctx.uid, ctx.email = "demo", "demo@localhost"
    st.session_state.ctx = ctx
ctx: SessionContext = st.session_state.ctx

if "services" not in st.session_state:
    services = {
        "goals": GoalService(store, ctx),
        "tasks": TaskService(store, ctx),
        "expenses": ExpenseService(store, ctx),
        "portfolio": PortfolioService(store, ctx),
    }

    def on_year_change(year):
        prefs.save(year)
        services["portfolio"].unsubscribe()
        st.session_state.pop("portfolio_subscribed", None)

    st.session_state.services = services
    st.session_state.bus = register_default_handlers(
        CommandBus(), services["goals"], services["tasks"], services["expenses"],
        services["portfolio"], ctx, on_year_change=on_year_change,
    )
services = st.session_state.services
bus: CommandBus = st.session_state.bus


def money(amount: float) -> str:
    return f"{settings.currency}{amount:,.2f}"


def run_command(command: Command, **payload):
    """Dispatch a command; input and write errors become a message on the next render."""
    try:
        return bus.dispatch(command, payload)
    except ValidationError as e:
        st.session_state.flash = ("error", e.message)
    except RemoteWriteError as e:
        st.session_state.flash = ("error", f"Could not save, please try again. ({e.message})")
    except RemoteReadError as e:
        st.session_state.flash = ("error", f"Could not reach the database. ({e.message})")
    return None


def show_flash():
    kind, message = st.session_state.pop("flash", (None, None))
    if kind == "error":
        st.error(message)
    elif kind == "success":
        st.success(message)


# --- sidebar: account and year

st.sidebar.markdown("### 👤 Account")
if not ctx.signed_in:
    with st.sidebar.form("sign_in"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        c1, c2 = st.columns(2)
        do_sign_in = c1.form_submit_button("Sign in")
        do_sign_up = c2.form_submit_button("Sign up")
    if do_sign_in or do_sign_up:
        try:
            action = sign_in if do_sign_in else sign_up
            account = action(settings.web_api_key, email.strip(), password)
            ctx.uid, ctx.email = account.uid, account.email
            logger.info("signed in as %s", account.email)
            st.rerun()
        except AuthError as e:
            st.sidebar.error(str(e))
    st.info("Sign in to see your dashboard.")
    st.stop()

st.sidebar.caption(ctx.email or ctx.uid)
if settings.backend == "firebase" and st.sidebar.button("Logout"):
    services["portfolio"].unsubscribe()
    ctx.sign_out()
    st.session_state.pop("portfolio_subscribed", None)
    st.rerun()

years = year_options()
if ctx.year not in years:
    years = sorted(set(years) | {ctx.year})
st.sidebar.selectbox(
    "Year",
    years,
    index=years.index(ctx.year),
    key="year_selector",
    on_change=lambda: run_command(Command.SELECT_YEAR, year=st.session_state.year_selector),
)

menu = st.sidebar.radio("Menu", ["🏠 Dashboard", "📊 Analytics", "🧾 Expenses", "💰 Portfolio"])
show_flash()

if menu == "🏠 Dashboard":
    st.title("🏠 Dashboard")

    rollover_key = f"rollover-{ctx.uid}-{ctx.year}"
    if rollover_key not in st.session_state:
        try:
            results = services["goals"].check_rollover()
            st.session_state[rollover_key] = True
            for r in results:
                if r.archived:
                    st.toast(f"Archived {r.archived} {r.goal_type} goals for {r.period}")
        except RemoteWriteError:
            st.error("Could not archive last period's goals. They will be archived on the next load.")
    services["goals"].load()

    goal_cols = st.columns(3)
    for col, goal_type in zip(goal_cols, GOAL_TYPES):
        with col:
            st.subheader(f"{goal_type.capitalize()} Goals")
            goals = ctx.goals.get(goal_type, ())
            if not goals:
                st.caption('No goals yet. Click "+ Add" to create one.')
            for index, goal in enumerate(goals):
                key = f"goal-{goal_type}-{index}-{goal.created_at}"
                c1, c2, c3 = st.columns([1, 8, 1])
                c1.checkbox(
                    "done", value=goal.completed, key=f"{key}-done", label_visibility="collapsed",
                    on_change=run_command, args=(Command.TOGGLE_GOAL,),
                    kwargs={"type": goal_type, "index": index},
                )
                c2.text_input(
                    "goal", value=goal.text, key=f"{key}-text", label_visibility="collapsed",
                    placeholder="Describe the goal…",
                    on_change=lambda t=goal_type, i=index, k=f"{key}-text": run_command(
                        Command.UPDATE_GOAL, type=t, index=i, text=st.session_state[k]),
                )
                c3.button(
                    "×", key=f"{key}-del",
                    on_click=run_command, args=(Command.DELETE_GOAL,),
                    kwargs={"type": goal_type, "index": index},
                )
            st.button("+ Add", key=f"add-{goal_type}", on_click=run_command,
                      args=(Command.ADD_GOAL,), kwargs={"type": goal_type})
            with st.expander("History"):
                groups = services["goals"].history(goal_type)
                if not groups:
                    st.caption("No history yet.")
                for group in groups:
                    st.markdown(f"**{group.period}** · {group.completed}/{len(group.goals)} completed")
                    for g in group.goals:
                        st.markdown(f"- ~~{g.text}~~" if g.completed else f"- {g.text}")

    st.divider()
    st.subheader("✅ Daily Tasks")
    month = st.selectbox("Month", list(range(1, 13)), index=ctx.month - 1,
                         format_func=lambda m: MONTH_NAMES[m - 1], key="dashboard_month")
    if month != ctx.month:
        run_command(Command.SELECT_MONTH, month=month)
    tasks = services["tasks"].load_month()
    n_days = days_in_month(ctx.year, ctx.month)

    if tasks:
        frame = task_frame(tasks, n_days)
        edited = st.data_editor(
            frame, hide_index=True, use_container_width=True,
            key=f"tasks-{year_month_key(ctx.year, ctx.month)}",
        )
        changed = False
        for i, task in enumerate(tasks):
            for d in range(1, n_days + 1):
                if bool(edited.at[i, str(d)]) != (d in task.days):
                    run_command(Command.TOGGLE_TASK_DAY, name=task.name, day=d)
                    changed = True
            new_name = edited.at[i, "Task"]
            if new_name != task.name:
                run_command(Command.RENAME_TASK, old=task.name, new=new_name)
                changed = True
        if changed:
            st.rerun()
        st.caption("Clear a task's name to delete it.")
    else:
        st.caption("No tasks yet. Add a task below.")

    with st.form("new_task", clear_on_submit=True):
        c1, c2 = st.columns([4, 1])
        new_task = c1.text_input("Add new task…", label_visibility="collapsed", placeholder="Add new task…")
        if c2.form_submit_button("Add"):
            run_command(Command.ADD_TASK, name=new_task)
            st.rerun()
    if st.button("Copy tasks from previous month"):
        copied = run_command(Command.COPY_PREVIOUS_TASKS)
        if copied is not None:
            st.session_state.flash = ("success", f"Copied {copied} task(s).")
        st.rerun()

elif menu == "📊 Analytics":
    st.title("📊 Analytics")
    month = st.selectbox("Month", list(range(1, 13)), index=ctx.month - 1,
                         format_func=lambda m: MONTH_NAMES[m - 1], key="analytics_month")
    if month != ctx.month:
        run_command(Command.SELECT_MONTH, month=month)
    tasks = services["tasks"].load_month()
    n_days = days_in_month(ctx.year, ctx.month)
    mapping = {t.name: t.days for t in tasks}
    report = CompletionReportService(DEFAULT_CALCULATORS).month_report(
        year_month_key(ctx.year, ctx.month), mapping, n_days)["result"]

    k1, k2, k3 = st.columns(3)
    k1.metric("Tasks", len(tasks))
    k2.metric("Month Average", f"{report['average']:.1f}%")
    k3.metric("Best Day", f"Day {report['best_day']}" if report["best_day"] else "-",
              f"{report['best_pct']:.0f}%" if report["best_day"] else None)

    st.subheader("Daily Completion")
    st.plotly_chart(daily_completion_figure(report["daily"]), use_container_width=True)

    year_data = asyncio.run(year_completion(services["tasks"], ctx.year))
    if year_data is not None:
        averages, by_date = year_data
        st.subheader("Monthly Average")
        tracked = [a for a in averages if a > 0]
        st.caption(f"Year average over tracked months: {np.mean(tracked) if tracked else 0:.1f}%")
        st.plotly_chart(monthly_average_figure(averages), use_container_width=True)

        st.subheader("Year at a Glance")
        grid = build_heatmap(by_date, ctx.year, date.today(), container_width=1100)
        st.plotly_chart(heatmap_figure(grid), use_container_width=True)

    st.subheader("Task-wise Completion")
    if report["per_task"]:
        st.plotly_chart(task_completion_figure(report["per_task"]), use_container_width=True)
    else:
        st.info("No tasks found for this month.")

elif menu == "🧾 Expenses":
    st.title("🧾 Expenses")
    expenses = services["expenses"].load()

    with st.form("add_expense", clear_on_submit=True):
        c1, c2, c3 = st.columns(3)
        name = c1.text_input("Name")
        amount = c2.text_input("Amount")
        when = c3.date_input("Date", value=date.today())
        c4, c5 = st.columns(2)
        place = c4.text_input("Place (optional)")
        description = c5.text_input("Description (optional)")
        if st.form_submit_button("Add Expense"):
            if run_command(Command.ADD_EXPENSE, name=name, amount=amount, date=when,
                           place=place, description=description) is not None:
                st.session_state.flash = ("success", "✅ Expense added!")
            st.rerun()

    summary = expense_summary(expenses)
    k1, k2, k3 = st.columns(3)
    k1.metric("Total Spend", money(summary["total"]))
    k2.metric("Avg per Day", money(summary["avg_per_day"]))
    k3.metric("Avg per Month", money(summary["avg_per_month"]))
    biggest = [f"{e.name} ({money(e.amount)})" for e in top_expenses(expenses, 3)]
    if biggest:
        st.caption("Biggest: " + ", ".join(biggest))

    month_label = f"{MONTH_NAMES[ctx.month - 1]} {ctx.year}"
    chart_type = st.radio("Chart", [f"Daily - {month_label}", f"Monthly - {ctx.year}"], horizontal=True)
    if not expenses:
        st.info("No expenses to display.")
    elif chart_type.startswith("Daily"):
        series = daily_expense_series(expenses, ctx.year, ctx.month)
        fig = expense_daily_figure(series, settings.currency, f"Daily spend - {month_label}")
        st.plotly_chart(fig, use_container_width=True)
    else:
        year_expenses = list(iter_expenses(expenses, by_year(ctx.year)))
        series = monthly_expense_series(year_expenses, ctx.year)
        st.plotly_chart(expense_monthly_figure(series, settings.currency), use_container_width=True)

    st.subheader("📋 Expense List")
    options = services["expenses"].month_options()
    c1, c2, c3 = st.columns(3)
    month_filter = c1.selectbox("Month", [o[0] for o in options],
                                format_func=lambda v: dict(options)[v], key="expense_month")
    search = c2.text_input("Search")
    date_range = c3.date_input("Date range", value=(), key="expense_range")
    shown = services["expenses"].filtered(month_filter)
    shown = list(iter_expenses(shown, by_text(search)))
    if len(date_range) == 2:
        shown = list(iter_expenses(shown, by_date_range(date_range[0].isoformat(), date_range[1].isoformat())))

    if not shown:
        st.info("No expenses found.")
    else:
        df = expenses_frame(shown)
        st.dataframe(
            df.drop(columns=["id"]).assign(Amount=df["Amount"].map(money)),
            hide_index=True, use_container_width=True,
        )
        st.download_button("⬇ Download CSV", df.drop(columns=["id"]).to_csv(index=False),
                           file_name=f"expenses_{ctx.year}.csv", mime="text/csv")

        labels = {e.id: f"{e.date} · {e.name} · {money(e.amount)}" for e in shown}
        selected = st.selectbox("Edit or delete", list(labels), format_func=labels.get, key="expense_pick")
        current = next(e for e in shown if e.id == selected)
        with st.form(f"edit-{selected}"):
            c1, c2, c3 = st.columns(3)
            e_name = c1.text_input("Name", value=current.name)
            e_amount = c2.text_input("Amount", value=f"{current.amount:g}")
            e_date = c3.date_input("Date", value=date.fromisoformat(current.date))
            c4, c5 = st.columns(2)
            e_place = c4.text_input("Place", value=current.place)
            e_desc = c5.text_input("Description", value=current.description)
            save_col, delete_col = st.columns(2)
            if save_col.form_submit_button("Save changes"):
                run_command(Command.EDIT_EXPENSE, id=selected, name=e_name, amount=e_amount,
                            date=e_date, place=e_place, description=e_desc)
                st.rerun()
            if delete_col.form_submit_button("Delete"):
                run_command(Command.DELETE_EXPENSE, id=selected)
                st.rerun()

elif menu == "💰 Portfolio":
    st.title("💰 Portfolio")
    if not st.session_state.get("portfolio_subscribed"):
        services["portfolio"].load()
        st.session_state.portfolio_subscribed = services["portfolio"].subscribe()

    @st.fragment(run_every="5s")
    def portfolio_view():
        # the subscription thread keeps ctx.portfolio current
        portfolio = ctx.portfolio or services["portfolio"].load()
        k1, k2, k3 = st.columns(3)
        k1.number_input(
            "Opening Balance", min_value=0.0, step=100.0, value=float(portfolio.opening_balance),
            key="opening_balance",
            on_change=lambda: run_command(Command.SET_OPENING_BALANCE, value=st.session_state.opening_balance),
        )
        k2.metric("Total Savings", money(portfolio.total_savings))
        k3.metric("Closing Balance", money(portfolio.closing_balance))

        frame = portfolio_frame(portfolio)
        edited = st.data_editor(
            frame, hide_index=True, use_container_width=True, key="portfolio_table",
            disabled=["Month", "totalExpense", "totalIncome", "savings"],
        )
        for i, month_key in enumerate(MONTH_KEYS):
            for field in PORTFOLIO_FIELDS:
                if float(edited.at[i, field]) != float(frame.at[i, field]):
                    run_command(Command.SET_PORTFOLIO_FIELD, month=month_key, field=field,
                                value=edited.at[i, field])

        totals = frame.iloc[-1]
        spend = {f: totals[f] for f in EXPENSE_FIELDS if totals[f] > 0}
        if spend:
            fig = px.pie(values=list(spend.values()), names=list(spend.keys()), title="Where the money went")
            st.plotly_chart(fig, use_container_width=True)

    portfolio_view()
