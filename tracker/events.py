from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple

__all__ = ['Command', 'CommandRecord', 'CommandBus', 'register_default_handlers']


class Command(Enum):
    ADD_GOAL = "add_goal"
    UPDATE_GOAL = "update_goal"
    TOGGLE_GOAL = "toggle_goal"
    DELETE_GOAL = "delete_goal"
    ADD_TASK = "add_task"
    RENAME_TASK = "rename_task"
    DELETE_TASK = "delete_task"
    TOGGLE_TASK_DAY = "toggle_task_day"
    COPY_PREVIOUS_TASKS = "copy_previous_tasks"
    ADD_EXPENSE = "add_expense"
    EDIT_EXPENSE = "edit_expense"
    DELETE_EXPENSE = "delete_expense"
    SET_PORTFOLIO_FIELD = "set_portfolio_field"
    SET_OPENING_BALANCE = "set_opening_balance"
    SELECT_YEAR = "select_year"
    SELECT_MONTH = "select_month"


class CommandRecord(NamedTuple):
    command: Command
    ts: str
    payload: dict


Handler = Callable[[dict], Any]


class CommandBus:
    """One handler per command; dispatch returns whatever the handler returns."""

    def __init__(self):
        self._handlers: Dict[Command, Handler] = {}
        self.history: List[CommandRecord] = []

    def register(self, command: Command, handler: Handler) -> None:
        self._handlers[command] = handler

    def dispatch(self, command: Command, payload: dict = None) -> Any:
        if command not in self._handlers:
            raise KeyError(f"no handler registered for {command.name}")
        payload = payload or {}
        self.history.append(CommandRecord(command=command, ts=datetime.now().isoformat(), payload=dict(payload)))
        return self._handlers[command](payload)


def register_default_handlers(bus: CommandBus, goals, tasks, expenses, portfolio, session, on_year_change=None) -> CommandBus:
    """Bind every command to the matching service call."""

    def select_year(p):
        session.select_year(p["year"])
        if on_year_change is not None:
            on_year_change(session.year)
        return session.year

    def select_month(p):
        session.select_month(p["month"])
        return tasks.load_month()

    table = {
        Command.ADD_GOAL: lambda p: goals.add_goal(p["type"], p.get("text", "")),
        Command.UPDATE_GOAL: lambda p: goals.update_goal(p["type"], p["index"], p["text"]),
        Command.TOGGLE_GOAL: lambda p: goals.toggle_goal(p["type"], p["index"]),
        Command.DELETE_GOAL: lambda p: goals.delete_goal(p["type"], p["index"]),
        Command.ADD_TASK: lambda p: tasks.add_task(p["name"]),
        Command.RENAME_TASK: lambda p: tasks.rename_task(p["old"], p["new"]),
        Command.DELETE_TASK: lambda p: tasks.delete_task(p["name"]),
        Command.TOGGLE_TASK_DAY: lambda p: tasks.toggle_day(p["name"], p["day"]),
        Command.COPY_PREVIOUS_TASKS: lambda p: tasks.copy_from_previous_month(),
        Command.ADD_EXPENSE: lambda p: expenses.add_expense(
            p["name"], p["amount"], p["date"], p.get("place", ""), p.get("description", "")),
        Command.EDIT_EXPENSE: lambda p: expenses.edit_expense(
            p["id"], p["name"], p["amount"], p["date"], p.get("place", ""), p.get("description", "")),
        Command.DELETE_EXPENSE: lambda p: expenses.delete_expense(p["id"]),
        Command.SET_PORTFOLIO_FIELD: lambda p: portfolio.set_month_field(p["month"], p["field"], p["value"]),
        Command.SET_OPENING_BALANCE: lambda p: portfolio.set_opening_balance(p["value"]),
        Command.SELECT_YEAR: select_year,
        Command.SELECT_MONTH: select_month,
    }
    for command, handler in table.items():
        bus.register(command, handler)
    return bus
