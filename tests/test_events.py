import pytest

from tracker.errors import ValidationError
from tracker.events import Command, CommandBus, register_default_handlers
from tracker.expenses import ExpenseService
from tracker.goals import GoalService
from tracker.portfolio import PortfolioService
from tracker.session import SessionContext
from tracker.store import MemoryStore
from tracker.tasks import TaskService


def make_bus(on_year_change=None):
    store = MemoryStore()
    session = SessionContext(uid="u1", year=2025, month=3)
    bus = register_default_handlers(
        CommandBus(),
        GoalService(store, session),
        TaskService(store, session),
        ExpenseService(store, session),
        PortfolioService(store, session),
        session,
        on_year_change=on_year_change,
    )
    return store, session, bus


def test_every_command_has_a_handler():
    _, _, bus = make_bus()
    for command in Command:
        assert command in bus._handlers


def test_dispatch_records_history():
    _, _, bus = make_bus()
    bus.dispatch(Command.ADD_GOAL, {"type": "yearly", "text": "Save more"})
    assert len(bus.history) == 1
    assert bus.history[0].command is Command.ADD_GOAL
    assert bus.history[0].payload == {"type": "yearly", "text": "Save more"}


def test_unregistered_command_raises():
    bus = CommandBus()
    with pytest.raises(KeyError):
        bus.dispatch(Command.ADD_TASK, {"name": "x"})


def test_task_commands_flow_to_store():
    store, session, bus = make_bus()
    bus.dispatch(Command.ADD_TASK, {"name": "Walk"})
    assert bus.dispatch(Command.TOGGLE_TASK_DAY, {"name": "Walk", "day": 4}) is True
    bus.dispatch(Command.RENAME_TASK, {"old": "Walk", "new": "Long walk"})
    assert store.get("users/u1/years/2025/tasks/2025-03") == {"Long walk": {"4": True}}
    bus.dispatch(Command.DELETE_TASK, {"name": "Long walk"})
    assert session.tasks == ()


def test_validation_errors_propagate_to_caller():
    _, _, bus = make_bus()
    with pytest.raises(ValidationError):
        bus.dispatch(Command.ADD_EXPENSE, {"name": "", "amount": 5, "date": "2025-01-01"})


def test_expense_and_portfolio_commands():
    store, session, bus = make_bus()
    e = bus.dispatch(Command.ADD_EXPENSE, {"name": "Tea", "amount": "2", "date": "2025-03-04"})
    bus.dispatch(Command.EDIT_EXPENSE, {"id": e.id, "name": "Green tea", "amount": 3, "date": "2025-03-04"})
    assert session.expenses[0].name == "Green tea"
    bus.dispatch(Command.DELETE_EXPENSE, {"id": e.id})
    assert session.expenses == ()

    bus.dispatch(Command.SET_PORTFOLIO_FIELD, {"month": "mar", "field": "rent", "value": 700})
    bus.dispatch(Command.SET_OPENING_BALANCE, {"value": 1000})
    assert store.get("users/u1/years/2025/portfolio") == {
        "openingBalance": 1000.0,
        "months": {"mar": {
            "personal": 0.0, "family": 0.0, "rent": 700.0, "loan": 0.0, "misc": 0.0,
            "mainIncome": 0.0, "sideIncome": 0.0,
        }},
    }


def test_select_year_and_month():
    changes = []
    store, session, bus = make_bus(on_year_change=changes.append)
    store.set("users/u1/years/2025/tasks/2025-05", {"Swim": {"1": True}})

    assert bus.dispatch(Command.SELECT_YEAR, {"year": 2026}) == 2026
    assert changes == [2026]
    assert session.year == 2026

    bus.dispatch(Command.SELECT_YEAR, {"year": 2025})
    tasks = bus.dispatch(Command.SELECT_MONTH, {"month": 5})
    assert [t.name for t in tasks] == ["Swim"]


def test_goal_commands():
    _, session, bus = make_bus()
    bus.dispatch(Command.ADD_GOAL, {"type": "monthly"})
    bus.dispatch(Command.UPDATE_GOAL, {"type": "monthly", "index": 0, "text": "Stretch"})
    bus.dispatch(Command.TOGGLE_GOAL, {"type": "monthly", "index": 0})
    assert session.goals["monthly"][0].text == "Stretch"
    assert session.goals["monthly"][0].completed is True
    bus.dispatch(Command.DELETE_GOAL, {"type": "monthly", "index": 0})
    assert session.goals["monthly"] == ()
