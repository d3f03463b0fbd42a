import json
import math
from typing import Any, Iterable, Optional, Tuple

from tracker.domain import (
    ArchivedGoal,
    Expense,
    Goal,
    MONTH_KEYS,
    PORTFOLIO_FIELDS,
    Portfolio,
    PortfolioMonth,
    Task,
)
from tracker.errors import ValidationError


def load_seed(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


# --- snapshot normalization
# The realtime database turns objects with dense integer keys into arrays
# and may hand arrays back as objects; readers accept both shapes.

def normalize_list(raw: Any) -> list:
    if raw is None:
        return []
    if isinstance(raw, list):
        return [item for item in raw if item is not None]
    if isinstance(raw, dict):
        def order(key):
            try:
                return (0, int(key))
            except (TypeError, ValueError):
                return (1, str(key))
        return [raw[k] for k in sorted(raw, key=order) if raw[k] is not None]
    return []


def normalize_day_map(raw: Any) -> frozenset:
    if isinstance(raw, list):
        items = enumerate(raw)
    elif isinstance(raw, dict):
        items = raw.items()
    else:
        return frozenset()

    days = set()
    for key, value in items:
        if value is not True:
            continue
        try:
            day = int(key)
        except (TypeError, ValueError):
            continue
        if 1 <= day <= 31:
            days.add(day)
    return frozenset(days)


def day_map_record(days: Iterable[int]) -> dict:
    return {str(d): True for d in sorted(days)}


def tasks_from_snapshot(raw: Any) -> Tuple[Task, ...]:
    if not isinstance(raw, dict):
        return ()
    return tuple(Task(name=name, days=normalize_day_map(days)) for name, days in raw.items())


def tasks_to_mapping(tasks: Iterable[Task]) -> dict:
    return {t.name: t.days for t in tasks}


# --- goals

def goal_from_record(rec: dict) -> Goal:
    return Goal(
        text=str(rec.get("text", "")),
        completed=bool(rec.get("completed", False)),
        created_at=int(rec.get("createdAt", 0) or 0),
    )


def goal_to_record(g: Goal) -> dict:
    return {"text": g.text, "completed": g.completed, "createdAt": g.created_at}


def goals_from_snapshot(raw: Any) -> Tuple[Goal, ...]:
    return tuple(goal_from_record(r) for r in normalize_list(raw) if isinstance(r, dict))


def archived_from_record(rec: dict) -> ArchivedGoal:
    return ArchivedGoal(
        text=str(rec.get("text", "")),
        completed=bool(rec.get("completed", False)),
        created_at=int(rec.get("createdAt", 0) or 0),
        period=rec.get("period") or "Unknown",
        archived_at=int(rec.get("archivedAt", 0) or 0),
    )


def archive_record(g: Goal, period: str, archived_at: int) -> dict:
    rec = goal_to_record(g)
    rec["period"] = period
    rec["archivedAt"] = archived_at
    return rec


def add_goal(goals: Tuple[Goal, ...], g: Goal) -> Tuple[Goal, ...]:
    return goals + (g,)


def update_goal_text(goals: Tuple[Goal, ...], index: int, text: str) -> Tuple[Goal, ...]:
    """Replace the text of one goal; an edit that leaves it empty deletes it."""
    clean = text.strip()
    if not clean:
        return remove_goal(goals, index)
    return tuple(
        Goal(text=clean, completed=g.completed, created_at=g.created_at) if i == index else g
        for i, g in enumerate(goals)
    )


def toggle_goal(goals: Tuple[Goal, ...], index: int) -> Tuple[Goal, ...]:
    return tuple(
        Goal(text=g.text, completed=not g.completed, created_at=g.created_at) if i == index else g
        for i, g in enumerate(goals)
    )


def remove_goal(goals: Tuple[Goal, ...], index: int) -> Tuple[Goal, ...]:
    return tuple(g for i, g in enumerate(goals) if i != index)


# --- tasks

def rename_task(tasks: Tuple[Task, ...], old: str, new: str) -> Tuple[Task, ...]:
    if old == new:
        return tasks
    if any(t.name == new for t in tasks):
        raise ValidationError(f"Task name already exists: {new}", field="name")
    return tuple(Task(name=new, days=t.days) if t.name == old else t for t in tasks)


def toggle_task_day(tasks: Tuple[Task, ...], name: str, day: int) -> Tuple[Task, ...]:
    def flip(t: Task) -> Task:
        days = t.days - {day} if day in t.days else t.days | {day}
        return Task(name=t.name, days=frozenset(days))

    return tuple(flip(t) if t.name == name else t for t in tasks)


# --- expenses

def expense_from_record(expense_id: str, rec: dict) -> Expense:
    updated = rec.get("updatedAt")
    return Expense(
        id=str(expense_id),
        name=str(rec.get("name", "")),
        amount=float(rec.get("amount", 0) or 0),
        date=str(rec.get("date", "")),
        created_at=int(rec.get("createdAt", 0) or 0),
        place=rec.get("place") or "",
        description=rec.get("description") or "",
        updated_at=int(updated) if updated is not None else None,
    )


def expense_to_record(e: Expense) -> dict:
    rec = {
        "name": e.name,
        "amount": e.amount,
        "date": e.date,
        "place": e.place,
        "description": e.description,
        "createdAt": e.created_at,
    }
    if e.updated_at is not None:
        rec["updatedAt"] = e.updated_at
    return rec


def expenses_from_snapshot(raw: Any) -> Tuple[Expense, ...]:
    if not isinstance(raw, dict):
        return ()
    return tuple(expense_from_record(k, v) for k, v in raw.items() if isinstance(v, dict))


def sort_expenses(expenses: Iterable[Expense]) -> Tuple[Expense, ...]:
    """Newest date first, ties broken by newest createdAt, then id for a total order."""
    return tuple(sorted(expenses, key=lambda e: (e.date, e.created_at, e.id), reverse=True))


# --- portfolio

def sanitize_amount(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0.0
    return number


def month_from_record(rec: Optional[dict]) -> PortfolioMonth:
    rec = rec if isinstance(rec, dict) else {}
    return PortfolioMonth(**{f: sanitize_amount(rec.get(f, 0) or 0) for f in PORTFOLIO_FIELDS})


def month_to_record(m: PortfolioMonth) -> dict:
    return {f: getattr(m, f) for f in PORTFOLIO_FIELDS}


def portfolio_from_snapshot(raw: Any) -> Portfolio:
    raw = raw if isinstance(raw, dict) else {}
    months_raw = raw.get("months") if isinstance(raw.get("months"), dict) else {}
    months = {k: month_from_record(months_raw.get(k)) for k in MONTH_KEYS}
    return Portfolio(opening_balance=sanitize_amount(raw.get("openingBalance", 0) or 0), months=months)


def set_month_field(m: PortfolioMonth, field_name: str, value: Any) -> PortfolioMonth:
    if field_name not in PORTFOLIO_FIELDS:
        raise ValidationError(f"Unknown portfolio field: {field_name}", field=field_name)
    rec = month_to_record(m)
    rec[field_name] = sanitize_amount(value)
    return PortfolioMonth(**rec)
