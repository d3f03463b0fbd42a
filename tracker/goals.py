"""Yearly, quarterly and monthly goal lists, their history, and period rollover.

Rollover runs on every dashboard load. Monthly and quarterly goals carry a
period marker (``_metadata/lastMonth`` and ``_metadata/lastQuarter``):

* marker unset      -> record the current period, archive nothing
* marker == current -> nothing to do
* marker != current -> append every active goal to history under the old
  period's label, clear the active list, advance the marker

The whole read-modify-write runs in one store transaction on the goals node,
so a failed write leaves goals, history and marker exactly as they were and
the rollover is retried on the next load.
"""
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from tracker.domain import GOAL_TYPES, Goal
from tracker.errors import RemoteWriteError, ValidationError
from tracker.functional import safe_goal
from tracker.memo import quarter_of
from tracker.services import StoreService, now_ms, owner_required
from tracker.transforms import (
    add_goal,
    archive_record,
    archived_from_record,
    goal_to_record,
    goals_from_snapshot,
    normalize_list,
    remove_goal,
    toggle_goal,
    update_goal_text,
)

logger = logging.getLogger(__name__)


class RolloverState(Enum):
    CURRENT = "current"
    CHECKING = "checking"
    ARCHIVED = "archived"


@dataclass(frozen=True)
class RolloverResult:
    goal_type: str
    state: RolloverState
    marker: int
    period: Optional[str] = None
    archived: int = 0


@dataclass(frozen=True)
class HistoryGroup:
    period: str
    goals: tuple
    completed: int


def month_label(month: int, year: int) -> str:
    return f"Month {month}/{year}"


def quarter_label(quarter: int, year: int) -> str:
    return f"Q{quarter} {year}"


# goal type -> (marker name, period of a date, label)
ROLLOVER_RULES = {
    "monthly": ("lastMonth", lambda d: d.month, month_label),
    "quarterly": ("lastQuarter", lambda d: quarter_of(d.month), quarter_label),
}


def apply_rollover(tree: Optional[dict], goal_type: str, current: int, year: int,
                   archived_at: int) -> tuple[dict, RolloverResult]:
    """Pure rollover step over the raw ``goals`` node."""
    marker_name, _, label = ROLLOVER_RULES[goal_type]
    tree = dict(tree or {})
    meta = dict(tree.get("_metadata") or {})
    last = meta.get(marker_name)

    if last is None:
        meta[marker_name] = current
        tree["_metadata"] = meta
        return tree, RolloverResult(goal_type, RolloverState.CURRENT, current)
    if int(last) == current:
        return tree, RolloverResult(goal_type, RolloverState.CURRENT, current)

    period = label(int(last), year)
    active = goals_from_snapshot(tree.get(goal_type))
    history = dict(tree.get("history") or {})
    archived = normalize_list(history.get(goal_type))
    archived.extend(archive_record(g, period, archived_at) for g in active)
    history[goal_type] = archived
    tree["history"] = history
    tree[goal_type] = None
    meta[marker_name] = current
    tree["_metadata"] = meta
    return tree, RolloverResult(goal_type, RolloverState.ARCHIVED, current, period, len(active))


def group_history(records) -> list[HistoryGroup]:
    """Archived goals grouped by period, most recently archived period first."""
    groups: dict[str, list] = {}
    latest: dict[str, int] = {}
    for rec in normalize_list(records):
        if not isinstance(rec, dict):
            continue
        g = archived_from_record(rec)
        groups.setdefault(g.period, []).append(g)
        latest[g.period] = max(latest.get(g.period, 0), g.archived_at)
    order = sorted(groups, key=lambda p: (latest[p], p), reverse=True)
    return [
        HistoryGroup(period=p, goals=tuple(groups[p]), completed=sum(1 for g in groups[p] if g.completed))
        for p in order
    ]


def _check_type(goal_type: str) -> None:
    if goal_type not in GOAL_TYPES:
        raise ValidationError(f"Unknown goal type: {goal_type}", field="type")


class GoalService(StoreService):

    def __init__(self, store, session):
        super().__init__(store, session)
        self.rollover_state = {t: RolloverState.CURRENT for t in ROLLOVER_RULES}

    @owner_required(default=dict)
    def load(self) -> dict:
        paths = self.session.paths()
        for goal_type in GOAL_TYPES:
            fresh, raw = self.fetch(f"goals:{goal_type}", paths.goals(goal_type))
            if fresh:
                self.session.goals[goal_type] = goals_from_snapshot(raw)
        return dict(self.session.goals)

    def _save(self, goal_type: str, goals: tuple) -> None:
        paths = self.session.paths()
        self.store.set(paths.goals(goal_type), [goal_to_record(g) for g in goals])
        self.session.goals[goal_type] = goals
        logger.info("saved %d %s goals", len(goals), goal_type)

    @owner_required()
    def add_goal(self, goal_type: str, text: str = "") -> int:
        _check_type(goal_type)
        goals = add_goal(self.session.goals.get(goal_type, ()), Goal(text=text.strip(), created_at=now_ms()))
        self._save(goal_type, goals)
        return len(goals) - 1

    @owner_required()
    def update_goal(self, goal_type: str, index: int, text: str) -> None:
        _check_type(goal_type)
        goals = self.session.goals.get(goal_type, ())
        if safe_goal(goals, index).is_none():
            return
        self._save(goal_type, update_goal_text(goals, index, text))

    @owner_required()
    def toggle_goal(self, goal_type: str, index: int) -> None:
        _check_type(goal_type)
        goals = self.session.goals.get(goal_type, ())
        if safe_goal(goals, index).is_none():
            return
        self._save(goal_type, toggle_goal(goals, index))

    @owner_required()
    def delete_goal(self, goal_type: str, index: int) -> None:
        _check_type(goal_type)
        goals = self.session.goals.get(goal_type, ())
        if safe_goal(goals, index).is_none():
            return
        self._save(goal_type, remove_goal(goals, index))

    @owner_required(default=list)
    def history(self, goal_type: str) -> list[HistoryGroup]:
        _check_type(goal_type)
        return group_history(self.read(self.session.paths().history(goal_type)))

    @owner_required(default=list)
    def check_rollover(self, today: Optional[date] = None) -> list[RolloverResult]:
        today = today or date.today()
        paths = self.session.paths()
        results = []
        for goal_type, (_, period_of, _) in ROLLOVER_RULES.items():
            self.rollover_state[goal_type] = RolloverState.CHECKING
            outcome = {}

            def step(tree, goal_type=goal_type, current=period_of(today)):
                new_tree, outcome["result"] = apply_rollover(tree, goal_type, current, self.session.year, now_ms())
                return new_tree

            try:
                self.store.transaction(paths.goals_root, step)
            except RemoteWriteError:
                # marker not advanced; the next load retries
                self.rollover_state[goal_type] = RolloverState.CURRENT
                logger.error("%s goal rollover failed, will retry on next load", goal_type)
                raise

            result = outcome["result"]
            self.rollover_state[goal_type] = result.state
            if result.state is RolloverState.ARCHIVED:
                self.session.goals[goal_type] = ()
                logger.info("archived %d %s goals under %s", result.archived, goal_type, result.period)
            results.append(result)
        return results
