import functools
import logging
import time
from typing import Any, Callable, Dict, Mapping, Sequence

from tracker.aggregator import daily_completion_series, monthly_average, task_completion_table
from tracker.errors import MissingReference, RemoteReadError

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def owner_required(default: Any = None) -> Callable:
    """Turn a missing owner/year into a silent no-op returning ``default``."""

    def decorate(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except MissingReference:
                logger.debug("%s skipped: no owner or year", fn.__name__)
                return default() if callable(default) else default
        return wrapper

    return decorate


class StoreService:
    """Base for the per-collection services: a store plus the session that owns the caches."""

    def __init__(self, store, session):
        self.store = store
        self.session = session

    def read(self, path: str, default: Any = None) -> Any:
        """Read ``path``; an unreachable store yields ``default``."""
        try:
            return self.store.get(path)
        except RemoteReadError as e:
            logger.warning("could not read %s: %s", path, e.message)
            return default

    def fetch(self, view: str, path: str) -> tuple[bool, Any]:
        """Fetch ``path`` for ``view``; the flag is False when a newer fetch superseded this one
        or the store could not be read, and the session keeps its cached copy.
        """
        token = self.session.sequencer.issue(view)
        try:
            raw = self.store.get(path)
        except RemoteReadError as e:
            logger.warning("keeping cached %s: %s", view, e.message)
            return False, None
        if not self.session.sequencer.is_current(view, token):
            logger.debug("dropping stale %s response for %s", view, path)
            return False, raw
        return True, raw


class CompletionReportService:
    """Runs calculators over one month's tasks and keeps each intermediate output.

    calculators: functions taking (tasks, month_days, acc) -> dict (partial results),
    where acc holds everything earlier calculators produced.
    """

    def __init__(self, calculators: Sequence[Callable[..., Dict[str, Any]]]):
        self.calculators = calculators

    def month_report(self, year_month: str, tasks: Mapping, month_days: int) -> Dict[str, Any]:
        report = {"month": year_month, "steps": [], "result": {}}
        acc: Dict[str, Any] = {}
        for calc in self.calculators:
            out = calc(tasks, month_days, acc)
            report["steps"].append({"calculator": getattr(calc, "__name__", str(calc)), "output": out})
            if isinstance(out, dict):
                acc.update(out)
        report["result"] = acc
        return report


def daily_step(tasks, month_days, acc):
    return {"daily": daily_completion_series(tasks, month_days)}


def average_step(tasks, month_days, acc):
    return {"average": monthly_average(tasks, month_days)}


def per_task_step(tasks, month_days, acc):
    return {"per_task": task_completion_table(tasks, month_days)}


def best_day_step(tasks, month_days, acc):
    daily = acc.get("daily") or daily_completion_series(tasks, month_days)
    best = max(daily, default=0.0)
    if best <= 0:
        return {"best_day": None, "best_pct": 0.0}
    return {"best_day": daily.index(best) + 1, "best_pct": best}


DEFAULT_CALCULATORS = (daily_step, average_step, per_task_step, best_day_step)
