import logging
from typing import Optional

from tracker.domain import Task
from tracker.errors import ValidationError
from tracker.functional import safe_task, unwrap, validate_task_name
from tracker.memo import days_in_month, previous_month, year_month_key
from tracker.services import StoreService, owner_required
from tracker.transforms import day_map_record, rename_task, tasks_from_snapshot, tasks_to_mapping, toggle_task_day

logger = logging.getLogger(__name__)

# stored for a task with no completed day, since the database drops empty nodes
EMPTY_TASK = True


def task_record(days) -> object:
    return day_map_record(days) if days else EMPTY_TASK


class TaskService(StoreService):

    def _month_key(self) -> str:
        return year_month_key(self.session.year, self.session.month)

    @owner_required(default=tuple)
    def load_month(self) -> tuple:
        fresh, raw = self.fetch("tasks", self.session.paths().tasks(self._month_key()))
        if fresh:
            self.session.tasks = tasks_from_snapshot(raw)
        return self.session.tasks

    @owner_required(default=dict)
    def month_mapping(self, year: int, month: int) -> dict:
        raw = self.read(self.session.paths(year).tasks(year_month_key(year, month)))
        return tasks_to_mapping(tasks_from_snapshot(raw))

    @owner_required()
    def add_task(self, name: str) -> str:
        clean = unwrap(validate_task_name(name, (t.name for t in self.session.tasks)))
        self.store.set(self.session.paths().task(self._month_key(), clean), EMPTY_TASK)
        self.session.tasks = self.session.tasks + (Task(name=clean),)
        logger.info("added task %r to %s", clean, self._month_key())
        return clean

    @owner_required()
    def rename_task(self, old: str, new: Optional[str]) -> None:
        current = safe_task(self.session.tasks, old)
        if current.is_none():
            return
        clean = (new or "").strip()
        if not clean:
            self.delete_task(old)
            return
        if clean == old:
            return
        others = (t.name for t in self.session.tasks if t.name != old)
        clean = unwrap(validate_task_name(clean, others))

        days = current.map(lambda t: t.days).get_or_else(frozenset())
        # one multi-path write moves the day map
        self.store.update(self.session.paths().tasks(self._month_key()), {old: None, clean: task_record(days)})
        self.session.tasks = rename_task(self.session.tasks, old, clean)
        logger.info("renamed task %r to %r", old, clean)

    @owner_required()
    def delete_task(self, name: str) -> None:
        if safe_task(self.session.tasks, name).is_none():
            return
        self.store.delete(self.session.paths().task(self._month_key(), name))
        self.session.tasks = tuple(t for t in self.session.tasks if t.name != name)
        logger.info("deleted task %r", name)

    @owner_required()
    def toggle_day(self, name: str, day: int) -> bool:
        """Flip one day and return whether it is now completed."""
        task = safe_task(self.session.tasks, name).get_or_else(None)
        if task is None:
            return False
        day = int(day)
        if not 1 <= day <= days_in_month(self.session.year, self.session.month):
            raise ValidationError(f"Day {day} is outside the month", field="day")

        task_path = self.session.paths().task(self._month_key(), name)
        if day in task.days and task.days == {day}:
            self.store.set(task_path, EMPTY_TASK)
        elif day in task.days:
            self.store.delete(f"{task_path}/{day}")
        else:
            self.store.set(f"{task_path}/{day}", True)
        self.session.tasks = toggle_task_day(self.session.tasks, name, day)
        return day not in task.days

    @owner_required(default=0)
    def copy_from_previous_month(self) -> int:
        """Copy task names (not completions) from the month before; existing tasks stay."""
        prev_year, prev_month = previous_month(self.session.year, self.session.month)
        raw = self.store.get(self.session.paths(prev_year).tasks(year_month_key(prev_year, prev_month)))
        names = [t.name for t in tasks_from_snapshot(raw)]
        if not names:
            raise ValidationError("No tasks found in previous month")

        existing = {t.name for t in self.session.tasks}
        missing = [n for n in names if n not in existing]
        if missing:
            self.store.update(self.session.paths().tasks(self._month_key()), {n: EMPTY_TASK for n in missing})
            self.session.tasks = self.session.tasks + tuple(Task(name=n) for n in missing)
        logger.info("copied %d tasks from %s", len(missing), year_month_key(prev_year, prev_month))
        return len(missing)
