import itertools
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from tracker.store import UserYearPaths, user_year_paths


class RequestSequencer:
    """Hands out increasing tokens per view so stale responses can be dropped.

    ``issue("tasks")`` before a fetch, then ``is_current("tasks", token)``
    when it resolves: only the response to the newest request applies.
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest: dict[str, int] = {}
        self._lock = threading.Lock()

    def issue(self, key: str) -> int:
        with self._lock:
            token = next(self._counter)
            self._latest[key] = token
            return token

    def is_current(self, key: str, token: int) -> bool:
        with self._lock:
            return self._latest.get(key) == token


@dataclass
class SessionContext:
    """State owned by one signed-in page session."""

    uid: Optional[str] = None
    email: Optional[str] = None
    year: int = field(default_factory=lambda: date.today().year)
    month: int = field(default_factory=lambda: date.today().month)
    goals: dict = field(default_factory=lambda: {"yearly": (), "quarterly": (), "monthly": ()})
    tasks: tuple = ()
    expenses: tuple = ()
    portfolio: Any = None
    sequencer: RequestSequencer = field(default_factory=RequestSequencer)

    @property
    def signed_in(self) -> bool:
        return bool(self.uid)

    def paths(self, year: Optional[int] = None) -> UserYearPaths:
        return user_year_paths(self.uid, year or self.year)

    def select_year(self, year: int) -> None:
        # cached collections belong to the previous year
        self.year = int(year)
        self.goals = {"yearly": (), "quarterly": (), "monthly": ()}
        self.tasks = ()
        self.expenses = ()
        self.portfolio = None

    def select_month(self, month: int) -> None:
        if not 1 <= int(month) <= 12:
            raise ValueError(f"month out of range: {month}")
        self.month = int(month)
        self.tasks = ()

    def sign_out(self) -> None:
        self.uid = None
        self.email = None
        self.select_year(self.year)
