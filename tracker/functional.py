import math
import re
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Callable, Generic, Iterable, TypeVar

from tracker.domain import Goal, Task
from tracker.errors import ValidationError

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')

# characters the realtime database refuses in a key
FORBIDDEN_KEY_CHARS = ".#$[]/"
ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


class Maybe(Generic[T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_some(self) -> bool:
        pass

    def is_none(self) -> bool:
        return not self.is_some()


class Some(Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Some(f(self._value))

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_some(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Some({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Maybe[T]):

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Nothing()

    def get_or_else(self, default: T) -> T:
        return default

    def is_some(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        pass

    @abstractmethod
    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_right(self) -> bool:
        pass

    def is_left(self) -> bool:
        return not self.is_right()

    @abstractmethod
    def get_error(self) -> E:
        pass


class Right(Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return Right(f(self._value))

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return f(self._value)

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_right(self) -> bool:
        return True

    def get_error(self) -> E:
        raise ValueError("Right carries no error")

    def __repr__(self) -> str:
        return f"Right({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return self

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return self

    def get_or_else(self, default: T) -> T:
        return default

    def is_right(self) -> bool:
        return False

    def get_error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Left({self._error!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error


def unwrap(result: Either[dict, T]) -> T:
    """Return the Right value or raise the Left as a ValidationError."""
    if result.is_left():
        err = result.get_error()
        raise ValidationError(err["message"], field=err.get("field"))
    return result.get_or_else(None)


def safe_task(tasks: Iterable[Task], name: str) -> Maybe[Task]:
    for t in tasks:
        if t.name == name:
            return Some(t)
    return Nothing()


def safe_goal(goals: tuple[Goal, ...], index: int) -> Maybe[Goal]:
    if 0 <= index < len(goals):
        return Some(goals[index])
    return Nothing()


def validate_task_name(name: Any, existing: Iterable[str]) -> Either[dict, str]:
    clean = (name or "").strip() if isinstance(name, str) else ""
    if not clean:
        return Left({"error": "empty_name", "field": "name", "message": "Task name is required"})
    bad = sorted({c for c in clean if c in FORBIDDEN_KEY_CHARS})
    if bad:
        return Left({
            "error": "invalid_name",
            "field": "name",
            "message": f"Task name cannot contain {' '.join(bad)}",
        })
    if clean in set(existing):
        return Left({"error": "duplicate_name", "field": "name", "message": "Task already exists"})
    return Right(clean)


def _check_name(fields: dict) -> Either[dict, dict]:
    name = fields["name"]
    clean = name.strip() if isinstance(name, str) else ""
    if not clean:
        return Left({"error": "missing_name", "field": "name", "message": "Expense name is required"})
    return Right({**fields, "name": clean})


def _check_amount(fields: dict) -> Either[dict, dict]:
    amount = fields["amount"]
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return Left({"error": "invalid_amount", "field": "amount", "message": f"Amount must be a number, got {amount!r}"})
    if not math.isfinite(value) or value <= 0:
        return Left({"error": "invalid_amount", "field": "amount", "message": "Amount must be greater than zero"})
    return Right({**fields, "amount": value})


def _check_date(fields: dict) -> Either[dict, dict]:
    raw = fields["date"]
    if isinstance(raw, date):
        return Right({**fields, "date": raw.isoformat()})
    iso = str(raw or "").strip()
    # fromisoformat also takes compact and week forms; only YYYY-MM-DD is stored
    if not ISO_DATE.fullmatch(iso):
        return Left({"error": "invalid_date", "field": "date", "message": f"Date must be YYYY-MM-DD, got {iso!r}"})
    try:
        parsed = date.fromisoformat(iso)
    except ValueError:
        return Left({"error": "invalid_date", "field": "date", "message": f"{iso} is not a calendar date"})
    return Right({**fields, "date": parsed.isoformat()})


def validate_expense_input(name: Any, amount: Any, expense_date: Any) -> Either[dict, dict]:
    return (
        Right({"name": name, "amount": amount, "date": expense_date})
        .bind(_check_name)
        .bind(_check_amount)
        .bind(_check_date)
        .map(lambda fields: {k: fields[k] for k in ("name", "amount", "date")})
    )
