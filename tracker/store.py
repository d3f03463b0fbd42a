"""Document store access: the Firebase realtime database and an in-memory twin.

Paths are slash separated and relative to the database root. Writing ``None``
or an empty mapping deletes a node, and containers left empty by a delete
disappear, the way the realtime database behaves.
"""
import copy
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from tracker.errors import MissingReference, RemoteReadError, RemoteWriteError

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


def split_path(path: str) -> list[str]:
    return [p for p in str(path).split("/") if p]


@dataclass(frozen=True)
class UserYearPaths:
    uid: str
    year: int

    @property
    def root(self) -> str:
        return f"users/{self.uid}/years/{self.year}"

    @property
    def goals_root(self) -> str:
        return f"{self.root}/goals"

    def goals(self, goal_type: str) -> str:
        return f"{self.goals_root}/{goal_type}"

    def history(self, goal_type: str) -> str:
        return f"{self.goals_root}/history/{goal_type}"

    def marker(self, name: str) -> str:
        return f"{self.goals_root}/_metadata/{name}"

    @property
    def tasks_root(self) -> str:
        return f"{self.root}/tasks"

    def tasks(self, year_month: str) -> str:
        return f"{self.tasks_root}/{year_month}"

    def task(self, year_month: str, name: str) -> str:
        return f"{self.tasks(year_month)}/{name}"

    @property
    def expenses(self) -> str:
        return f"{self.root}/expenses"

    def expense(self, expense_id: str) -> str:
        return f"{self.expenses}/{expense_id}"

    @property
    def portfolio(self) -> str:
        return f"{self.root}/portfolio"

    def portfolio_month(self, month_key: str) -> str:
        return f"{self.portfolio}/months/{month_key}"

    @property
    def opening_balance(self) -> str:
        return f"{self.portfolio}/openingBalance"


def user_year_paths(uid: Optional[str], year: Optional[int]) -> UserYearPaths:
    if not uid or not year:
        raise MissingReference("no signed-in owner or selected year")
    return UserYearPaths(uid=uid, year=int(year))


class Subscription(ABC):

    @abstractmethod
    def close(self) -> None:
        pass


class DocumentStore(ABC):

    @abstractmethod
    def get(self, path: str) -> Any:
        pass

    @abstractmethod
    def set(self, path: str, value: Any) -> None:
        pass

    @abstractmethod
    def update(self, path: str, values: dict) -> None:
        """Write several children of ``path`` at once; ``None`` values delete."""

    def delete(self, path: str) -> None:
        self.set(path, None)

    @abstractmethod
    def transaction(self, path: str, fn: Callable[[Any], Any]) -> Any:
        """Atomically replace the value at ``path`` with ``fn(current)``."""

    @abstractmethod
    def listen(self, path: str, callback: Listener) -> Subscription:
        """Call ``callback`` with the full value at ``path`` now and after every change."""


# --- Firebase

def init_firebase(settings):
    import firebase_admin
    from firebase_admin import credentials

    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    if not settings.credentials_path:
        raise RuntimeError("FIREBASE_CREDENTIALS is not set; point it at a service account JSON file.")
    if not settings.database_url:
        raise RuntimeError("FIREBASE_DATABASE_URL is not set.")
    cred = credentials.Certificate(settings.credentials_path)
    return firebase_admin.initialize_app(cred, {"databaseURL": settings.database_url})


class _FirebaseSubscription(Subscription):

    def __init__(self, registration):
        self._registration = registration

    def close(self) -> None:
        if self._registration is not None:
            self._registration.close()
            self._registration = None


class FirebaseStore(DocumentStore):

    def __init__(self, app=None):
        from firebase_admin import db
        self._db = db
        self._app = app

    def _ref(self, path: str):
        return self._db.reference("/" + "/".join(split_path(path)), app=self._app)

    def _call(self, path: str, op: Callable[[], Any], error=RemoteWriteError) -> Any:
        from firebase_admin.exceptions import FirebaseError
        try:
            return op()
        except FirebaseError as e:
            kind = "write" if error is RemoteWriteError else "read"
            logger.error("%s failed at %s: %s", kind, path, e)
            raise error(str(e), path) from e

    def get(self, path: str) -> Any:
        return self._call(path, lambda: self._ref(path).get(), RemoteReadError)

    def set(self, path: str, value: Any) -> None:
        ref = self._ref(path)
        if value is None or value == {} or value == []:
            self._call(path, ref.delete)
        else:
            self._call(path, lambda: ref.set(value))

    def update(self, path: str, values: dict) -> None:
        self._call(path, lambda: self._ref(path).update(values))

    def transaction(self, path: str, fn: Callable[[Any], Any]) -> Any:
        return self._call(path, lambda: self._ref(path).transaction(fn))

    def listen(self, path: str, callback: Listener) -> Subscription:
        ref = self._ref(path)

        def on_event(event):
            # events carry deltas; hand listeners the whole node
            try:
                snapshot = self.get(path)
            except RemoteReadError:
                return
            callback(snapshot)

        return _FirebaseSubscription(self._call(path, lambda: ref.listen(on_event), RemoteReadError))


# --- in memory

def _prune(value: Any) -> Any:
    if isinstance(value, dict):
        pruned = {str(k): _prune(v) for k, v in value.items()}
        pruned = {k: v for k, v in pruned.items() if v is not None and v != {}}
        return pruned or None
    if isinstance(value, list):
        items = [_prune(v) for v in value]
        return items if any(v is not None for v in items) else None
    return value


class _MemorySubscription(Subscription):

    def __init__(self, store: "MemoryStore", key: int):
        self._store = store
        self._key = key

    def close(self) -> None:
        self._store._unlisten(self._key)


class MemoryStore(DocumentStore):
    """Process-local store with the realtime database's write semantics."""

    def __init__(self, tree: Optional[dict] = None):
        self._tree = _prune(copy.deepcopy(tree or {})) or {}
        self._lock = threading.RLock()
        self._listeners: dict[int, tuple[list[str], Listener]] = {}
        self._ids = itertools.count(1)

    def _node(self, parts: list[str]) -> Any:
        node = self._tree
        for p in parts:
            if isinstance(node, dict) and p in node:
                node = node[p]
            elif isinstance(node, list) and p.isdigit() and int(p) < len(node):
                node = node[int(p)]
            else:
                return None
        return node

    def _put(self, parts: list[str], value: Any) -> None:
        value = _prune(copy.deepcopy(value))
        if not parts:
            self._tree = value if isinstance(value, dict) else {}
            return
        trail = [self._tree]
        node = self._tree
        for p in parts[:-1]:
            child = node.get(p)
            if not isinstance(child, dict):
                if value is None:
                    return
                child = {str(i): v for i, v in enumerate(child)} if isinstance(child, list) else {}
                node[p] = child
            node = child
            trail.append(node)
        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = value
        # drop containers the delete left empty
        for depth in range(len(parts) - 1, 0, -1):
            if trail[depth]:
                break
            trail[depth - 1].pop(parts[depth - 1], None)

    def _notify(self, parts: list[str]) -> None:
        for lparts, callback in list(self._listeners.values()):
            n = min(len(lparts), len(parts))
            if lparts[:n] == parts[:n]:
                callback(copy.deepcopy(self._node(lparts)))

    def get(self, path: str) -> Any:
        with self._lock:
            return copy.deepcopy(self._node(split_path(path)))

    def set(self, path: str, value: Any) -> None:
        parts = split_path(path)
        with self._lock:
            self._put(parts, value)
            self._notify(parts)

    def update(self, path: str, values: dict) -> None:
        base = split_path(path)
        with self._lock:
            for key, value in values.items():
                self._put(base + split_path(key), value)
            self._notify(base)

    def transaction(self, path: str, fn: Callable[[Any], Any]) -> Any:
        parts = split_path(path)
        with self._lock:
            new_value = fn(copy.deepcopy(self._node(parts)))
            self._put(parts, new_value)
            self._notify(parts)
            return copy.deepcopy(self._node(parts))

    def listen(self, path: str, callback: Listener) -> Subscription:
        parts = split_path(path)
        with self._lock:
            key = next(self._ids)
            self._listeners[key] = (parts, callback)
            callback(copy.deepcopy(self._node(parts)))
        return _MemorySubscription(self, key)

    def _unlisten(self, key: int) -> None:
        with self._lock:
            self._listeners.pop(key, None)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


def create_store(settings) -> DocumentStore:
    if settings.backend == "firebase":
        app = init_firebase(settings)
        logger.info("using firebase realtime database at %s", settings.database_url)
        return FirebaseStore(app)

    tree = {}
    if settings.seed_path:
        from tracker.transforms import load_seed
        try:
            tree = load_seed(settings.seed_path)
        except FileNotFoundError:
            logger.warning("seed file %s not found, starting empty", settings.seed_path)
    logger.info("using in-memory store")
    return MemoryStore(tree)
