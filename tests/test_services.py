from tracker.domain import Portfolio
from tracker.errors import MissingReference, RemoteReadError
from tracker.expenses import ExpenseService
from tracker.goals import GoalService
from tracker.portfolio import PortfolioService
from tracker.services import DEFAULT_CALCULATORS, CompletionReportService, owner_required
from tracker.session import SessionContext
from tracker.store import MemoryStore
from tracker.tasks import TaskService


def test_month_report_keeps_each_step():
    tasks = {"a": {1, 2}, "b": {2}}
    report = CompletionReportService(DEFAULT_CALCULATORS).month_report("2025-02", tasks, 28)

    assert report["month"] == "2025-02"
    assert [s["calculator"] for s in report["steps"]] == [
        "daily_step", "average_step", "per_task_step", "best_day_step",
    ]
    result = report["result"]
    assert result["daily"][1] == 100.0
    assert result["best_day"] == 2
    assert result["best_pct"] == 100.0
    assert result["per_task"]["a"] == 100.0 * 2 / 28


def test_month_report_without_completions_has_no_best_day():
    result = CompletionReportService(DEFAULT_CALCULATORS).month_report("2025-02", {"a": set()}, 28)["result"]
    assert result["best_day"] is None
    assert result["average"] == 0.0


def test_custom_calculators_see_earlier_results():
    def first(tasks, month_days, acc):
        return {"n": len(tasks)}

    def second(tasks, month_days, acc):
        return {"double": acc["n"] * 2}

    report = CompletionReportService([first, second]).month_report("2025-01", {"x": set()}, 31)
    assert report["result"] == {"n": 1, "double": 2}


def test_owner_required_returns_default():
    @owner_required(default=list)
    def load():
        raise MissingReference("no owner")

    @owner_required(default=7)
    def count():
        raise MissingReference("no owner")

    assert load() == []
    assert count() == 7


class OfflineStore(MemoryStore):
    """Serves nothing once ``offline`` is set."""

    offline = False

    def get(self, path):
        if self.offline:
            raise RemoteReadError("backend unavailable", path)
        return super().get(path)

    def listen(self, path, callback):
        if self.offline:
            raise RemoteReadError("backend unavailable", path)
        return super().listen(path, callback)


def offline_services():
    store = OfflineStore({"users": {"u1": {"years": {"2025": {
        "goals": {"yearly": [{"text": "Run", "completed": False, "createdAt": 1}]},
        "expenses": {"e1": {"name": "Coffee", "amount": 3, "date": "2025-02-01", "createdAt": 1}},
    }}}}})
    session = SessionContext(uid="u1", year=2025, month=2)
    return store, session


def test_failed_reads_keep_cached_collections():
    store, session = offline_services()
    goals, expenses = GoalService(store, session), ExpenseService(store, session)
    goals.load()
    expenses.load()

    store.offline = True
    assert [g.text for g in goals.load()["yearly"]] == ["Run"]
    assert [e.name for e in expenses.load()] == ["Coffee"]


def test_failed_reads_fall_back_to_empty_results():
    store, session = offline_services()
    store.offline = True
    assert GoalService(store, session).history("monthly") == []
    assert TaskService(store, session).month_mapping(2025, 1) == {}
    assert PortfolioService(store, session).load() == Portfolio()


def test_portfolio_subscription_reports_unavailable_backend():
    store, session = offline_services()
    store.offline = True
    service = PortfolioService(store, session)
    assert service.subscribe() is False
    assert store.listener_count == 0
