import pytest

from tracker.async_reports import load_year_tasks, year_completion
from tracker.session import SessionContext
from tracker.store import MemoryStore
from tracker.tasks import TaskService


def make_service():
    tree = {"users": {"u1": {"years": {"2025": {"tasks": {
        "2025-01": {"a": {"1": True, "2": True}, "b": True},
        "2025-03": {"a": {str(d): True for d in range(1, 32)}},
    }}}}}}
    session = SessionContext(uid="u1", year=2025)
    return TaskService(MemoryStore(tree), session)


@pytest.mark.asyncio
async def test_load_year_tasks_fetches_every_month():
    by_month = await load_year_tasks(make_service(), 2025)
    assert sorted(by_month) == list(range(1, 13))
    assert by_month[1] == {"a": frozenset({1, 2}), "b": frozenset()}
    assert by_month[2] == {}


@pytest.mark.asyncio
async def test_monthly_averages():
    averages, _ = await year_completion(make_service(), 2025)
    assert len(averages) == 12
    assert averages[0] == 100.0 * 2 / (2 * 31)
    assert averages[2] == 100.0
    assert averages[1] == 0.0


@pytest.mark.asyncio
async def test_year_completion_shares_one_fetch():
    averages, by_date = await year_completion(make_service(), 2025)
    assert len(by_date) == 365
    assert by_date["2025-01-01"] == 50.0
    assert by_date["2025-03-31"] == 100.0
    assert averages[2] == 100.0


@pytest.mark.asyncio
async def test_superseded_year_load_returns_none():
    service = make_service()
    real_mapping = service.month_mapping

    def mapping_then_newer_request(year, month):
        if month == 12:
            service.session.sequencer.issue("year-tasks")
        return real_mapping(year, month)

    service.month_mapping = mapping_then_newer_request
    assert await load_year_tasks(service, 2025) is None


@pytest.mark.asyncio
async def test_without_owner_every_month_is_empty():
    service = TaskService(MemoryStore(), SessionContext(year=2025))
    averages, by_date = await year_completion(service, 2025)
    assert averages == [0.0] * 12
    assert set(by_date.values()) == {0.0}
