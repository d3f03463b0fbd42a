import asyncio
import logging
from typing import Optional

from tracker.aggregator import monthly_average, year_completion_by_date
from tracker.memo import days_in_month

logger = logging.getLogger(__name__)


async def load_year_tasks(task_service, year: int) -> Optional[dict[int, dict]]:
    """Fetch all twelve months of task data concurrently.

    Returns month -> {task name: completed days}, or None when a newer
    year request was issued while this one was in flight.
    """
    sequencer = task_service.session.sequencer
    token = sequencer.issue("year-tasks")

    async def month_tasks(month: int) -> tuple[int, dict]:
        mapping = await asyncio.to_thread(task_service.month_mapping, year, month)
        return month, mapping or {}

    results = await asyncio.gather(*(month_tasks(m) for m in range(1, 13)))
    if not sequencer.is_current("year-tasks", token):
        logger.debug("dropping stale year task load for %s", year)
        return None
    return {m: mapping for m, mapping in results}


async def year_completion(task_service, year: int) -> Optional[tuple[list[float], dict[str, float]]]:
    """Monthly averages and the per-date series for the heatmap from one fetch."""
    by_month = await load_year_tasks(task_service, year)
    if by_month is None:
        return None
    averages = [monthly_average(by_month[m], days_in_month(year, m)) for m in range(1, 13)]
    return averages, year_completion_by_date(by_month, year)
