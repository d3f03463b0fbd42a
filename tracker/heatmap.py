"""Calendar heatmap layout for a year of daily completion percentages.

Weeks are columns and weekdays are rows (Monday first). A date's column is
``(offset + day_of_year) // 7`` where ``offset`` is the weekday of January 1st
and ``day_of_year`` counts from zero.
"""
from dataclasses import dataclass
from datetime import date
from typing import Mapping, Optional

from tracker.memo import year_dates

CELL_GAP = 3
MIN_CELL = 10
MAX_CELL = 20
SATURATION = 75
MAX_LIGHTNESS = 55
LIGHTNESS_RANGE = 25
MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass(frozen=True)
class HeatmapCell:
    date: date
    column: int
    row: int
    percentage: float
    future: bool
    color: Optional[str]


@dataclass(frozen=True)
class HeatmapGrid:
    year: int
    cells: tuple
    week_count: int
    month_labels: tuple     # (label, column) pairs
    cell_size: int


def hsl_components(percentage: float) -> tuple[float, float, float]:
    pct = min(100.0, max(0.0, float(percentage)))
    if pct <= 50:
        hue = pct / 50 * 60
    else:
        hue = 60 + (pct - 50) / 50 * 60
    lightness = MAX_LIGHTNESS - pct / 100 * LIGHTNESS_RANGE
    return hue, float(SATURATION), lightness


def color_for(percentage: float) -> str:
    """Red -> yellow -> green, darkening a little as completion rises."""
    hue, sat, light = hsl_components(percentage)
    return f"hsl({hue:g}, {sat:g}%, {light:g}%)"


def week_offset(year: int) -> int:
    return date(year, 1, 1).weekday()


def column_for(d: date) -> int:
    return (week_offset(d.year) + d.timetuple().tm_yday - 1) // 7


def cell_size_for(container_width: Optional[float], week_count: int) -> int:
    if not container_width or week_count <= 0:
        return MAX_CELL
    size = int(container_width // week_count) - CELL_GAP
    return max(MIN_CELL, min(MAX_CELL, size))


def month_label_columns(year: int) -> tuple:
    return tuple((MONTH_LABELS[m - 1], column_for(date(year, m, 1))) for m in range(1, 13))


def build_heatmap(values: Mapping[str, float], year: int, today: date,
                  container_width: Optional[float] = None) -> HeatmapGrid:
    cells = []
    for d in year_dates(year):
        future = d > today
        pct = float(values.get(d.isoformat(), 0.0) or 0.0)
        cells.append(HeatmapCell(
            date=d,
            column=column_for(d),
            row=d.weekday(),
            percentage=pct,
            future=future,
            color=None if future else color_for(pct),
        ))
    week_count = cells[-1].column + 1
    return HeatmapGrid(
        year=year,
        cells=tuple(cells),
        week_count=week_count,
        month_labels=month_label_columns(year),
        cell_size=cell_size_for(container_width, week_count),
    )
