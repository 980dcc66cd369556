"""Date windows: filter resolution, range tracking and dense series materialization."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Mapping, Optional

from crm_dashboard.models.dashboard import BreakdownItem, DailyPoint, DateWindow
from crm_dashboard.models.filters import DateFilter, DatePreset
from crm_dashboard.normalization.values import parse_date

# "All time" filter bounds
FILTER_FLOOR = date(2000, 1, 1)
FILTER_CEILING = date(2100, 12, 31)

# Runaway protection for series expansion
MAX_SERIES_DAYS = 3650
SERIES_FLOOR_YEAR = 2020
SERIES_FALLBACK_ORIGIN = date(2023, 1, 1)
SERIES_CEILING = date(2030, 12, 31)

CHART_FLOOR_YEAR = 2000
NO_DATA_WINDOW_DAYS = 365


def resolve_filter_window(date_filter: DateFilter, today: date) -> DateWindow:
    """Turn a preset or explicit start/end into an inclusive calendar window."""
    if date_filter.preset == DatePreset.ALL:
        return DateWindow(start=FILTER_FLOOR, end=FILTER_CEILING)

    if date_filter.start_date and date_filter.end_date:
        start = parse_date(date_filter.start_date)
        end = parse_date(date_filter.end_date)
        return DateWindow(
            start=start.date() if start else today,
            end=end.date() if end else today,
        )

    if date_filter.preset == DatePreset.TODAY:
        return DateWindow(start=today, end=today)
    if date_filter.preset == DatePreset.WEEK:
        return DateWindow(start=today - timedelta(days=7), end=today)
    if date_filter.preset == DatePreset.LAST_MONTH:
        last_of_previous = today.replace(day=1) - timedelta(days=1)
        return DateWindow(start=last_of_previous.replace(day=1), end=last_of_previous)
    return DateWindow(start=today.replace(day=1), end=today)


class DateRangeTracker:
    """
    Membership test for the filter window that also records the earliest
    and latest calendar day seen by any check.
    """

    def __init__(self, window: DateWindow):
        self.start = window.start
        self.end = window.end
        self.observed_min: Optional[date] = None
        self.observed_max: Optional[date] = None

    @property
    def has_data(self) -> bool:
        return self.observed_min is not None

    def contains(self, value: Optional[datetime | date]) -> bool:
        if value is None:
            return False
        day = value.date() if isinstance(value, datetime) else value
        if self.observed_min is None or day < self.observed_min:
            self.observed_min = day
        if self.observed_max is None or day > self.observed_max:
            self.observed_max = day
        return self.start <= day <= self.end


@dataclass
class DailyBucket:
    """Sparse per-day accumulator."""

    value: Decimal = Decimal("0")
    breakdown: list[BreakdownItem] = field(default_factory=list)


def resolve_chart_window(
    tracker: DateRangeTracker,
    *,
    whole_history: bool,
    today: date,
) -> DateWindow:
    """
    Window the charts are drawn over. For whole-history filters this is the
    observed data span (or the trailing year when nothing was observed).
    The end never runs past today unless data exists beyond it.
    """
    start, end = tracker.start, tracker.end
    if whole_history:
        if tracker.has_data:
            start, end = tracker.observed_min, tracker.observed_max
        else:
            start, end = today - timedelta(days=NO_DATA_WINDOW_DAYS), today

    if start.year < CHART_FLOOR_YEAR:
        start = SERIES_FALLBACK_ORIGIN

    safe_end = today
    if tracker.has_data and tracker.observed_max > today:
        safe_end = tracker.observed_max
    end = min(end, safe_end)
    end = max(end, start)
    return DateWindow(start=start, end=end)


def materialize_series(
    buckets: Mapping[str, DailyBucket],
    start: date,
    end: date,
) -> list[DailyPoint]:
    """
    Dense, gap-filled series for every calendar day in [start, end].
    Missing days are zero; expansion stops after MAX_SERIES_DAYS.
    """
    if start.year < SERIES_FLOOR_YEAR:
        start = SERIES_FALLBACK_ORIGIN
    end = min(end, SERIES_CEILING)

    points: list[DailyPoint] = []
    current = start
    while current <= end and len(points) < MAX_SERIES_DAYS:
        bucket = buckets.get(current.isoformat())
        points.append(
            DailyPoint(
                day=current,
                value=bucket.value if bucket else Decimal("0"),
                breakdown=list(bucket.breakdown) if bucket else [],
            )
        )
        current += timedelta(days=1)
    return points
