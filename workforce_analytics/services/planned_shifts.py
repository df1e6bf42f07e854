# Planned-shift fallback for technicians who never clock in.
# Weekly templates (tech_schedules, weekday 0=Sun) give a per-weekday duration;
# the range's weekday occurrences multiply it out. Day-level exceptions then
# replace (working day with times), keep (working day without times) or zero
# (non-working day) the template hours for their date.
# Measured shift hours always win when present; `source` records which figure
# the KPIs were computed from.

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping

from workforce_analytics.utils.dates import DateRange
from workforce_analytics.utils.windows import SUNDAY_FIRST, schedule_weekday, weekday_counts, window_hours

SOURCE_ACTUAL = "actual"
SOURCE_PLANNED = "planned"
SOURCE_NONE = "none"


@dataclass(frozen=True)
class ShiftHours:
    actual: float
    planned: float
    effective: float
    source: str


def _as_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "t", "true", "y", "yes")
    return bool(value)


class PlannedShiftResolver:
    def __init__(self, date_range: DateRange, schedules: Iterable[Mapping], exceptions: Iterable[Mapping]):
        self.range = date_range
        self.counts = weekday_counts(date_range.start_day, date_range.end_day)
        self._templates: Dict[str, List[float]] = defaultdict(lambda: [0.0] * SUNDAY_FIRST)
        for row in schedules:
            hours = window_hours(row.get("start_time"), row.get("end_time"))
            weekday = row.get("weekday")
            if hours is None or weekday is None or not 0 <= int(weekday) < SUNDAY_FIRST:
                continue
            # split shifts on one weekday add up
            self._templates[str(row["technician_id"])][int(weekday)] += hours
        self._exceptions: Dict[str, List[Mapping]] = defaultdict(list)
        for row in exceptions:
            self._exceptions[str(row["technician_id"])].append(row)

    def planned_hours(self, technician_id: str) -> float:
        template = self._templates.get(technician_id, [0.0] * SUNDAY_FIRST)
        total = sum(hours * count for hours, count in zip(template, self.counts))

        # latest row wins if one date carries several exceptions
        by_day: Dict[date, Mapping] = {}
        for row in self._exceptions.get(technician_id, ()):
            day = _as_date(row["exception_date"])
            if self.range.start_day <= day <= self.range.end_day:
                by_day[day] = row
        for day, row in by_day.items():
            base = template[schedule_weekday(day)]
            if not _as_bool(row.get("is_working_day")):
                total -= base
                continue
            hours = window_hours(row.get("start_time"), row.get("end_time"))
            if hours is not None:
                total += hours - base
        return round(max(0.0, total), 4)

    def resolve(self, technician_id: str, measured: float) -> ShiftHours:
        measured = round(max(0.0, measured or 0.0), 4)
        planned = self.planned_hours(technician_id)
        if measured > 0:
            return ShiftHours(measured, planned, measured, SOURCE_ACTUAL)
        if planned > 0:
            return ShiftHours(measured, planned, planned, SOURCE_PLANNED)
        return ShiftHours(measured, planned, 0.0, SOURCE_NONE)
