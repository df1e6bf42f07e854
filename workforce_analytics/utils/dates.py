# workforce_analytics/utils/dates.py

# Date range normalization for report requests.
# Accepts ISO dates, ISO datetimes and slash-delimited A/B/YYYY strings and
# produces an inclusive [start_day, end_day] pair plus timestamp bounds.
# "Now" comes from an injected Clock so open-ended ranges are testable.

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Optional, Protocol, Tuple

from workforce_analytics.errors import ValidationError

EPOCH_DAY = date(1970, 1, 1)
DAY_START = time(0, 0, 0)
DAY_END = time(23, 59, 59)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Naive UTC wall clock, matching how the operational tables store timestamps."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


@dataclass(frozen=True)
class FixedClock:
    at: datetime

    def now(self) -> datetime:
        return self.at


@dataclass(frozen=True)
class SlashDate:
    day: date
    ambiguous: bool


@dataclass(frozen=True)
class DateRange:
    start_day: date
    end_day: date
    ambiguous_inputs: Tuple[str, ...] = field(default=())

    @property
    def start_ts(self) -> datetime:
        return datetime.combine(self.start_day, DAY_START)

    @property
    def end_ts(self) -> datetime:
        return datetime.combine(self.end_day, DAY_END)


def parse_slash_date(value: str, field_name: str = "date") -> SlashDate:
    """
    Resolve an A/B/YYYY string.

    A component greater than 12 can only be the day, so it is taken as the day.
    When both are <= 12 the month-first reading is used and the result is
    flagged ambiguous (unless both readings give the same date, e.g. 04/04).
    """
    parts = [p.strip() for p in value.split("/")]
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise ValidationError(field_name, "expected A/B/YYYY", value)
    if len(parts[2]) != 4:
        raise ValidationError(field_name, "year must have four digits", value)
    a, b, year = (int(p) for p in parts)
    if a > 12 and b > 12:
        raise ValidationError(field_name, "neither component can be a month", value)
    if a > 12:
        day, month = a, b
    else:
        month, day = a, b
    try:
        resolved = date(year, month, day)
    except ValueError as exc:
        raise ValidationError(field_name, str(exc), value) from exc
    return SlashDate(resolved, ambiguous=(a <= 12 and b <= 12 and a != b))


def normalize_day(value: str, field_name: str = "date") -> Tuple[date, bool]:
    """Return (day, ambiguous) for one date input. Canonical YYYY-MM-DD round-trips unchanged."""
    text = value.strip()
    if not text:
        raise ValidationError(field_name, "empty value", value)
    if "/" in text:
        parsed = parse_slash_date(text, field_name)
        return parsed.day, parsed.ambiguous
    try:
        if "T" in text or " " in text or len(text) > 10:
            # datetime input: the calendar day is what counts
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date(), False
        return date.fromisoformat(text), False
    except ValueError as exc:
        raise ValidationError(field_name, "not an ISO date or datetime", value) from exc


def normalize_range(start: Optional[str], end: Optional[str], clock: Clock) -> DateRange:
    ambiguous = []
    if start:
        start_day, flag = normalize_day(start, "start_date")
        if flag:
            ambiguous.append(start)
    else:
        start_day = EPOCH_DAY
    if end:
        end_day, flag = normalize_day(end, "end_date")
        if flag:
            ambiguous.append(end)
    else:
        end_day = clock.now().date()
    if start_day > end_day:
        raise ValidationError("start_date", "start_date is after end_date", start)
    return DateRange(start_day, end_day, tuple(ambiguous))
