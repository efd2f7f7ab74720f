"""
Wall-clock helpers for court reservations.

Times are "HH:MM" strings on a 24-hour clock. Windows are half-open: the start
minute is inclusive and the end minute exclusive, so 10:00-11:00 and
11:00-12:00 sit back to back without overlapping.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo

from app.core.config import get_settings
from app.core.exceptions import InvalidRequestError

CLOCK_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


def parse_clock(value: str) -> int:
    """Return minutes since midnight for an "HH:MM" (or "H:MM") string."""
    match = CLOCK_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid time format (HH:MM): {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_clock(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class TimeWindow:
    start: int
    end: int

    @property
    def duration_minutes(self) -> int:
        return self.end - self.start

    @property
    def start_label(self) -> str:
        return format_clock(self.start)

    @property
    def end_label(self) -> str:
        return format_clock(self.end)

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end


def parse_time_window(start: str, end: str) -> TimeWindow:
    try:
        window = TimeWindow(parse_clock(start), parse_clock(end))
    except ValueError as exc:
        raise InvalidRequestError("TimeWindow", str(exc)) from exc
    if window.start >= window.end:
        raise InvalidRequestError("TimeWindow", "End time must be after start time")
    return window


def today() -> date:
    """Current calendar day in the configured booking timezone."""
    return datetime.now(ZoneInfo(get_settings().BOOKING_TIMEZONE)).date()
