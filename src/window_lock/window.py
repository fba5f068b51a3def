"""Daily time-window math.

Windows are half-open ``[start, end)`` intervals of the local clock. When
``end < start`` the window wraps past midnight (e.g. 23:00-06:00).
Everything here is pure: no clock reads, no I/O.
"""

from __future__ import annotations

import re
from datetime import datetime, time, timedelta

from .exceptions import InvalidTimeFormatError

MINUTES_PER_DAY = 24 * 60

_HHMM_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


def is_valid_time(value: str) -> bool:
    """True if ``value`` is a 24-hour ``HH:MM`` string (``9:30`` allowed)."""
    return isinstance(value, str) and _HHMM_RE.fullmatch(value) is not None


def parse_hhmm(value: str) -> time:
    """Parse an ``HH:MM`` string into a ``datetime.time``."""
    if not is_valid_time(value):
        raise InvalidTimeFormatError(
            f"Invalid time format {value!r}. Use HH:MM in 24-hour format."
        )
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def normalize_hhmm(value: str) -> str:
    """Zero-pad a valid time: ``"9:05"`` -> ``"09:05"``."""
    return parse_hhmm(value).strftime("%H:%M")


def minutes_since_midnight(value: time | datetime | str) -> int:
    if isinstance(value, str):
        value = parse_hhmm(value)
    return value.hour * 60 + value.minute


def is_within_window(
    now: time | datetime | str,
    start: time | str,
    end: time | str,
) -> bool:
    """Check whether ``now`` falls inside the daily window ``[start, end)``.

    The start boundary is inside, the end boundary is outside. A window
    whose start equals its end is empty.
    """
    m = minutes_since_midnight(now)
    s = minutes_since_midnight(start)
    e = minutes_since_midnight(end)
    if e < s:
        # Crosses midnight: [s, 1440) U [0, e)
        return m >= s or m < e
    return s <= m < e


def next_occurrence(now: datetime, time_of_day: time | str) -> datetime:
    """Earliest datetime strictly after ``now`` at ``time_of_day``.

    Today's occurrence is returned if it is still ahead, otherwise
    tomorrow's. The day is advanced on the calendar date, so month and year
    boundaries come for free. Aware datetimes keep their ``tzinfo``.
    """
    if isinstance(time_of_day, str):
        time_of_day = parse_hhmm(time_of_day)
    target = datetime.combine(
        now.date(), time(time_of_day.hour, time_of_day.minute), tzinfo=now.tzinfo
    )
    if target <= now:
        target = datetime.combine(
            now.date() + timedelta(days=1),
            time(time_of_day.hour, time_of_day.minute),
            tzinfo=now.tzinfo,
        )
    return target


def format_duration(delta: timedelta) -> str:
    """Compact human duration: ``"2h 05m"``, ``"45m"``."""
    total_minutes = max(0, int(delta.total_seconds() // 60))
    hours, minutes = divmod(total_minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    return f"{minutes}m"


def format_time_12h(value: str) -> str:
    """``"21:00"`` -> ``"9:00 PM"``."""
    t = parse_hhmm(value)
    period = "PM" if t.hour >= 12 else "AM"
    hours12 = t.hour % 12 or 12
    return f"{hours12}:{t.minute:02d} {period}"
