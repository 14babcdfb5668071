"""Date and time helpers for the backend's string formats.

The backend stores appointment dates as ISO strings (often with a UTC
``T00:00:00.000Z`` suffix) and times as 12-hour ``"hh:mm AM"`` strings.
Dates are always rebuilt from their Y-M-D components so the calendar day
never shifts with the server's timezone.
"""

from __future__ import annotations

import datetime as dt

TIME_SLOTS: tuple[str, ...] = (
    "08:00 AM",
    "08:30 AM",
    "09:00 AM",
    "09:30 AM",
    "10:00 AM",
    "10:30 AM",
    "11:00 AM",
    "11:30 AM",
    "12:00 PM",
    "12:30 PM",
    "01:00 PM",
    "01:30 PM",
    "02:00 PM",
    "02:30 PM",
    "03:00 PM",
    "03:30 PM",
    "04:00 PM",
    "04:30 PM",
)


def parse_time_12h(value: str) -> dt.time:
    """Parse ``"h:mm AM/PM"`` into a :class:`datetime.time`.

    12 AM maps to hour 0; PM adds 12 unless the hour is already 12.
    A bare ``"HH:MM"`` (no period) is read as a 24-hour clock.
    """
    if not value or not value.strip():
        raise ValueError("empty time string")
    parts = value.strip().split(" ")
    clock = parts[0]
    period = parts[1].upper() if len(parts) > 1 else ""
    hour_str, _, minute_str = clock.partition(":")
    hour = int(hour_str)
    minute = int(minute_str or 0)
    if period == "AM":
        if hour == 12:
            hour = 0
    elif period == "PM":
        if hour != 12:
            hour += 12
    elif period:
        raise ValueError(f"unknown period in time string: {value!r}")
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"time out of range: {value!r}")
    return dt.time(hour, minute)


def format_time_12h(value: dt.time) -> str:
    """Format a time as the canonical ``"hh:mm AM/PM"`` slot label."""
    period = "PM" if value.hour >= 12 else "AM"
    hour = value.hour % 12 or 12
    return f"{hour:02d}:{value.minute:02d} {period}"


def to_display_time(value: str | None) -> str:
    """Render any backend time string in 12-hour form, passing AM/PM strings through."""
    if not value:
        return ""
    if "AM" in value or "PM" in value:
        return value
    try:
        return format_time_12h(parse_time_12h(value))
    except ValueError:
        return value


def parse_local_date(value) -> dt.date | None:
    """Return the calendar date of a backend date value without timezone drift."""
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    text = str(value).split("T")[0].strip()
    pieces = text.split("-")
    if len(pieces) != 3:
        return None
    try:
        year, month, day = (int(p) for p in pieces)
        return dt.date(year, month, day)
    except ValueError:
        return None


def combine(day: dt.date, time_label: str | None) -> dt.datetime:
    """Combine a date with a 12-hour time label; a missing/bad time means midnight."""
    clock = dt.time(0, 0)
    if time_label:
        try:
            clock = parse_time_12h(time_label)
        except ValueError:
            pass
    return dt.datetime.combine(day, clock)


def week_bounds(today: dt.date) -> tuple[dt.date, dt.date]:
    """Sunday..Saturday window containing ``today``."""
    # date.weekday(): Monday == 0 ... Sunday == 6
    start = today - dt.timedelta(days=(today.weekday() + 1) % 7)
    return start, start + dt.timedelta(days=6)


def month_bounds(today: dt.date) -> tuple[dt.date, dt.date]:
    start = today.replace(day=1)
    if start.month == 12:
        next_month = start.replace(year=start.year + 1, month=1)
    else:
        next_month = start.replace(month=start.month + 1)
    return start, next_month - dt.timedelta(days=1)


def format_display_date(value, *, with_year: bool = False) -> str:
    """``"Tue, Dec 9"`` (or ``"Tue, Dec 9, 2025"``) for a backend date value."""
    day = parse_local_date(value)
    if day is None:
        return ""
    label = f"{day:%a}, {day:%b} {day.day}"
    if with_year:
        label += f", {day.year}"
    return label


def snap_to_slot(value: dt.time) -> str:
    """Closest slot label at or before ``value``; earlier times snap to the first slot."""
    chosen = TIME_SLOTS[0]
    for label in TIME_SLOTS:
        if parse_time_12h(label) <= value:
            chosen = label
    return chosen
