"""Philippine regular holidays shown as inert all-day calendar events."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

_FIXED = (
    (1, 1, "New Year's Day"),
    (4, 9, "Araw ng Kagitingan"),
    (5, 1, "Labor Day"),
    (6, 12, "Independence Day"),
    (8, 21, "Ninoy Aquino Day"),
    (11, 30, "Bonifacio Day"),
    (12, 25, "Christmas Day"),
    (12, 30, "Rizal Day"),
)


@dataclass(frozen=True)
class Holiday:
    day: dt.date
    title: str


def easter_sunday(year: int) -> dt.date:
    """Gregorian Easter (anonymous computus)."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return dt.date(year, month, day + 1)


def _last_monday_of_august(year: int) -> dt.date:
    last = dt.date(year, 8, 31)
    return last - dt.timedelta(days=last.weekday())


def holidays_for_year(year: int) -> list[Holiday]:
    easter = easter_sunday(year)
    items = [Holiday(dt.date(year, month, day), title) for month, day, title in _FIXED]
    items.append(Holiday(easter - dt.timedelta(days=3), "Maundy Thursday"))
    items.append(Holiday(easter - dt.timedelta(days=2), "Good Friday"))
    items.append(Holiday(_last_monday_of_august(year), "National Heroes Day"))
    return sorted(items, key=lambda h: h.day)


def holidays_between(start: dt.date, end: dt.date) -> list[Holiday]:
    """Holidays with ``start <= day <= end``."""
    found: list[Holiday] = []
    for year in range(start.year, end.year + 1):
        found.extend(h for h in holidays_for_year(year) if start <= h.day <= end)
    return found
