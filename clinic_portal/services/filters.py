"""In-memory filtering, sorting, paging and grouping of fetched appointments.

The backend returns the whole appointment collection; every list view narrows
it here. Each predicate is independent and they are ANDed together.
"""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Iterable, Sequence

from clinic_portal.records import (
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    IN_PROGRESS,
    NO_SHOW,
    SCHEDULED,
    Appointment,
)
from clinic_portal.services.timefmt import combine, month_bounds, week_bounds

if TYPE_CHECKING:
    from clinic_portal.services.doctors import DoctorRegistry

STATUS_TABS: dict[str, frozenset[str] | None] = {
    "active": frozenset({SCHEDULED, CONFIRMED, IN_PROGRESS}),
    "completed": frozenset({COMPLETED, CANCELLED, NO_SHOW}),
    "all": None,
}

DATE_RANGES = ("today", "week", "month", "all")

DEFAULT_PAGE_SIZE = 10


@dataclass(frozen=True)
class AppointmentFilter:
    search: str = ""
    doctors: tuple[str, ...] = ()
    status_tab: str = "all"
    date_range: str = "all"

    def normalized(self, known_doctors: Sequence[str]) -> "AppointmentFilter":
        status_tab = self.status_tab if self.status_tab in STATUS_TABS else "all"
        date_range = self.date_range if self.date_range in DATE_RANGES else "all"
        doctors = tuple(d for d in self.doctors if d) or tuple(known_doctors)
        return replace(self, search=(self.search or "").strip(), doctors=doctors,
                       status_tab=status_tab, date_range=date_range)


def matches_search(appt: Appointment, term: str) -> bool:
    return not term or term.casefold() in appt.patient_name.casefold()


def matches_doctor(
    appt: Appointment, doctors: Iterable[str], registry: DoctorRegistry | None = None
) -> bool:
    """With a registry, match on resolved doctor identity so aliases count."""
    if registry is not None:
        return registry.matches(appt.doctor_name, list(doctors))
    return appt.doctor_name in set(doctors)


def matches_status_tab(appt: Appointment, tab: str) -> bool:
    allowed = STATUS_TABS.get(tab)
    return allowed is None or appt.status in allowed


def matches_date_range(appt: Appointment, date_range: str, today: dt.date) -> bool:
    if date_range == "all":
        return True
    day = appt.appointment_date
    if day is None:
        return False
    if date_range == "today":
        return day == today
    if date_range == "week":
        start, end = week_bounds(today)
        return start <= day <= end
    if date_range == "month":
        start, end = month_bounds(today)
        return start <= day <= end
    return True


def _sort_key(appt: Appointment) -> dt.datetime:
    if appt.appointment_date is None:
        return dt.datetime.min
    return combine(appt.appointment_date, appt.appointment_time)


def apply_filter(
    appointments: Sequence[Appointment],
    criteria: AppointmentFilter,
    *,
    today: dt.date | None = None,
    registry: DoctorRegistry | None = None,
) -> list[Appointment]:
    """Visible subset satisfying every predicate, newest first (stable for ties)."""
    today = today or dt.date.today()
    visible = [
        appt
        for appt in appointments
        if matches_search(appt, criteria.search)
        and matches_doctor(appt, criteria.doctors, registry)
        and matches_status_tab(appt, criteria.status_tab)
        and matches_date_range(appt, criteria.date_range, today)
    ]
    visible.sort(key=_sort_key, reverse=True)
    return visible


@dataclass
class Page:
    items: list[Appointment]
    number: int
    per_page: int
    total: int

    @property
    def pages(self) -> int:
        return max(1, math.ceil(self.total / self.per_page)) if self.per_page else 1

    @property
    def has_prev(self) -> bool:
        return self.number > 1

    @property
    def has_next(self) -> bool:
        return self.number < self.pages

    @property
    def first_index(self) -> int:
        return 0 if not self.total else (self.number - 1) * self.per_page + 1

    @property
    def last_index(self) -> int:
        return min(self.number * self.per_page, self.total)


def paginate(items: Sequence[Appointment], page: int = 1, per_page: int = DEFAULT_PAGE_SIZE) -> Page:
    if per_page < 1:
        raise ValueError("per_page must be positive")
    total = len(items)
    pages = max(1, math.ceil(total / per_page))
    number = min(max(1, page), pages)
    start = (number - 1) * per_page
    return Page(items=list(items[start:start + per_page]), number=number, per_page=per_page, total=total)


@dataclass
class DoctorGroup:
    doctor_name: str
    appointments: list[Appointment] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.appointments


def group_by_doctor(
    items: Sequence[Appointment],
    doctors: Sequence[str] = (),
    registry: DoctorRegistry | None = None,
) -> list[DoctorGroup]:
    """Group a page by doctor; every name in ``doctors`` gets a card even when empty.

    With a registry, rows filed under an old label join the current doctor's card.
    """
    groups: dict[str, DoctorGroup] = {name: DoctorGroup(name) for name in doctors}
    for appt in items:
        key = registry.display_label(appt.doctor_name) if registry is not None else appt.doctor_name
        groups.setdefault(key, DoctorGroup(key)).appointments.append(appt)
    return list(groups.values())
