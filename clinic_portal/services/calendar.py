"""Calendar adapter: appointments and holidays as FullCalendar event dicts."""

from __future__ import annotations

import calendar as _cal
import datetime as dt
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Sequence

from clinic_portal.records import CANCELLED, COMPLETED, CONFIRMED, Appointment
from clinic_portal.services.doctors import DEFAULT_COLORS, PEDIATRIC_ID, DoctorRegistry
from clinic_portal.services.holidays import Holiday
from clinic_portal.services.timefmt import combine, format_time_12h, snap_to_slot

VIEWS = ("month", "week", "day", "agenda")
PREV, NEXT, TODAY = "prev", "next", "today"

# FullCalendar view names
FULLCALENDAR_VIEWS = {
    "month": "dayGridMonth",
    "week": "timeGridWeek",
    "day": "timeGridDay",
    "agenda": "listWeek",
}

EVENT_MINUTES = 30

CANCELLED_COLOR = "#dc2626"
COMPLETED_COLOR = "#16a34a"
HOLIDAY_COLOR = "#f59e0b"
TEXT_COLOR = "#ffffff"


def add_months(day: dt.date, months: int) -> dt.date:
    """Shift by whole months, clamping the day to the target month's length."""
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    last = _cal.monthrange(year, month)[1]
    return dt.date(year, month, min(day.day, last))


@dataclass(frozen=True)
class CalendarState:
    view: str = "month"
    anchor: dt.date = field(default_factory=dt.date.today)

    def __post_init__(self) -> None:
        if self.view not in VIEWS:
            raise ValueError(f"unknown calendar view: {self.view}")

    @property
    def fullcalendar_view(self) -> str:
        return FULLCALENDAR_VIEWS[self.view]

    @property
    def title(self) -> str:
        anchor = self.anchor
        if self.view == "month":
            return f"{anchor:%B} {anchor.year}"
        if self.view == "day":
            return f"{anchor:%A}, {anchor:%b} {anchor.day}, {anchor.year}"
        return f"{anchor:%b} {anchor.day}, {anchor.year}"


def navigate(state: CalendarState, action: str, *, today: dt.date | None = None) -> CalendarState:
    if action == TODAY:
        return replace(state, anchor=today or dt.date.today())
    if action not in (PREV, NEXT):
        raise ValueError(f"unknown navigation action: {action}")
    step = 1 if action == NEXT else -1
    if state.view == "month":
        return replace(state, anchor=add_months(state.anchor, step))
    if state.view == "day":
        return replace(state, anchor=state.anchor + dt.timedelta(days=step))
    return replace(state, anchor=state.anchor + dt.timedelta(days=7 * step))


def event_colors(appt: Appointment, registry: DoctorRegistry) -> dict[str, str]:
    if appt.status == CANCELLED:
        color = CANCELLED_COLOR
    elif appt.status == COMPLETED:
        color = COMPLETED_COLOR
    else:
        doctor = registry.resolve(appt.doctor_name)
        if doctor is None:
            color = DEFAULT_COLORS[PEDIATRIC_ID]
        elif appt.status == CONFIRMED:
            color = doctor.confirmed_color
        else:
            color = doctor.color
    return {"backgroundColor": color, "borderColor": color, "textColor": TEXT_COLOR}


def appointment_event(
    appt: Appointment,
    registry: DoctorRegistry,
    url_for_appointment: Callable[[str], str] | None = None,
) -> dict | None:
    if appt.appointment_date is None:
        return None
    start = combine(appt.appointment_date, appt.appointment_time)
    end = start + dt.timedelta(minutes=EVENT_MINUTES)
    event = {
        "id": appt.id,
        "title": f"{appt.patient_name} - {appt.appointment_time or format_time_12h(start.time())}",
        "start": start.isoformat(),
        "end": end.isoformat(),
        "allDay": False,
        "extendedProps": {
            "status": appt.status,
            "statusLabel": appt.status_label,
            "doctor": appt.doctor_name,
            "service": appt.service_label,
            "isHoliday": False,
        },
        **event_colors(appt, registry),
    }
    if url_for_appointment is not None and appt.id:
        event["url"] = url_for_appointment(appt.id)
    return event


def holiday_event(holiday: Holiday) -> dict:
    return {
        "id": f"holiday-{holiday.day.isoformat()}",
        "title": holiday.title,
        "start": holiday.day.isoformat(),
        "allDay": True,
        "display": "block",
        "backgroundColor": HOLIDAY_COLOR,
        "borderColor": HOLIDAY_COLOR,
        "textColor": TEXT_COLOR,
        "extendedProps": {"isHoliday": True},
    }


def to_events(
    appointments: Sequence[Appointment],
    registry: DoctorRegistry,
    holidays: Iterable[Holiday] = (),
    *,
    url_for_appointment: Callable[[str], str] | None = None,
) -> list[dict]:
    events = [
        event
        for event in (appointment_event(a, registry, url_for_appointment) for a in appointments)
        if event is not None
    ]
    events.extend(holiday_event(h) for h in holidays)
    return events


def slot_draft(start: dt.datetime) -> dict[str, str]:
    """Prefill for a new appointment from an empty calendar slot."""
    return {"date": start.date().isoformat(), "time": snap_to_slot(start.time())}
