"""Printable appointment reports and the booking-source analytics panel."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Sequence

from flask import render_template

from clinic_portal.records import (
    BOOKING_PORTAL,
    BOOKING_STAFF,
    CANCELLATION_PENDING,
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    NO_SHOW,
    RESCHEDULE_PENDING,
    RESCHEDULED,
    SCHEDULED,
    Appointment,
    ClinicSettings,
)
from clinic_portal.services.doctors import DoctorRegistry
from clinic_portal.services.timefmt import combine, format_display_date, month_bounds, week_bounds

MODES = {
    "day": "Today",
    "week": "This Week",
    "month": "This Month",
    "no-show": "No-Show",
    "cancelled": "Cancelled",
    "completed": "Completed",
}
_STATUS_MODES = {"no-show": NO_SHOW, "cancelled": CANCELLED, "completed": COMPLETED}

UNKNOWN_DOCTOR = "Unknown Doctor"

SECTION_ORDER = ("Confirmed", "Rescheduled", "Cancelled", "No Show", "Completed", "Other")
_SECTION_BY_STATUS = {
    CONFIRMED: "Confirmed",
    SCHEDULED: "Confirmed",
    RESCHEDULED: "Rescheduled",
    RESCHEDULE_PENDING: "Rescheduled",
    CANCELLED: "Cancelled",
    CANCELLATION_PENDING: "Cancelled",
    NO_SHOW: "No Show",
    COMPLETED: "Completed",
}


class NothingToPrint(Exception):
    """No appointment matched the report mode and doctor selection."""

    def __init__(self, mode: str) -> None:
        super().__init__("No appointments found to print")
        self.mode = mode


def section_for(status: str) -> str:
    return _SECTION_BY_STATUS.get((status or "").lower(), "Other")


def matches_mode(appt: Appointment, mode: str, today: dt.date) -> bool:
    if mode in _STATUS_MODES:
        return appt.status == _STATUS_MODES[mode]
    day = appt.appointment_date
    if day is None:
        return False
    if mode == "day":
        return day == today
    if mode == "week":
        start, end = week_bounds(today)
        return start <= day <= end
    if mode == "month":
        start, end = month_bounds(today)
        return start <= day <= end
    raise ValueError(f"unknown report mode: {mode}")


def _row_key(appt: Appointment) -> dt.datetime:
    if appt.appointment_date is None:
        return dt.datetime.min
    return combine(appt.appointment_date, appt.appointment_time)


@dataclass
class ReportGroup:
    doctor: str
    rows: list[Appointment] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.rows)

    @property
    def no_shows(self) -> list[Appointment]:
        return [row for row in self.rows if row.status == NO_SHOW]

    @property
    def no_show_names(self) -> str:
        return ", ".join(row.patient_name for row in self.no_shows)

    def sections(self) -> list[tuple[str, list[Appointment]]]:
        buckets: dict[str, list[Appointment]] = {name: [] for name in SECTION_ORDER}
        for row in sorted(self.rows, key=_row_key):
            buckets[section_for(row.status)].append(row)
        return [(name, rows) for name, rows in buckets.items() if rows]


@dataclass
class Report:
    mode: str
    label: str
    groups: list[ReportGroup]
    generated_at: dt.datetime

    @property
    def total(self) -> int:
        return sum(group.total for group in self.groups)


def build_report(
    appointments: Sequence[Appointment],
    mode: str,
    registry: DoctorRegistry,
    doctors: Sequence[str] = (),
    *,
    today: dt.date | None = None,
    now: dt.datetime | None = None,
) -> Report:
    """Filter by mode and doctor selection, then group rows by resolved doctor."""
    if mode not in MODES:
        raise ValueError(f"unknown report mode: {mode}")
    today = today or dt.date.today()
    selection = list(doctors) or registry.labels
    groups: dict[str, ReportGroup] = {}
    for appt in appointments:
        # rows without a doctor only appear in the unfiltered report
        if not appt.doctor_name:
            if doctors:
                continue
        elif not registry.matches(appt.doctor_name, selection):
            continue
        if not matches_mode(appt, mode, today):
            continue
        key = registry.display_label(appt.doctor_name) if appt.doctor_name else UNKNOWN_DOCTOR
        groups.setdefault(key, ReportGroup(key)).rows.append(appt)
    if not groups:
        raise NothingToPrint(mode)
    return Report(mode=mode, label=MODES[mode], groups=list(groups.values()), generated_at=now or dt.datetime.now())


def render_report_html(report: Report, settings: ClinicSettings) -> str:
    return render_template(
        "reports/print.html",
        report=report,
        clinic=settings,
        format_date=lambda d: format_display_date(d, with_year=True) if d else "",
    )


@dataclass(frozen=True)
class BookingAnalytics:
    total: int
    walk_ins: int
    online: int

    @property
    def walk_in_percentage(self) -> int:
        return round(self.walk_ins / self.total * 100) if self.total else 0

    @property
    def online_percentage(self) -> int:
        return round(self.online / self.total * 100) if self.total else 0


def analytics(
    appointments: Sequence[Appointment], registry: DoctorRegistry, doctors: Sequence[str] = ()
) -> BookingAnalytics:
    """Walk-in (staff-booked) versus online (portal-booked) split."""
    selection = list(doctors) or registry.labels
    included = [a for a in appointments if registry.matches(a.doctor_name, selection)]
    return BookingAnalytics(
        total=len(included),
        walk_ins=sum(1 for a in included if a.booking_source == BOOKING_STAFF),
        online=sum(1 for a in included if a.booking_source == BOOKING_PORTAL),
    )
