import datetime as dt

import pytest

from clinic_portal.records import ClinicSettings
from clinic_portal.services.calendar import (
    CANCELLED_COLOR,
    COMPLETED_COLOR,
    HOLIDAY_COLOR,
    CalendarState,
    add_months,
    appointment_event,
    event_colors,
    holiday_event,
    navigate,
    slot_draft,
    to_events,
)
from clinic_portal.services.doctors import build_registry
from clinic_portal.services.holidays import Holiday
from tests.helpers import make_appt

OB = "Dr. Maria Sarah L. Manaloto"
PEDIA = "Dr. Shara Laine S. Vino"


@pytest.fixture
def registry():
    return build_registry(ClinicSettings())


def test_add_months_clamps_day():
    assert add_months(dt.date(2025, 1, 31), 1) == dt.date(2025, 2, 28)
    assert add_months(dt.date(2024, 3, 31), -1) == dt.date(2024, 2, 29)
    assert add_months(dt.date(2025, 12, 15), 1) == dt.date(2026, 1, 15)


def test_state_rejects_unknown_view():
    with pytest.raises(ValueError):
        CalendarState(view="year")


def test_titles_and_fullcalendar_views():
    anchor = dt.date(2025, 12, 9)
    assert CalendarState("month", anchor).title == "December 2025"
    assert CalendarState("day", anchor).title == "Tuesday, Dec 9, 2025"
    assert CalendarState("week", anchor).fullcalendar_view == "timeGridWeek"
    assert CalendarState("agenda", anchor).fullcalendar_view == "listWeek"


def test_navigate_steps_by_view():
    anchor = dt.date(2025, 1, 31)
    assert navigate(CalendarState("month", anchor), "next").anchor == dt.date(2025, 2, 28)
    assert navigate(CalendarState("week", anchor), "prev").anchor == dt.date(2025, 1, 24)
    assert navigate(CalendarState("agenda", anchor), "next").anchor == dt.date(2025, 2, 7)
    assert navigate(CalendarState("day", anchor), "next").anchor == dt.date(2025, 2, 1)
    today = dt.date(2025, 6, 1)
    moved = navigate(CalendarState("week", anchor), "today", today=today)
    assert moved.anchor == today
    assert moved.view == "week"
    with pytest.raises(ValueError):
        navigate(CalendarState("month", anchor), "sideways")


def test_event_colors(registry):
    assert event_colors(make_appt(doctorName=OB, status="scheduled"), registry)["backgroundColor"] == "#3b82f6"
    assert event_colors(make_appt(doctorName=OB, status="confirmed"), registry)["backgroundColor"] == "#1d4ed8"
    assert event_colors(make_appt(doctorName=PEDIA, status="confirmed"), registry)["backgroundColor"] == "#0369a1"
    assert event_colors(make_appt(doctorName=PEDIA, status="cancelled"), registry)["backgroundColor"] == CANCELLED_COLOR
    assert event_colors(make_appt(doctorName=OB, status="completed"), registry)["backgroundColor"] == COMPLETED_COLOR
    assert event_colors(make_appt(doctorName="Dr. Nobody"), registry)["backgroundColor"] == "#0ea5e9"


def test_appointment_event_spans_thirty_minutes(registry):
    appt = make_appt(_id="a9", patientName="Ana", appointmentDate="2025-12-09T00:00:00.000Z", appointmentTime="01:30 PM")
    event = appointment_event(appt, registry, lambda appt_id: f"/appointments/{appt_id}")
    assert event["title"] == "Ana - 01:30 PM"
    assert event["start"] == "2025-12-09T13:30:00"
    assert event["end"] == "2025-12-09T14:00:00"
    assert event["url"] == "/appointments/a9"
    assert event["extendedProps"]["isHoliday"] is False


def test_holiday_events_are_inert():
    event = holiday_event(Holiday(dt.date(2025, 12, 25), "Christmas Day"))
    assert event["id"] == "holiday-2025-12-25"
    assert event["allDay"] is True
    assert event["backgroundColor"] == HOLIDAY_COLOR
    assert "url" not in event


def test_to_events_skips_undated(registry):
    events = to_events(
        [make_appt(), make_appt(_id="nodate", appointmentDate=None)],
        registry,
        [Holiday(dt.date(2025, 12, 30), "Rizal Day")],
    )
    assert [e["id"] for e in events] == ["a1", "holiday-2025-12-30"]


def test_slot_draft_snaps_to_slot():
    assert slot_draft(dt.datetime(2025, 12, 9, 10, 40)) == {"date": "2025-12-09", "time": "10:30 AM"}
