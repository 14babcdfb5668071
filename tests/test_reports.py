import datetime as dt

import pytest

from clinic_portal.records import ClinicSettings
from clinic_portal.services.doctors import build_registry
from clinic_portal.services.reports import (
    UNKNOWN_DOCTOR,
    NothingToPrint,
    analytics,
    build_report,
    matches_mode,
    section_for,
)
from tests.helpers import make_appt

OB = "Dr. Maria Sarah L. Manaloto"
PEDIA = "Dr. Shara Laine S. Vino"
TODAY = dt.date(2025, 12, 10)
NOW = dt.datetime(2025, 12, 10, 17, 0)


@pytest.fixture
def registry():
    return build_registry(ClinicSettings())


@pytest.fixture
def appointments():
    return [
        make_appt(_id="r1", doctorName=OB, appointmentDate="2025-12-10", appointmentTime="10:00 AM", status="confirmed"),
        make_appt(_id="r2", doctorName="Maria", appointmentDate="2025-12-10", appointmentTime="08:30 AM", status="no-show",
                  patientName="Rosa Lim"),
        make_appt(_id="r3", doctorName=PEDIA, appointmentDate="2025-12-09", status="cancelled", bookingSource="patient_portal"),
        make_appt(_id="r4", doctorName="", appointmentDate="2025-12-10", status="scheduled"),
        make_appt(_id="r5", doctorName=PEDIA, appointmentDate="2025-11-02", status="completed"),
    ]


def test_section_for():
    assert section_for("scheduled") == "Confirmed"
    assert section_for("reschedule_pending") == "Rescheduled"
    assert section_for("cancellation_pending") == "Cancelled"
    assert section_for("in-progress") == "Other"


def test_matches_mode():
    assert matches_mode(make_appt(appointmentDate="2025-12-13"), "week", TODAY)
    assert not matches_mode(make_appt(appointmentDate="2025-12-14"), "week", TODAY)
    assert matches_mode(make_appt(appointmentDate="2025-01-01", status="no-show"), "no-show", TODAY)
    assert matches_mode(make_appt(appointmentDate="2025-12-31"), "month", TODAY)
    assert not matches_mode(make_appt(appointmentDate="2026-01-01"), "month", TODAY)
    assert not matches_mode(make_appt(appointmentDate="2024-12-10"), "month", TODAY)
    assert not matches_mode(make_appt(appointmentDate=None), "day", TODAY)


def test_day_report_groups_by_resolved_doctor(appointments, registry):
    report = build_report(appointments, "day", registry, today=TODAY, now=NOW)
    assert [g.doctor for g in report.groups] == [OB, UNKNOWN_DOCTOR]
    ob = report.groups[0]
    assert [r.id for r in ob.rows] == ["r1", "r2"]
    assert ob.no_show_names == "Rosa Lim"
    assert [(name, [r.id for r in rows]) for name, rows in ob.sections()] == [
        ("Confirmed", ["r1"]),
        ("No Show", ["r2"]),
    ]
    assert report.total == 3
    assert report.label == "Today"
    assert report.generated_at == NOW


def test_unknown_doctor_rows_dropped_with_explicit_selection(appointments, registry):
    report = build_report(appointments, "day", registry, [OB], today=TODAY, now=NOW)
    assert [g.doctor for g in report.groups] == [OB]


def test_status_mode_ignores_dates(appointments, registry):
    report = build_report(appointments, "completed", registry, today=TODAY, now=NOW)
    assert [r.id for g in report.groups for r in g.rows] == ["r5"]


def test_nothing_to_print(appointments, registry):
    with pytest.raises(NothingToPrint) as info:
        build_report(appointments, "cancelled", registry, [OB], today=TODAY, now=NOW)
    assert str(info.value) == "No appointments found to print"


def test_unknown_mode(registry):
    with pytest.raises(ValueError):
        build_report([], "year", registry, today=TODAY)


def test_analytics_split(appointments, registry):
    stats = analytics(appointments, registry)
    # the doctor-less row is outside every selection
    assert stats.total == 4
    assert stats.walk_ins == 3
    assert stats.online == 1
    assert stats.walk_in_percentage == 75
    assert stats.online_percentage == 25

    pedia_only = analytics(appointments, registry, [PEDIA])
    assert (pedia_only.total, pedia_only.online_percentage) == (2, 50)
    assert analytics([], registry).walk_in_percentage == 0
