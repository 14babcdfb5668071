import datetime as dt

from clinic_portal.records import (
    BOOKING_PORTAL,
    BOOKING_STAFF,
    OB_GYNE,
    PEDIATRIC,
    Appointment,
    ClinicSettings,
    Patient,
    PortalPatientRef,
    StaffPatientRef,
)


def test_portal_booking_uses_portal_patient_ref():
    appt = Appointment.from_api(
        {
            "_id": "a1",
            "patientUserId": {"_id": "u9", "fullName": "Liza Cruz", "phoneNumber": "0917"},
            "doctorName": "Dr. Shara Laine S. Vino",
            "appointmentDate": "2025-12-09T00:00:00.000Z",
            "appointmentTime": "01:30 PM",
            "status": "SCHEDULED",
        }
    )
    assert isinstance(appt.patient, PortalPatientRef)
    assert appt.patient.user_id == "u9"
    assert appt.patient_name == "Liza Cruz"
    assert appt.contact_phone == "0917"
    assert appt.status == "scheduled"
    assert appt.booking_source == BOOKING_PORTAL
    assert appt.appointment_date == dt.date(2025, 12, 9)
    assert appt.starts_at == dt.datetime(2025, 12, 9, 13, 30)


def test_flat_patient_name_wins_for_portal_bookings_for_dependents():
    appt = Appointment.from_api({"id": "a2", "patientUserId": "u9", "patientName": "Baby Cruz"})
    assert appt.patient_name == "Baby Cruz"
    assert appt.patient.kind == "portal"


def test_staff_booking_reads_name_from_patient_record():
    pedia = Appointment.from_api(
        {
            "_id": "a3",
            "patient": {
                "_id": "r1",
                "patientId": "PED-001",
                "patientType": PEDIATRIC,
                "pediatricRecord": {"nameOfChildren": "Ana Santos"},
            },
            "contactInfo": {"primaryPhone": "0999"},
        }
    )
    assert isinstance(pedia.patient, StaffPatientRef)
    assert pedia.patient.record_id == "r1"
    assert pedia.patient_name == "Ana Santos"
    assert pedia.contact_phone == "0999"
    assert pedia.booking_source == BOOKING_STAFF

    ob = Appointment.from_api(
        {"_id": "a4", "patient": {"patientType": OB_GYNE, "obGyneRecord": {"patientName": "Maria Lopez"}}}
    )
    assert ob.patient_name == "Maria Lopez"


def test_missing_name_falls_back_to_unknown_patient():
    appt = Appointment.from_api({"appointmentId": "a5"})
    assert appt.id == "a5"
    assert appt.patient_name == "Unknown Patient"
    assert appt.appointment_date is None
    assert appt.starts_at is None


def test_explicit_booking_source_is_kept():
    appt = Appointment.from_api({"_id": "a6", "patientUserId": "u1", "bookingSource": "staff"})
    assert appt.booking_source == BOOKING_STAFF
    assert appt.booking_source_label == "Staff"


def test_labels():
    appt = Appointment.from_api(
        {"_id": "a7", "patientName": "X", "status": "cancellation_pending", "serviceType": "WELL_BABY_CHECKUP"}
    )
    assert appt.status_label == "Cancellation Pending"
    assert appt.service_label == "Well Baby Checkup"


def test_patient_from_api():
    patient = Patient.from_api(
        {
            "_id": "r2",
            "patientId": "OB-010",
            "patientType": OB_GYNE,
            "status": "Active",
            "obGyneRecord": {"patientName": "Maria Lopez", "contactNumber": "0917", "consultations": [{"date": "x"}]},
        }
    )
    assert patient.name == "Maria Lopez"
    assert patient.contact_phone == "0917"
    assert patient.type_label == "OB-GYNE"
    assert patient.consultations == [{"date": "x"}]
    assert patient.immunizations == []


def test_clinic_settings_defaults_and_round_trip():
    defaults = ClinicSettings.from_api({})
    assert defaults.clinic_name == "VM Mother and Child Clinic"
    assert defaults.obgyne_doctor.name == "Dr. Maria Sarah L. Manaloto"
    assert defaults.pediatrician.hours["thursday"] == "8AM-12PM"

    payload = {
        "clinicName": "VM Clinic",
        "obgyneDoctor": {"name": "Dr. New", "hours": {"monday": "8AM-12PM", "tuesday": ""}},
        "pediatrician": {"name": "Dr. Kid"},
    }
    settings = ClinicSettings.from_api(payload)
    assert settings.obgyne_doctor.hours == {"monday": "8AM-12PM"}
    assert settings.pediatrician.name == "Dr. Kid"
    assert settings.to_api()["obgyneDoctor"] == {"name": "Dr. New", "hours": {"monday": "8AM-12PM"}}
    assert settings.obgyne_doctor.works_on(dt.date(2025, 12, 8))
    assert not settings.obgyne_doctor.works_on(dt.date(2025, 12, 9))
