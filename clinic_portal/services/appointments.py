"""Fetch and normalise appointments from the backend."""

from __future__ import annotations

import logging
from typing import Any

from clinic_portal.records import Appointment, Patient
from clinic_portal.services.api_client import ClinicAPI, PatientAPI

log = logging.getLogger(__name__)

FETCH_LIMIT = 1000


class AppointmentNotFound(Exception):
    pass


def _items(payload: Any, *keys: str) -> list[dict]:
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    if isinstance(payload, dict):
        for key in keys:
            value = payload.get(key)
            if isinstance(value, list):
                return [item for item in value if isinstance(item, dict)]
    return []


def parse_appointments(payload: Any) -> list[Appointment]:
    return [Appointment.from_api(item) for item in _items(payload, "appointments", "items", "results")]


def parse_patients(payload: Any) -> list[Patient]:
    return [Patient.from_api(item) for item in _items(payload, "patients", "items", "results")]


def fetch_all(api: ClinicAPI) -> list[Appointment]:
    """Entire appointment collection; list views filter it in memory."""
    appointments = parse_appointments(api.appointments.list({"limit": FETCH_LIMIT}))
    log.debug("fetched %d appointments", len(appointments))
    return appointments


def fetch_one(api: ClinicAPI, appointment_id: str) -> Appointment:
    payload = api.appointments.get(appointment_id)
    if isinstance(payload, dict) and isinstance(payload.get("appointment"), dict):
        payload = payload["appointment"]
    if not isinstance(payload, dict) or not payload:
        raise AppointmentNotFound(appointment_id)
    return Appointment.from_api(payload)


def fetch_patient_appointments(api: PatientAPI, params: dict | None = None) -> list[Appointment]:
    return parse_appointments(api.booking.my_appointments(params))


def staff_payload(form, doctor_type: str) -> dict:
    """Create payload for a staff-entered appointment."""
    contact = form.contact_number.data.replace(" ", "")
    payload = {
        "patientId": form.patient_id.data or None,
        "doctorType": doctor_type,
        "doctorName": form.doctor_name.data,
        "appointmentDate": form.appointment_date.data.isoformat(),
        "appointmentTime": form.appointment_time.data,
        "serviceType": form.service_type.data,
        "contactInfo": {"primaryPhone": contact},
        "patientName": form.patient_name.data.strip(),
        "contactNumber": contact,
        "reasonForVisit": (form.reason_for_visit.data or "").strip(),
        "bookingSource": "staff",
    }
    return {k: v for k, v in payload.items() if v is not None}
