"""Normalised display records built from the backend's JSON payloads."""

from __future__ import annotations

import datetime as dt
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from clinic_portal.services.timefmt import combine, parse_local_date

SCHEDULED = "scheduled"
CONFIRMED = "confirmed"
IN_PROGRESS = "in-progress"
COMPLETED = "completed"
CANCELLED = "cancelled"
NO_SHOW = "no-show"
CANCELLATION_PENDING = "cancellation_pending"
RESCHEDULE_PENDING = "reschedule_pending"
RESCHEDULED = "rescheduled"

STATUS_LABELS = {
    SCHEDULED: "Scheduled",
    CONFIRMED: "Confirmed",
    IN_PROGRESS: "In Progress",
    COMPLETED: "Completed",
    CANCELLED: "Cancelled",
    NO_SHOW: "No Show",
    CANCELLATION_PENDING: "Cancellation Pending",
    RESCHEDULE_PENDING: "Reschedule Pending",
    RESCHEDULED: "Rescheduled",
}

BOOKING_STAFF = "staff"
BOOKING_PORTAL = "patient_portal"

PEDIATRIC = "pediatric"
OB_GYNE = "ob-gyne"


class StaffPatientRef(BaseModel):
    """Appointment booked by staff against a clinic patient record."""

    kind: Literal["staff"] = "staff"
    patient_id: Optional[str] = None
    record_id: Optional[str] = None
    patient_type: Optional[str] = None


class PortalPatientRef(BaseModel):
    """Appointment booked by a portal user for themselves or a dependent."""

    kind: Literal["portal"] = "portal"
    user_id: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None


PatientRef = Annotated[Union[StaffPatientRef, PortalPatientRef], Field(discriminator="kind")]


def _portal_ref(raw: Any) -> PortalPatientRef:
    if isinstance(raw, dict):
        return PortalPatientRef(
            user_id=raw.get("_id") or raw.get("id"),
            full_name=raw.get("fullName"),
            phone=raw.get("phoneNumber"),
        )
    return PortalPatientRef(user_id=str(raw))


def _staff_ref(raw: dict | None) -> StaffPatientRef:
    raw = raw or {}
    return StaffPatientRef(
        patient_id=raw.get("patientId"),
        record_id=raw.get("_id") or raw.get("id"),
        patient_type=raw.get("patientType"),
    )


def _staff_patient_name(patient: dict, fallback: str | None) -> str:
    if patient.get("patientType") == PEDIATRIC:
        name = (patient.get("pediatricRecord") or {}).get("nameOfChildren")
        return name or fallback or "Pediatric Patient"
    name = (patient.get("obGyneRecord") or {}).get("patientName")
    return name or fallback or "OB-GYNE Patient"


class Appointment(BaseModel):
    id: str
    patient: PatientRef
    patient_name: str
    contact_phone: str = ""
    doctor_name: str = ""
    appointment_date: Optional[dt.date] = None
    appointment_time: str = ""
    end_time: str = ""
    service_type: str = ""
    status: str = SCHEDULED
    booking_source: str = BOOKING_STAFF
    reason_for_visit: str = ""
    cancellation_reason: str = ""

    @classmethod
    def from_api(cls, payload: dict) -> "Appointment":
        """Resolve the backend's several appointment shapes into one record."""
        patient_user = payload.get("patientUserId")
        patient_obj = payload.get("patient") if isinstance(payload.get("patient"), dict) else None
        flat_name = payload.get("patientName")
        contact_info = payload.get("contactInfo") or {}

        if patient_user:
            ref: StaffPatientRef | PortalPatientRef = _portal_ref(patient_user)
            name = flat_name or ref.full_name or "Unknown Patient"
            phone = ref.phone or payload.get("contactNumber") or ""
        elif patient_obj is not None:
            ref = _staff_ref(patient_obj)
            name = _staff_patient_name(patient_obj, flat_name)
            phone = contact_info.get("primaryPhone") or payload.get("contactNumber") or ""
        else:
            ref = StaffPatientRef(patient_id=payload.get("patientId"))
            name = flat_name or "Unknown Patient"
            phone = contact_info.get("primaryPhone") or payload.get("contactNumber") or ""

        source = payload.get("bookingSource")
        if source not in (BOOKING_STAFF, BOOKING_PORTAL):
            source = BOOKING_PORTAL if isinstance(ref, PortalPatientRef) else BOOKING_STAFF

        return cls(
            id=str(payload.get("_id") or payload.get("id") or payload.get("appointmentId") or ""),
            patient=ref,
            patient_name=name,
            contact_phone=phone,
            doctor_name=payload.get("doctorName") or "",
            appointment_date=parse_local_date(payload.get("appointmentDate")),
            appointment_time=payload.get("appointmentTime") or "",
            end_time=payload.get("endTime") or "",
            service_type=payload.get("serviceType") or "",
            status=(payload.get("status") or SCHEDULED).lower(),
            booking_source=source,
            reason_for_visit=payload.get("reasonForVisit") or "",
            cancellation_reason=payload.get("cancellationReason") or "",
        )

    @property
    def starts_at(self) -> Optional[dt.datetime]:
        if self.appointment_date is None:
            return None
        return combine(self.appointment_date, self.appointment_time)

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, self.status.replace("_", " ").title())

    @property
    def service_label(self) -> str:
        return self.service_type.replace("_", " ").title()

    @property
    def booking_source_label(self) -> str:
        return "Patient Portal" if self.booking_source == BOOKING_PORTAL else "Staff"


class Patient(BaseModel):
    id: str
    patient_id: str = ""
    patient_type: str = PEDIATRIC
    name: str = ""
    contact_phone: str = ""
    status: str = "New"
    record: dict = Field(default_factory=dict)
    consultations: list[dict] = Field(default_factory=list)
    immunizations: list[dict] = Field(default_factory=list)

    @classmethod
    def from_api(cls, payload: dict) -> "Patient":
        patient_type = payload.get("patientType") or PEDIATRIC
        if patient_type == PEDIATRIC:
            record = payload.get("pediatricRecord") or {}
            name = record.get("nameOfChildren") or "Pediatric Patient"
        else:
            record = payload.get("obGyneRecord") or {}
            name = record.get("patientName") or "OB-GYNE Patient"
        contact = payload.get("contactInfo") or {}
        return cls(
            id=str(payload.get("_id") or payload.get("id") or payload.get("patientId") or ""),
            patient_id=payload.get("patientId") or "",
            patient_type=patient_type,
            name=name,
            contact_phone=contact.get("primaryPhone") or record.get("contactNumber") or "",
            status=payload.get("status") or "New",
            record=record,
            consultations=list(record.get("consultations") or payload.get("consultations") or []),
            immunizations=list(record.get("immunizations") or payload.get("immunizations") or []),
        )

    @property
    def type_label(self) -> str:
        return "OB-GYNE" if self.patient_type == OB_GYNE else "Pediatric"


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class DoctorSettings(BaseModel):
    name: str
    hours: dict[str, str] = Field(default_factory=dict)

    def works_on(self, day: dt.date) -> bool:
        return bool((self.hours.get(WEEKDAYS[day.weekday()]) or "").strip())


DEFAULT_OBGYNE = DoctorSettings(
    name="Dr. Maria Sarah L. Manaloto",
    hours={"monday": "8AM-12PM", "wednesday": "9AM-2PM", "friday": "1PM-5PM"},
)
DEFAULT_PEDIATRICIAN = DoctorSettings(
    name="Dr. Shara Laine S. Vino",
    hours={"monday": "1PM-5PM", "tuesday": "1PM-5PM", "thursday": "8AM-12PM"},
)


class ClinicSettings(BaseModel):
    clinic_name: str = "VM Mother and Child Clinic"
    address: str = ""
    phone: str = ""
    email: str = ""
    obgyne_doctor: DoctorSettings = Field(default_factory=lambda: DEFAULT_OBGYNE.model_copy(deep=True))
    pediatrician: DoctorSettings = Field(default_factory=lambda: DEFAULT_PEDIATRICIAN.model_copy(deep=True))

    @classmethod
    def from_api(cls, payload: dict | None) -> "ClinicSettings":
        payload = payload or {}
        defaults = cls()
        obgyne = payload.get("obgyneDoctor") or {}
        pedia = payload.get("pediatrician") or {}
        return cls(
            clinic_name=payload.get("clinicName") or defaults.clinic_name,
            address=payload.get("address") or "",
            phone=payload.get("phone") or "",
            email=payload.get("email") or "",
            obgyne_doctor=DoctorSettings(
                name=obgyne.get("name") or DEFAULT_OBGYNE.name,
                hours=_hours(obgyne.get("hours"), DEFAULT_OBGYNE.hours),
            ),
            pediatrician=DoctorSettings(
                name=pedia.get("name") or DEFAULT_PEDIATRICIAN.name,
                hours=_hours(pedia.get("hours"), DEFAULT_PEDIATRICIAN.hours),
            ),
        )

    def to_api(self) -> dict:
        return {
            "clinicName": self.clinic_name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "obgyneDoctor": {"name": self.obgyne_doctor.name, "hours": dict(self.obgyne_doctor.hours)},
            "pediatrician": {"name": self.pediatrician.name, "hours": dict(self.pediatrician.hours)},
        }


def _hours(raw: Any, default: dict[str, str]) -> dict[str, str]:
    if not isinstance(raw, dict):
        return dict(default)
    return {day: str(raw.get(day) or "") for day in WEEKDAYS if raw.get(day)}
