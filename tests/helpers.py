from clinic_portal.records import Appointment

API = "http://api.test/api"


def appt_payload(**overrides):
    payload = {
        "_id": "a1",
        "patientName": "Juan Dela Cruz",
        "contactNumber": "09171234567",
        "doctorName": "Dr. Maria Sarah L. Manaloto",
        "appointmentDate": "2026-10-19T00:00:00.000Z",
        "appointmentTime": "09:00 AM",
        "serviceType": "PRENATAL_CHECKUP",
        "status": "scheduled",
        "bookingSource": "staff",
    }
    payload.update(overrides)
    return payload


def make_appt(**overrides) -> Appointment:
    return Appointment.from_api(appt_payload(**overrides))
