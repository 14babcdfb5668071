import datetime as dt
import json

import pytest

from tests.helpers import appt_payload

DOCTORS = {"data": {"doctors": [{"_id": "d1", "name": "Dr. Maria Sarah L. Manaloto", "specialty": "OB-GYNE"}]}}
OPEN_DAY = (dt.date.today() + dt.timedelta(days=7)).isoformat()
CLOSED_DAY = (dt.date.today() + dt.timedelta(days=8)).isoformat()


def mine(*appointments):
    return {"success": True, "data": {"appointments": list(appointments)}}


def flashes(client):
    with client.session_transaction() as sess:
        return list(sess.get("_flashes", []))


@pytest.fixture
def booking(backend):
    backend.get("/patient/booking/my-appointments").respond(200, json=mine())
    backend.get("/patient/booking/doctors").respond(200, json=DOCTORS)
    backend.get("/patient/booking/available-dates").respond(200, json={"data": {"availableDates": [OPEN_DAY]}})
    backend.get("/patient/booking/available-slots").respond(200, json={"data": {"slots": ["09:00 AM", "09:30 AM"]}})
    return backend.post("/patient/booking/book-appointment").respond(201, json={"success": True})


def booking_form(**overrides):
    data = {
        "doctor_id": "d1",
        "appointment_date": OPEN_DAY,
        "appointment_time": "09:00 AM",
        "patient_type": "self",
        "patient_name": "Liza Cruz",
        "contact_number": "0917 123 4567",
    }
    data.update(overrides)
    return data


def test_landing_is_public(client, backend):
    assert client.get("/patient/").status_code == 200


def test_portal_pages_require_patient_login(client):
    response = client.get("/patient/dashboard")
    assert response.status_code == 302
    assert "/patient/login" in response.headers["Location"]


def test_staff_login_does_not_open_the_portal(staff_client):
    assert staff_client.get("/patient/dashboard").status_code == 302


def test_patient_login(client, backend):
    route = backend.post("/patient/auth/login").respond(
        200, json={"data": {"token": "pt", "user": {"_id": "p1", "firstName": "Liza", "email": "liza@example.com"}}}
    )
    response = client.post("/patient/login", data={"email": "Liza@Example.com", "password": "secret123"})
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/patient/dashboard")
    assert json.loads(route.calls.last.request.content)["email"] == "liza@example.com"
    assert ("ok", "Welcome back, Liza!") in flashes(client)
    with client.session_transaction() as sess:
        assert sess["patient_token"] == "pt"
        assert "clinic_token" not in sess


def test_dashboard_lists_upcoming(patient_client, backend):
    backend.get("/patient/booking/my-appointments").respond(
        200, json=mine(appt_payload(patientUserId="p1", appointmentDate=OPEN_DAY, patientName="Liza Cruz"))
    )
    response = patient_client.get("/patient/dashboard")
    assert response.status_code == 200
    assert b"Liza Cruz" in response.data


def test_booking_flow_books_a_free_slot(patient_client, booking):
    response = patient_client.post("/patient/book-appointment", data=booking_form())
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/patient/dashboard")
    body = json.loads(booking.calls.last.request.content)
    assert body["doctorName"] == "Dr. Maria Sarah L. Manaloto"
    assert body["appointmentDate"] == OPEN_DAY
    assert body["appointmentTime"] == "09:00 AM"
    assert body["serviceType"] == "OB-GYNE"
    assert "dependentInfo" not in body


def test_booking_for_a_dependent(patient_client, booking):
    patient_client.post(
        "/patient/book-appointment",
        data=booking_form(patient_type="dependent", patient_name="Baby Cruz", relationship="Daughter", dependent_age="2"),
    )
    body = json.loads(booking.calls.last.request.content)
    assert body["dependentInfo"] == {"name": "Baby Cruz", "relationship": "Daughter", "age": "2"}


def test_booking_rejects_unavailable_date(patient_client, booking):
    response = patient_client.post("/patient/book-appointment", data=booking_form(appointment_date=CLOSED_DAY))
    assert response.status_code == 200
    assert b"Please select an available date for this doctor" in response.data
    assert not booking.called


def test_booking_rejects_taken_slot(patient_client, booking):
    response = patient_client.post("/patient/book-appointment", data=booking_form(appointment_time="04:00 PM"))
    assert b"That time slot is no longer available" in response.data
    assert not booking.called


def test_booking_blocked_by_upcoming_appointment(patient_client, backend, booking):
    backend.get("/patient/booking/my-appointments").respond(
        200, json=mine(appt_payload(patientUserId="p1", appointmentDate=OPEN_DAY))
    )
    response = patient_client.post("/patient/book-appointment", data=booking_form())
    assert b"You already have an upcoming appointment" in response.data
    assert not booking.called


def test_request_cancellation(patient_client, backend):
    backend.get("/patient/booking/my-appointments").respond(200, json=mine(appt_payload(patientUserId="p1")))
    route = backend.post("/patient/booking/request-cancellation/a1").respond(200, json={"success": True})
    response = patient_client.post("/patient/appointments/a1/request-cancellation", data={"reason": " Out of town "})
    assert response.status_code == 302
    assert json.loads(route.calls.last.request.content) == {"reason": "Out of town"}


def test_request_reschedule_only_for_open_appointments(patient_client, backend):
    backend.get("/patient/booking/my-appointments").respond(
        200, json=mine(appt_payload(patientUserId="p1", status="completed"))
    )
    route = backend.post("/patient/booking/request-reschedule/a1").respond(200)
    response = patient_client.post("/patient/appointments/a1/request-reschedule", data={"reason": "Busy"})
    assert response.status_code == 302
    assert not route.called


def test_accept_reschedule(patient_client, backend):
    backend.get("/patient/booking/my-appointments").respond(
        200, json=mine(appt_payload(patientUserId="p1", status="reschedule_pending"))
    )
    route = backend.post("/patient/booking/accept-reschedule/a1").respond(200, json={"success": True})
    response = patient_client.post("/patient/appointments/a1/accept-reschedule")
    assert response.status_code == 302
    assert route.called
    assert ("ok", "Reschedule accepted") in flashes(patient_client)


def test_response_requires_matching_status(patient_client, backend):
    backend.get("/patient/booking/my-appointments").respond(200, json=mine(appt_payload(patientUserId="p1")))
    route = backend.post("/patient/booking/accept-cancellation/a1").respond(200)
    patient_client.post("/patient/appointments/a1/accept-cancellation")
    assert not route.called


def test_unknown_appointment_is_404(patient_client, backend):
    backend.get("/patient/booking/my-appointments").respond(200, json=mine())
    assert patient_client.get("/patient/appointments/missing").status_code == 404


def test_expired_patient_token_keeps_staff_session(patient_client, backend):
    with patient_client.session_transaction() as sess:
        sess["clinic_token"] = "staff-token"
    backend.get("/patient/booking/my-appointments").respond(401)
    response = patient_client.get("/patient/appointments")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/patient/login")
    with patient_client.session_transaction() as sess:
        assert "patient_token" not in sess
        assert sess["clinic_token"] == "staff-token"
