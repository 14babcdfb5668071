import httpx
import pytest
import respx

from clinic_portal.services.api_client import (
    APIError,
    PatientAPI,
    SessionExpired,
    StaffAPI,
    extract_data,
    normalize_base_url,
)

BASE = "http://api.test/api"


@pytest.fixture
def api():
    client = StaffAPI(BASE, token="tok")
    yield client
    client.close()


def test_normalize_base_url():
    assert normalize_base_url("http://api.test") == BASE
    assert normalize_base_url("http://api.test/api/") == BASE


def test_extract_data():
    assert extract_data({"success": True, "data": {"a": 1}}) == {"a": 1}
    assert extract_data({"data": None, "x": 1}) == {"data": None, "x": 1}
    assert extract_data([1, 2]) == [1, 2]


def test_bearer_token_and_data_envelope(api):
    with respx.mock(base_url=BASE) as m:
        route = m.get("/appointments").respond(200, json={"success": True, "data": {"appointments": []}})
        assert api.appointments.list({"limit": 1000, "status": "", "doctor": None}) == {"appointments": []}
    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer tok"
    assert dict(request.url.params) == {"limit": "1000"}


def test_empty_body_is_empty_dict(api):
    with respx.mock(base_url=BASE) as m:
        m.patch("/appointments/a1/status").respond(204)
        assert api.appointments.update_status("a1", {"status": "confirmed"}) == {}


def test_401_raises_session_expired(api):
    with respx.mock(base_url=BASE) as m:
        m.get("/reports/dashboard").respond(401, json={"message": "Token expired"})
        with pytest.raises(SessionExpired) as info:
            api.reports.dashboard()
    assert info.value.scope == "staff"
    assert info.value.status == 401


def test_login_401_is_an_ordinary_error():
    with StaffAPI(BASE) as api, respx.mock(base_url=BASE) as m:
        m.post("/auth/login").respond(401, json={"message": "Invalid credentials"})
        with pytest.raises(APIError) as info:
            api.auth.login({"username": "x", "password": "y"})
    assert not isinstance(info.value, SessionExpired)
    assert info.value.message == "Invalid credentials"


def test_validation_errors_are_joined(api):
    with respx.mock(base_url=BASE) as m:
        m.post("/patients").respond(
            400, json={"errors": [{"msg": "Name is required"}, {"message": "Phone is invalid"}, "Bad date"]}
        )
        with pytest.raises(APIError) as info:
            api.patients.create({})
    assert info.value.message == "Name is required, Phone is invalid, Bad date"
    assert info.value.status == 400


def test_rate_limited_message(api):
    with respx.mock(base_url=BASE) as m:
        m.get("/patients").respond(429, headers={"Retry-After": "12"})
        with pytest.raises(APIError) as info:
            api.patients.list()
    assert info.value.message == "Too many requests. Please wait 12 seconds before trying again."


def test_error_without_body_uses_reason_phrase(api):
    with respx.mock(base_url=BASE) as m:
        m.get("/patients/p1").respond(404, text="nope")
        with pytest.raises(APIError) as info:
            api.patients.get("p1")
    assert info.value.message == "Not Found"


def test_transport_error(api):
    with respx.mock(base_url=BASE) as m:
        m.get("/settings/clinic").mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(APIError) as info:
            api.settings.get_clinic()
    assert info.value.message == "Unable to reach the clinic server. Please try again."
    assert info.value.status is None


def test_patient_booking_endpoints():
    with PatientAPI(BASE, token="ptok") as api, respx.mock(base_url=BASE) as m:
        dates = m.get("/patient/booking/available-dates").respond(200, json={"data": {"availableDates": []}})
        accept = m.post("/patient/booking/accept-reschedule/a1").respond(200, json={"success": True})
        m.get("/patient/booking/my-appointments").respond(401)

        assert api.booking.available_dates("ob-gyne") == {"availableDates": []}
        api.booking.accept_reschedule("a1")
        with pytest.raises(SessionExpired) as info:
            api.booking.my_appointments()
    assert info.value.scope == "patient"
    assert dates.calls.last.request.url.params["doctorId"] == "ob-gyne"
    assert accept.calls.last.request.headers["Authorization"] == "Bearer ptok"
