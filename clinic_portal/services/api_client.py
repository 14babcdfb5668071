"""HTTP client for the clinic REST backend.

One :class:`ClinicAPI` instance wraps one :class:`httpx.Client` and one bearer
token. Staff and patient sessions use separate instances (and separate token
keys) so a portal 401 never logs a staff member out, and vice versa.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from flask import current_app, g, session

log = logging.getLogger(__name__)

STAFF = "staff"
PATIENT = "patient"

TOKEN_KEYS = {
    STAFF: ("clinic_token", "clinic_refresh_token"),
    PATIENT: ("patient_token", "patient_refresh_token"),
}

GENERIC_ERROR = "An unexpected error occurred"


class APIError(Exception):
    """A backend call failed; ``message`` is safe to show to the user."""

    def __init__(self, message: str, *, status: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload


class SessionExpired(APIError):
    """The backend rejected the bearer token (HTTP 401)."""

    def __init__(self, scope: str, message: str = "Your session has expired. Please sign in again.") -> None:
        super().__init__(message, status=401)
        self.scope = scope


def normalize_base_url(url: str) -> str:
    url = (url or "").rstrip("/")
    return url if url.endswith("/api") else f"{url}/api"


def extract_data(body: Any) -> Any:
    if isinstance(body, dict) and "data" in body and body["data"] is not None:
        return body["data"]
    return body


def error_message(response: httpx.Response) -> str:
    """Pick the most useful message out of an error response."""
    if response.status_code == 429:
        retry_after = response.headers.get("retry-after") or "5"
        try:
            seconds = int(retry_after)
        except ValueError:
            seconds = 5
        return f"Too many requests. Please wait {seconds} seconds before trying again."
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            parts = []
            for err in errors:
                if isinstance(err, dict):
                    parts.append(str(err.get("msg") or err.get("message") or err))
                else:
                    parts.append(str(err))
            return ", ".join(parts)
        if body.get("message"):
            return str(body["message"])
    return response.reason_phrase or GENERIC_ERROR


class ClinicAPI:
    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        scope: str = STAFF,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = normalize_base_url(base_url)
        self.token = token
        self.scope = scope
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ClinicAPI":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: Any = None,
        allow_unauthorized: bool = False,
    ) -> Any:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if params:
            params = {k: v for k, v in params.items() if v not in (None, "")}
        try:
            response = self._client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            log.warning("%s %s failed: %s", method, path, exc)
            raise APIError("Unable to reach the clinic server. Please try again.") from exc

        if response.status_code == 401 and not allow_unauthorized:
            log.info("%s %s rejected the %s token", method, path, self.scope)
            raise SessionExpired(self.scope)
        if response.is_error:
            message = error_message(response)
            log.info("%s %s -> %s: %s", method, path, response.status_code, message)
            try:
                payload = response.json()
            except ValueError:
                payload = None
            raise APIError(message, status=response.status_code, payload=payload)
        if not response.content:
            return {}
        try:
            return extract_data(response.json())
        except ValueError:
            return {}

    def get(self, path: str, **kwargs) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs) -> Any:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs) -> Any:
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs) -> Any:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs) -> Any:
        return self.request("DELETE", path, **kwargs)


class _Endpoints:
    def __init__(self, api: ClinicAPI) -> None:
        self._api = api


class AuthEndpoints(_Endpoints):
    def login(self, credentials: dict) -> Any:
        return self._api.post("/auth/login", json=credentials, allow_unauthorized=True)

    def logout(self) -> Any:
        return self._api.post("/auth/logout")

    def refresh(self, refresh_token: str) -> Any:
        return self._api.post("/auth/refresh", json={"refreshToken": refresh_token})

    def profile(self) -> Any:
        return self._api.get("/auth/profile")

    def update_profile(self, data: dict) -> Any:
        return self._api.put("/auth/profile", json=data)

    def change_password(self, data: dict) -> Any:
        return self._api.put("/auth/change-password", json=data)


class AppointmentEndpoints(_Endpoints):
    def list(self, params: dict | None = None) -> Any:
        return self._api.get("/appointments", params=params or {})

    def get(self, appointment_id: str) -> Any:
        return self._api.get(f"/appointments/{appointment_id}")

    def create(self, data: dict) -> Any:
        return self._api.post("/appointments", json=data)

    def update(self, appointment_id: str, data: dict) -> Any:
        return self._api.put(f"/appointments/{appointment_id}", json=data)

    def update_status(self, appointment_id: str, data: dict) -> Any:
        return self._api.patch(f"/appointments/{appointment_id}/status", json=data)

    def reschedule(self, appointment_id: str, data: dict) -> Any:
        return self._api.patch(f"/appointments/{appointment_id}/reschedule", json=data)

    def approve_cancellation(self, appointment_id: str, data: dict | None = None) -> Any:
        return self._api.patch(f"/appointments/{appointment_id}/approve-cancellation", json=data or {})

    def reject_cancellation(self, appointment_id: str, data: dict | None = None) -> Any:
        return self._api.patch(f"/appointments/{appointment_id}/reject-cancellation", json=data or {})

    def daily(self, doctor_name: str, date: str) -> Any:
        return self._api.get("/appointments/daily", params={"doctorName": doctor_name, "date": date})


class PatientEndpoints(_Endpoints):
    def search(self, params: dict) -> Any:
        return self._api.get("/patients/search", params=params)

    def list(self, params: dict | None = None) -> Any:
        return self._api.get("/patients", params=params or {})

    def get(self, patient_id: str) -> Any:
        return self._api.get(f"/patients/{patient_id}")

    def stats(self) -> Any:
        return self._api.get("/patients/stats/overview")

    def create(self, data: dict) -> Any:
        return self._api.post("/patients", json=data)

    def update(self, patient_id: str, data: dict) -> Any:
        return self._api.put(f"/patients/{patient_id}", json=data)

    def delete(self, patient_id: str) -> Any:
        return self._api.delete(f"/patients/{patient_id}")

    def add_consultation(self, patient_id: str, data: dict) -> Any:
        return self._api.post(f"/patients/{patient_id}/consultations", json=data)

    def add_immunization(self, patient_id: str, data: dict) -> Any:
        return self._api.post(f"/patients/{patient_id}/immunizations", json=data)

    def add_note(self, patient_id: str, data: dict) -> Any:
        return self._api.post(f"/patients/{patient_id}/notes", json=data)


class ReportEndpoints(_Endpoints):
    def daily(self, params: dict | None = None) -> Any:
        return self._api.get("/reports/daily", params=params or {})

    def weekly(self, params: dict | None = None) -> Any:
        return self._api.get("/reports/weekly", params=params or {})

    def monthly(self, params: dict | None = None) -> Any:
        return self._api.get("/reports/monthly", params=params or {})

    def dashboard(self) -> Any:
        return self._api.get("/reports/dashboard")


class AvailabilityEndpoints(_Endpoints):
    def schedules(self) -> Any:
        return self._api.get("/availability/schedules")

    def slots(self, params: dict) -> Any:
        return self._api.get("/availability/slots", params=params)

    def summary(self, params: dict | None = None) -> Any:
        return self._api.get("/availability/summary", params=params or {})

    def check_slot(self, params: dict) -> Any:
        return self._api.get("/availability/check-slot", params=params)


class SettingsEndpoints(_Endpoints):
    def get_clinic(self) -> Any:
        return self._api.get("/settings/clinic")

    def update_clinic(self, data: dict) -> Any:
        return self._api.put("/settings/clinic", json=data)


class PatientAuthEndpoints(_Endpoints):
    def register(self, data: dict) -> Any:
        return self._api.post("/patient/auth/register", json=data, allow_unauthorized=True)

    def login(self, credentials: dict) -> Any:
        return self._api.post("/patient/auth/login", json=credentials, allow_unauthorized=True)

    def profile(self) -> Any:
        return self._api.get("/patient/auth/profile")

    def update_profile(self, data: dict) -> Any:
        return self._api.put("/patient/auth/profile", json=data)

    def change_password(self, data: dict) -> Any:
        return self._api.put("/patient/auth/change-password", json=data)


class PatientBookingEndpoints(_Endpoints):
    def doctors(self) -> Any:
        return self._api.get("/patient/booking/doctors")

    def available_dates(self, doctor_id: str) -> Any:
        return self._api.get("/patient/booking/available-dates", params={"doctorId": doctor_id})

    def available_slots(self, doctor_id: str, date: str) -> Any:
        return self._api.get("/patient/booking/available-slots", params={"doctorId": doctor_id, "date": date})

    def book(self, data: dict) -> Any:
        return self._api.post("/patient/booking/book-appointment", json=data)

    def my_appointments(self, params: dict | None = None) -> Any:
        return self._api.get("/patient/booking/my-appointments", params=params or {})

    def cancel(self, appointment_id: str, data: dict | None = None) -> Any:
        return self._api.put(f"/patient/booking/cancel-appointment/{appointment_id}", json=data or {})

    def request_cancellation(self, appointment_id: str, data: dict) -> Any:
        return self._api.post(f"/patient/booking/request-cancellation/{appointment_id}", json=data)

    def request_reschedule(self, appointment_id: str, data: dict) -> Any:
        return self._api.post(f"/patient/booking/request-reschedule/{appointment_id}", json=data)

    def accept_reschedule(self, appointment_id: str) -> Any:
        return self._api.post(f"/patient/booking/accept-reschedule/{appointment_id}")

    def cancel_reschedule(self, appointment_id: str) -> Any:
        return self._api.post(f"/patient/booking/cancel-reschedule/{appointment_id}")

    def accept_cancellation(self, appointment_id: str) -> Any:
        return self._api.post(f"/patient/booking/accept-cancellation/{appointment_id}")


class StaffAPI(ClinicAPI):
    def __init__(self, base_url: str, *, token: str | None = None, timeout: float = 30.0) -> None:
        super().__init__(base_url, token=token, scope=STAFF, timeout=timeout)
        self.auth = AuthEndpoints(self)
        self.appointments = AppointmentEndpoints(self)
        self.patients = PatientEndpoints(self)
        self.reports = ReportEndpoints(self)
        self.availability = AvailabilityEndpoints(self)
        self.settings = SettingsEndpoints(self)


class PatientAPI(ClinicAPI):
    def __init__(self, base_url: str, *, token: str | None = None, timeout: float = 30.0) -> None:
        super().__init__(base_url, token=token, scope=PATIENT, timeout=timeout)
        self.auth = PatientAuthEndpoints(self)
        self.booking = PatientBookingEndpoints(self)
        self.settings = SettingsEndpoints(self)


def staff_api() -> StaffAPI:
    """Request-scoped staff client carrying the session's staff token."""
    if "staff_api" not in g:
        g.staff_api = StaffAPI(
            current_app.config["CLINIC_API_URL"],
            token=session.get(TOKEN_KEYS[STAFF][0]),
            timeout=current_app.config["CLINIC_API_TIMEOUT"],
        )
    return g.staff_api


def patient_api() -> PatientAPI:
    """Request-scoped portal client carrying the session's patient token."""
    if "patient_api" not in g:
        g.patient_api = PatientAPI(
            current_app.config["CLINIC_API_URL"],
            token=session.get(TOKEN_KEYS[PATIENT][0]),
            timeout=current_app.config["CLINIC_API_TIMEOUT"],
        )
    return g.patient_api


def close_clients(_exc=None) -> None:
    for name in ("staff_api", "patient_api"):
        client = g.pop(name, None)
        if client is not None:
            client.close()


def clear_tokens(scope: str) -> None:
    for key in TOKEN_KEYS[scope]:
        session.pop(key, None)
