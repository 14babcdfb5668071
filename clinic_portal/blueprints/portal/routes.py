from __future__ import annotations

from datetime import date, datetime

from flask import Blueprint, abort, current_app, g, redirect, request, url_for
from flask_wtf import FlaskForm

from clinic_portal.auth import (
    current_patient,
    end_patient_session,
    patient_required,
    start_patient_session,
    update_patient_profile,
)
from clinic_portal.forms import (
    BookingForm,
    CancellationRequestForm,
    ChangePasswordForm,
    PatientLoginForm,
    PatientProfileForm,
    PatientRegisterForm,
    RescheduleRequestForm,
)
from clinic_portal.records import (
    CANCELLATION_PENDING,
    CANCELLED,
    CONFIRMED,
    RESCHEDULE_PENDING,
    SCHEDULED,
    Appointment,
    ClinicSettings,
)
from clinic_portal.services import notifications
from clinic_portal.services.api_client import PATIENT, APIError, SessionExpired, patient_api
from clinic_portal.services.appointments import fetch_patient_appointments
from clinic_portal.services.security import record_login, record_logout
from clinic_portal.services.settings_store import cached_settings
from clinic_portal.services.timefmt import week_bounds
from clinic_portal.services.ui import render_page

bp = Blueprint("portal", __name__, url_prefix="/patient")

UPCOMING_STATUSES = (SCHEDULED, CONFIRMED, CANCELLATION_PENDING, RESCHEDULE_PENDING)
CHANGEABLE_STATUSES = (SCHEDULED, CONFIRMED)

STATUS_FILTERS = [
    ("all", "All"),
    ("scheduled", "Scheduled"),
    ("confirmed", "Confirmed"),
    ("completed", "Completed"),
    ("cancelled", "Cancelled"),
    ("reschedule_pending", "Reschedule Pending"),
    ("no-show", "No Show"),
]
RANGE_FILTERS = [("all", "All Time"), ("week", "This Week"), ("month", "This Month")]

# patient replies to a staff-initiated change
RESPONSES = {
    "accept-reschedule": (RESCHEDULE_PENDING, "accept_reschedule", "Reschedule accepted"),
    "cancel-reschedule": (RESCHEDULE_PENDING, "cancel_reschedule", "Reschedule request withdrawn"),
    "accept-cancellation": (CANCELLATION_PENDING, "accept_cancellation", "Cancellation accepted"),
}


def _safe_next(target: str | None) -> str | None:
    if target and target.startswith("/patient") and not target.startswith("//"):
        return target
    return None


def _public_settings() -> ClinicSettings:
    """Clinic details for pages that may be shown before sign-in."""
    try:
        payload = patient_api().settings.get_clinic()
    except SessionExpired:
        return cached_settings() or ClinicSettings()
    except APIError as exc:
        current_app.logger.info("clinic settings unavailable: %s", exc.message)
        return cached_settings() or ClinicSettings()
    return ClinicSettings.from_api(payload if isinstance(payload, dict) else {})


def _my_appointments() -> list[Appointment]:
    try:
        return fetch_patient_appointments(patient_api())
    except SessionExpired:
        raise
    except APIError as exc:
        notifications.error(f"Failed to load appointments: {exc.message}")
        return []


def _upcoming(appointments: list[Appointment], today: date) -> list[Appointment]:
    rows = [
        a for a in appointments
        if a.status in UPCOMING_STATUSES and a.appointment_date is not None and a.appointment_date >= today
    ]
    rows.sort(key=lambda a: a.starts_at)
    return rows


def _find(appointments: list[Appointment], appointment_id: str) -> Appointment:
    for appt in appointments:
        if appt.id == appointment_id:
            return appt
    abort(404)


def _matches_status(appt: Appointment, wanted: str) -> bool:
    if wanted == "all":
        return True
    if wanted == CANCELLED:
        return appt.status in (CANCELLED, CANCELLATION_PENDING)
    return appt.status == wanted


def _matches_range(appt: Appointment, wanted: str, today: date) -> bool:
    if wanted == "all":
        return True
    day = appt.appointment_date
    if day is None:
        return False
    if wanted == "week":
        start, end = week_bounds(today)
        return start <= day <= end
    return (day.year, day.month) == (today.year, today.month)


@bp.route("/", methods=["GET"], endpoint="landing")
def landing():
    if current_patient() is not None:
        return redirect(url_for("portal.dashboard"))
    return render_page("portal/landing.html", settings=_public_settings())


@bp.route("/login", methods=["GET", "POST"], endpoint="login")
def login():
    if current_patient() is not None:
        return redirect(url_for("portal.dashboard"))
    form = PatientLoginForm()
    if form.validate_on_submit():
        email = form.email.data.strip().lower()
        try:
            data = patient_api().auth.login({"email": email, "password": form.password.data})
        except APIError as exc:
            record_login(email, success=False, scope=PATIENT)
            notifications.error(exc.message)
        else:
            if not isinstance(data, dict) or not data.get("token"):
                record_login(email, success=False, scope=PATIENT)
                notifications.error("Login failed. Please try again.")
            else:
                patient = start_patient_session(data)
                record_login(email, success=True, scope=PATIENT)
                notifications.success(f"Welcome back, {patient.first_name or patient.full_name}!")
                return redirect(_safe_next(request.args.get("next")) or url_for("portal.dashboard"))
    return render_page("portal/login.html", form=form)


@bp.route("/register", methods=["GET", "POST"], endpoint="register")
def register():
    if current_patient() is not None:
        return redirect(url_for("portal.dashboard"))
    form = PatientRegisterForm()
    if form.validate_on_submit():
        try:
            data = patient_api().auth.register(form.to_payload())
        except APIError as exc:
            notifications.error(exc.message)
        else:
            if isinstance(data, dict) and data.get("token"):
                patient = start_patient_session(data)
                notifications.success(f"Welcome to VM Clinic, {patient.first_name or form.first_name.data}!")
                return redirect(url_for("portal.dashboard"))
            notifications.success("Registration successful. Please sign in.")
            return redirect(url_for("portal.login"))
    return render_page("portal/register.html", form=form)


@bp.route("/logout", methods=["POST"], endpoint="logout")
def logout():
    patient = current_patient()
    end_patient_session()
    record_logout(patient.email if patient else None, scope=PATIENT)
    notifications.notify("You have been logged out")
    return redirect(url_for("portal.login"))


@bp.route("/dashboard", methods=["GET"], endpoint="dashboard")
@patient_required
def dashboard():
    today = date.today()
    appointments = _my_appointments()
    return render_page(
        "portal/dashboard.html",
        patient=g.patient,
        upcoming=_upcoming(appointments, today),
        recent=sorted(appointments, key=lambda a: a.starts_at or datetime.min, reverse=True)[:5],
        settings=_public_settings(),
    )


def _load_doctors() -> list[dict]:
    try:
        payload = patient_api().booking.doctors()
    except SessionExpired:
        raise
    except APIError as exc:
        notifications.error(f"Failed to load doctors: {exc.message}")
        return []
    doctors = payload.get("doctors") if isinstance(payload, dict) else payload
    return [d for d in doctors or [] if isinstance(d, dict) and d.get("_id")]


def _available_dates(doctor_id: str) -> list[str]:
    try:
        payload = patient_api().booking.available_dates(doctor_id)
    except SessionExpired:
        raise
    except APIError as exc:
        notifications.error(f"Failed to load available dates: {exc.message}")
        return []
    dates = payload.get("availableDates") if isinstance(payload, dict) else payload
    return [str(d).split("T")[0] for d in dates or []]


def _available_slots(doctor_id: str, day: str) -> list[str]:
    try:
        payload = patient_api().booking.available_slots(doctor_id, day)
    except SessionExpired:
        raise
    except APIError as exc:
        notifications.error(f"Failed to load available time slots: {exc.message}")
        return []
    slots = payload.get("slots") if isinstance(payload, dict) else payload
    return [str(s) for s in slots or []]


def _booking_payload(form: BookingForm, doctor: dict) -> dict:
    payload = {
        "doctorName": doctor.get("name"),
        "appointmentDate": form.appointment_date.data,
        "appointmentTime": form.appointment_time.data,
        "serviceType": doctor.get("specialty") or "General Consultation",
        "patientType": form.patient_type.data,
        "patientName": form.patient_name.data.strip(),
        "contactNumber": form.contact_number.data.strip(),
        "reasonForVisit": (form.reason.data or "").strip(),
    }
    if form.patient_type.data == "dependent":
        payload["dependentInfo"] = {
            "name": form.patient_name.data.strip(),
            "relationship": (form.relationship.data or "").strip(),
            "age": (form.dependent_age.data or "").strip(),
        }
    return payload


@bp.route("/book-appointment", methods=["GET", "POST"], endpoint="book")
@patient_required
def book_appointment():
    """Doctor, then an available date, then a free slot."""
    patient = g.patient
    existing = _upcoming(_my_appointments(), date.today())
    doctors = _load_doctors()
    form = BookingForm()

    doctor_id = request.values.get("doctor") or form.doctor_id.data or ""
    doctor = next((d for d in doctors if d["_id"] == doctor_id), None)
    dates = _available_dates(doctor["_id"]) if doctor else []
    chosen = request.values.get("date") or form.appointment_date.data or ""
    slots = _available_slots(doctor["_id"], chosen) if doctor and chosen in dates else []

    if request.method == "GET":
        form.doctor_id.data = doctor_id
        form.appointment_date.data = chosen
        form.patient_name.data = patient.full_name
        form.contact_number.data = patient.phone
        if chosen and dates and chosen not in dates:
            notifications.notify("Please select an available date for this doctor", "warn")

    if request.method == "POST" and form.validate():
        if existing:
            notifications.error("You already have an upcoming appointment")
        elif doctor is None:
            notifications.error("Please select doctor, date, and time slot")
        elif form.appointment_date.data not in dates:
            notifications.error("Please select an available date for this doctor")
        elif form.appointment_time.data not in slots:
            notifications.error("That time slot is no longer available")
        else:
            try:
                patient_api().booking.book(_booking_payload(form, doctor))
            except SessionExpired:
                raise
            except APIError as exc:
                notifications.error(exc.message)
            else:
                notifications.success("Appointment booked successfully!")
                return redirect(url_for("portal.dashboard"))

    return render_page(
        "portal/book.html",
        form=form,
        doctors=doctors,
        doctor=doctor,
        dates=dates,
        chosen=chosen if chosen in dates else "",
        slots=slots,
        existing=existing[0] if existing else None,
    )


@bp.route("/appointments", methods=["GET"], endpoint="appointments")
@patient_required
def my_appointments():
    today = date.today()
    status = request.args.get("status") or "all"
    if status not in dict(STATUS_FILTERS):
        status = "all"
    date_range = request.args.get("range") or "all"
    if date_range not in dict(RANGE_FILTERS):
        date_range = "all"
    appointments = _my_appointments()
    visible = [
        a for a in appointments
        if _matches_status(a, status) and _matches_range(a, date_range, today)
    ]
    visible.sort(key=lambda a: a.starts_at or datetime.min, reverse=True)
    return render_page(
        "portal/appointments.html",
        appointments=visible,
        status=status,
        date_range=date_range,
        status_filters=STATUS_FILTERS,
        range_filters=RANGE_FILTERS,
        changeable=CHANGEABLE_STATUSES,
        responses=RESPONSES,
        action_form=FlaskForm(),
    )


@bp.route("/appointments/<appointment_id>/request-cancellation", methods=["GET", "POST"], endpoint="request_cancellation")
@patient_required
def request_cancellation(appointment_id: str):
    appt = _find(_my_appointments(), appointment_id)
    if appt.status not in CHANGEABLE_STATUSES:
        notifications.error(f"Cannot request cancellation for a {appt.status_label.lower()} appointment")
        return redirect(url_for("portal.appointments"))
    form = CancellationRequestForm()
    if form.validate_on_submit():
        try:
            patient_api().booking.request_cancellation(appointment_id, {"reason": form.reason.data.strip()})
        except SessionExpired:
            raise
        except APIError as exc:
            notifications.error(exc.message)
        else:
            notifications.success("Cancellation request submitted")
            return redirect(url_for("portal.appointments"))
    return render_page("portal/request_change.html", appt=appt, form=form, kind="cancellation")


@bp.route("/appointments/<appointment_id>/request-reschedule", methods=["GET", "POST"], endpoint="request_reschedule")
@patient_required
def request_reschedule(appointment_id: str):
    appt = _find(_my_appointments(), appointment_id)
    if appt.status not in CHANGEABLE_STATUSES:
        notifications.error(f"Cannot request a reschedule for a {appt.status_label.lower()} appointment")
        return redirect(url_for("portal.appointments"))
    form = RescheduleRequestForm()
    if form.validate_on_submit():
        payload = {"reason": form.reason.data.strip()}
        if form.preferred_date.data:
            payload["preferredDate"] = form.preferred_date.data.isoformat()
        if form.preferred_time.data:
            payload["preferredTime"] = form.preferred_time.data
        try:
            patient_api().booking.request_reschedule(appointment_id, payload)
        except SessionExpired:
            raise
        except APIError as exc:
            notifications.error(exc.message)
        else:
            notifications.success("Reschedule request submitted")
            return redirect(url_for("portal.appointments"))
    return render_page("portal/request_change.html", appt=appt, form=form, kind="reschedule")


@bp.route("/appointments/<appointment_id>/<response>", methods=["POST"], endpoint="respond")
@patient_required
def respond(appointment_id: str, response: str):
    if response not in RESPONSES:
        abort(404)
    required_status, call, message = RESPONSES[response]
    form = FlaskForm()
    if not form.validate_on_submit():
        notifications.error("Your form expired. Please try again.")
        return redirect(url_for("portal.appointments"))
    appt = _find(_my_appointments(), appointment_id)
    if appt.status != required_status:
        notifications.error(f"This appointment is {appt.status_label.lower()}")
        return redirect(url_for("portal.appointments"))
    try:
        getattr(patient_api().booking, call)(appointment_id)
    except SessionExpired:
        raise
    except APIError as exc:
        notifications.error(exc.message)
    else:
        notifications.success(message)
    return redirect(url_for("portal.appointments"))


def _fill_profile(form: PatientProfileForm, profile: dict) -> None:
    address = profile.get("address") if isinstance(profile.get("address"), dict) else {}
    emergency = profile.get("emergencyContact") if isinstance(profile.get("emergencyContact"), dict) else {}
    form.first_name.data = profile.get("firstName") or ""
    form.last_name.data = profile.get("lastName") or ""
    form.phone_number.data = profile.get("phoneNumber") or ""
    form.street.data = address.get("street") or ""
    form.city.data = address.get("city") or ""
    form.province.data = address.get("province") or ""
    form.zip_code.data = address.get("zipCode") or ""
    form.emergency_name.data = emergency.get("name") or ""
    form.emergency_relationship.data = emergency.get("relationship") or ""
    form.emergency_phone.data = emergency.get("phoneNumber") or ""


@bp.route("/profile", methods=["GET", "POST"], endpoint="profile")
@patient_required
def profile():
    patient = g.patient
    form = PatientProfileForm()
    password_form = ChangePasswordForm(formdata=None)
    if request.method == "GET":
        _fill_profile(form, patient.profile or {})
    if form.validate_on_submit():
        data = form.to_payload()
        try:
            updated = patient_api().auth.update_profile(data)
        except SessionExpired:
            raise
        except APIError as exc:
            notifications.error(exc.message)
        else:
            merged = dict(patient.profile or {})
            if isinstance(updated, dict) and isinstance(updated.get("user"), dict):
                merged.update(updated["user"])
            else:
                merged.update(data)
            merged["fullName"] = f"{merged.get('firstName', '')} {merged.get('lastName', '')}".strip()
            update_patient_profile(merged)
            notifications.success("Profile updated successfully")
            return redirect(url_for("portal.profile"))
    return render_page("portal/profile.html", patient=patient, form=form, password_form=password_form)


@bp.route("/profile/password", methods=["POST"], endpoint="change_password")
@patient_required
def change_password():
    patient = g.patient
    password_form = ChangePasswordForm()
    if password_form.validate_on_submit():
        try:
            patient_api().auth.change_password(
                {
                    "currentPassword": password_form.current_password.data,
                    "newPassword": password_form.new_password.data,
                }
            )
        except SessionExpired:
            raise
        except APIError as exc:
            notifications.error(exc.message)
        else:
            notifications.success("Password changed successfully")
            return redirect(url_for("portal.profile"))
    form = PatientProfileForm(formdata=None)
    _fill_profile(form, patient.profile or {})
    return render_page("portal/profile.html", patient=patient, form=form, password_form=password_form)


@bp.route("/appointments/<appointment_id>", methods=["GET"], endpoint="appointment")
@patient_required
def appointment_detail(appointment_id: str):
    appt = _find(_my_appointments(), appointment_id)
    return render_page(
        "portal/appointment.html",
        appt=appt,
        changeable=CHANGEABLE_STATUSES,
        responses=RESPONSES,
        action_form=FlaskForm(),
    )
