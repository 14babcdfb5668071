"""Staff settings page with tabs for clinic details, profile, password and calendar colours."""

from __future__ import annotations

from flask import Blueprint, jsonify, redirect, request, url_for
from flask_login import current_user

from clinic_portal.auth import staff_required, update_staff_profile
from clinic_portal.extensions import csrf
from clinic_portal.forms import ChangePasswordForm, ClinicSettingsForm, StaffProfileForm
from clinic_portal.records import WEEKDAYS, ClinicSettings, DoctorSettings
from clinic_portal.services import notifications
from clinic_portal.services.api_client import APIError, SessionExpired, staff_api
from clinic_portal.services.csrf import ensure_csrf_token
from clinic_portal.services.doctors import reset_doctor_colors, set_doctor_color
from clinic_portal.services.settings_store import clinic_settings, doctor_registry, save_settings
from clinic_portal.services.ui import render_page

bp = Blueprint("settings", __name__, url_prefix="/settings")

TABS = ("clinic", "profile", "password", "colors")


def _fill_clinic_form(form: ClinicSettingsForm, settings: ClinicSettings) -> None:
    form.clinic_name.data = settings.clinic_name
    form.address.data = settings.address
    form.phone.data = settings.phone
    form.email.data = settings.email
    form.obgyne_name.data = settings.obgyne_doctor.name
    form.pediatrician_name.data = settings.pediatrician.name
    for day in WEEKDAYS:
        getattr(form, f"obgyne_{day}").data = settings.obgyne_doctor.hours.get(day, "")
        getattr(form, f"pediatrician_{day}").data = settings.pediatrician.hours.get(day, "")


def _render(tab: str, **forms):
    api = staff_api()
    settings = clinic_settings(api)
    clinic_form = forms.get("clinic_form") or ClinicSettingsForm(formdata=None)
    if "clinic_form" not in forms:
        _fill_clinic_form(clinic_form, settings)
    profile_form = forms.get("profile_form") or StaffProfileForm(formdata=None)
    if "profile_form" not in forms:
        profile_form.first_name.data = current_user.first_name
        profile_form.last_name.data = current_user.last_name
        profile_form.email.data = current_user.email
    return render_page(
        "settings/index.html",
        tab=tab if tab in TABS else "clinic",
        settings=settings,
        registry=doctor_registry(api),
        clinic_form=clinic_form,
        profile_form=profile_form,
        password_form=forms.get("password_form") or ChangePasswordForm(formdata=None),
        weekdays=WEEKDAYS,
    )


@bp.route("/", methods=["GET"], endpoint="index")
@staff_required
def index():
    return _render(request.args.get("tab") or "clinic")


@bp.route("/clinic", methods=["POST"], endpoint="clinic")
@staff_required
def update_clinic():
    form = ClinicSettingsForm()
    if not form.validate():
        return _render("clinic", clinic_form=form)
    settings = ClinicSettings(
        clinic_name=form.clinic_name.data.strip(),
        address=(form.address.data or "").strip(),
        phone=(form.phone.data or "").strip(),
        email=(form.email.data or "").strip(),
        obgyne_doctor=DoctorSettings(name=form.obgyne_name.data.strip(), hours=form.hours_for("obgyne")),
        pediatrician=DoctorSettings(name=form.pediatrician_name.data.strip(), hours=form.hours_for("pediatrician")),
    )
    try:
        save_settings(staff_api(), settings)
    except SessionExpired:
        raise
    except APIError as exc:
        notifications.notify(f"Saved locally; server update failed: {exc.message}", "warn")
    else:
        notifications.success("Clinic settings saved")
    return redirect(url_for("settings.index", tab="clinic"))


@bp.route("/profile", methods=["POST"], endpoint="profile")
@staff_required
def update_profile():
    form = StaffProfileForm()
    if not form.validate():
        return _render("profile", profile_form=form)
    data = {
        "firstName": form.first_name.data.strip(),
        "lastName": form.last_name.data.strip(),
        "email": (form.email.data or "").strip(),
    }
    try:
        updated = staff_api().auth.update_profile(data)
    except SessionExpired:
        raise
    except APIError as exc:
        notifications.error(exc.message)
        return _render("profile", profile_form=form)
    profile = dict(current_user.profile)
    if isinstance(updated, dict):
        profile.update(updated.get("user") if isinstance(updated.get("user"), dict) else updated)
    else:
        profile.update(data)
    update_staff_profile(profile)
    notifications.success("Profile updated successfully")
    return redirect(url_for("settings.index", tab="profile"))


@bp.route("/password", methods=["POST"], endpoint="password")
@staff_required
def change_password():
    form = ChangePasswordForm()
    if not form.validate():
        return _render("password", password_form=form)
    try:
        staff_api().auth.change_password(
            {"currentPassword": form.current_password.data, "newPassword": form.new_password.data}
        )
    except SessionExpired:
        raise
    except APIError as exc:
        notifications.error(exc.message)
        return _render("password", password_form=form)
    notifications.success("Password changed successfully")
    return redirect(url_for("settings.index", tab="password"))


@bp.route("/colors/update", methods=["POST"], endpoint="update_color")
@csrf.exempt
@staff_required
def update_color():
    """Update a doctor's calendar colour via AJAX."""
    data = request.get_json(silent=True) or {}
    ensure_csrf_token(data)
    doctor_id = data.get("doctor_id")
    color = data.get("color")
    if not doctor_id or not color:
        return jsonify({"success": False, "errors": ["Doctor ID and color are required"]}), 400
    doctor_registry(staff_api())
    try:
        set_doctor_color(doctor_id, color)
    except KeyError:
        return jsonify({"success": False, "errors": [f"Unknown doctor: {doctor_id}"]}), 404
    except ValueError as exc:
        return jsonify({"success": False, "errors": [str(exc)]}), 400
    return jsonify({"success": True})


@bp.route("/colors/reset", methods=["POST"], endpoint="reset_colors")
@csrf.exempt
@staff_required
def reset_colors():
    """Reset all doctor colours to defaults via AJAX."""
    ensure_csrf_token(request.get_json(silent=True) or {})
    reset_doctor_colors()
    return jsonify({"success": True})
