from __future__ import annotations

from datetime import date

from flask import Blueprint, current_app, redirect, url_for
from flask_login import current_user

from clinic_portal.auth import staff_required
from clinic_portal.records import CANCELLATION_PENDING, RESCHEDULE_PENDING
from clinic_portal.services import notifications
from clinic_portal.services.api_client import APIError, SessionExpired, staff_api
from clinic_portal.services.appointments import fetch_all
from clinic_portal.services.filters import AppointmentFilter, apply_filter, group_by_doctor
from clinic_portal.services.settings_store import clinic_settings, doctor_registry
from clinic_portal.services.ui import render_page

bp = Blueprint("core", __name__)


@bp.route("/", methods=["GET"], endpoint="index")
def index():
    if current_user.is_authenticated:
        return redirect(url_for("core.dashboard"))
    return redirect(url_for("portal.landing"))


@bp.route("/dashboard", methods=["GET"], endpoint="dashboard")
@staff_required
def dashboard():
    api = staff_api()
    registry = doctor_registry(api)
    today = date.today()
    try:
        appointments = fetch_all(api)
    except SessionExpired:
        raise
    except APIError as exc:
        notifications.error(exc.message or "Failed to load appointments")
        appointments = []

    everyone = tuple(registry.labels)
    todays = apply_filter(
        appointments, AppointmentFilter(doctors=everyone, date_range="today"), today=today, registry=registry
    )
    todays.sort(key=lambda a: a.starts_at)
    week = apply_filter(
        appointments, AppointmentFilter(doctors=everyone, date_range="week"), today=today, registry=registry
    )
    pending = [a for a in appointments if a.status in (CANCELLATION_PENDING, RESCHEDULE_PENDING)]

    summary = {}
    try:
        summary = api.reports.dashboard() or {}
    except SessionExpired:
        raise
    except APIError as exc:
        current_app.logger.info("dashboard summary unavailable: %s", exc.message)

    return render_page(
        "dashboard.html",
        today=today,
        settings=clinic_settings(api),
        registry=registry,
        todays_groups=group_by_doctor(todays, registry.labels, registry),
        todays_count=len(todays),
        week_count=len(week),
        pending=pending,
        summary=summary if isinstance(summary, dict) else {},
    )


@bp.route("/privacy-policy", methods=["GET"], endpoint="privacy")
def privacy():
    return render_page("legal/privacy.html")


@bp.route("/terms-of-service", methods=["GET"], endpoint="terms")
def terms():
    return render_page("legal/terms.html")
