from __future__ import annotations

import datetime as dt

from flask import Blueprint, abort, make_response, redirect, request, url_for

from clinic_portal.auth import staff_required
from clinic_portal.services import notifications
from clinic_portal.services.api_client import APIError, SessionExpired, staff_api
from clinic_portal.services.appointments import fetch_all
from clinic_portal.services.reports import MODES, NothingToPrint, analytics, build_report, render_report_html
from clinic_portal.services.settings_store import clinic_settings, doctor_registry
from clinic_portal.services.ui import render_page

bp = Blueprint("reports", __name__)


def _selected_doctors(known: list[str]) -> list[str]:
    picked = [d for d in request.args.getlist("doctor") if d in known]
    return picked or list(known)


@bp.route("/reports", methods=["GET"], endpoint="index")
@staff_required
def reports_index():
    api = staff_api()
    registry = doctor_registry(api)
    selected = _selected_doctors(registry.labels)
    try:
        appointments = fetch_all(api)
    except SessionExpired:
        raise
    except APIError as exc:
        notifications.error(f"Failed to load appointments: {exc.message}")
        appointments = []

    doctor_args = {} if set(selected) == set(registry.labels) else {"doctor": selected}
    return render_page(
        "reports/index.html",
        registry=registry,
        selected=selected,
        doctor_args=doctor_args,
        stats=analytics(appointments, registry, selected),
        modes=MODES,
    )


@bp.route("/reports/print/<mode>", methods=["GET"], endpoint="print")
@staff_required
def print_report(mode: str):
    if mode not in MODES:
        abort(404)
    api = staff_api()
    registry = doctor_registry(api)
    explicit = [d for d in request.args.getlist("doctor") if d in registry.labels]
    try:
        appointments = fetch_all(api)
    except SessionExpired:
        raise
    except APIError as exc:
        notifications.error(f"Failed to load appointments: {exc.message}")
        return redirect(url_for("reports.index"))

    try:
        report = build_report(
            appointments,
            mode,
            registry,
            explicit,
            today=dt.date.today(),
            now=dt.datetime.now(),
        )
    except NothingToPrint as exc:
        notifications.notify(str(exc), "warn")
        return redirect(url_for("reports.index", doctor=explicit) if explicit else url_for("reports.index"))

    response = make_response(render_report_html(report, clinic_settings(api)))
    response.headers["Content-Type"] = "text/html; charset=utf-8"
    return response
