from __future__ import annotations

import datetime
from datetime import date

from flask import Blueprint, abort, current_app, jsonify, redirect, request, url_for
from flask_wtf import FlaskForm

from clinic_portal.auth import staff_required
from clinic_portal.forms import AppointmentForm, CancelForm, ConfirmActionForm, RescheduleForm
from clinic_portal.services import notifications
from clinic_portal.services.api_client import APIError, SessionExpired, staff_api
from clinic_portal.services.appointments import (
    AppointmentNotFound,
    fetch_all,
    fetch_one,
    parse_patients,
    staff_payload,
)
from clinic_portal.services.calendar import VIEWS, CalendarState, navigate, slot_draft, to_events
from clinic_portal.services.errors import record_exception
from clinic_portal.services.filters import (
    AppointmentFilter,
    apply_filter,
    group_by_doctor,
    paginate,
)
from clinic_portal.services.holidays import holidays_between
from clinic_portal.services.settings_store import doctor_registry
from clinic_portal.services.timefmt import TIME_SLOTS, parse_local_date
from clinic_portal.services.transitions import (
    ACTIONS,
    APPROVE_CANCELLATION,
    CANCEL,
    REJECT_CANCELLATION,
    RESCHEDULE,
    TransitionNotAllowed,
    available_actions,
    perform,
)
from clinic_portal.services.ui import render_page

bp = Blueprint("appointments", __name__)


def _status_tab_choices() -> list[tuple[str, str]]:
    return [("active", "Active"), ("completed", "Completed / Cancelled"), ("all", "All")]


def _date_range_choices() -> list[tuple[str, str]]:
    return [("today", "Today"), ("week", "This Week"), ("month", "This Month"), ("all", "All Time")]


def _choice_label(value: str, choices: list[tuple[str, str]], fallback: str) -> str:
    for key, label in choices:
        if key == value:
            return label
    return fallback


def _filter_from_request(known_doctors: list[str]) -> AppointmentFilter:
    return AppointmentFilter(
        search=request.args.get("q") or "",
        doctors=tuple(request.args.getlist("doctor")),
        status_tab=(request.args.get("tab") or "all").lower(),
        date_range=(request.args.get("range") or "all").lower(),
    ).normalized(known_doctors)


def _filter_args(flt: AppointmentFilter, known_doctors: list[str]) -> dict:
    args: dict = {"tab": flt.status_tab, "range": flt.date_range}
    if flt.search:
        args["q"] = flt.search
    if set(flt.doctors) != set(known_doctors):
        args["doctor"] = list(flt.doctors)
    return args


def _calendar_state() -> CalendarState:
    view = (request.args.get("cal") or "month").lower()
    if view not in VIEWS:
        view = "month"
    anchor = parse_local_date(request.args.get("date")) or date.today()
    state = CalendarState(view=view, anchor=anchor)
    nav = (request.args.get("nav") or "").lower()
    if nav:
        try:
            state = navigate(state, nav)
        except ValueError:
            pass
    return state


def _load_appointments(api) -> list | None:
    """All appointments, or None when the backend could not be reached."""
    try:
        return fetch_all(api)
    except SessionExpired:
        raise
    except APIError as exc:
        notifications.error(f"Failed to load appointments: {exc.message}")
        return None


def _load_appointment(api, appointment_id: str):
    try:
        return fetch_one(api, appointment_id)
    except AppointmentNotFound:
        abort(404)
    except SessionExpired:
        raise
    except APIError as exc:
        if exc.status == 404:
            abort(404)
        notifications.error(exc.message)
        return None


@bp.route("/appointments", methods=["GET"], endpoint="index")
@staff_required
def appointments_index():
    api = staff_api()
    registry = doctor_registry(api)
    known = registry.labels
    flt = _filter_from_request(known)
    mode = "calendar" if request.args.get("mode") == "calendar" else "list"

    appointments = _load_appointments(api)
    load_failed = appointments is None
    appointments = appointments or []
    visible = apply_filter(appointments, flt, today=date.today(), registry=registry)
    try:
        page_no = int(request.args.get("page", "1"))
    except ValueError:
        page_no = 1
    page = paginate(visible, page_no, current_app.config["CLINIC_PAGE_SIZE"])

    state = _calendar_state()
    filter_args = _filter_args(flt, known)
    return render_page(
        "appointments/index.html",
        mode=mode,
        flt=flt,
        filter_args=filter_args,
        registry=registry,
        page=page,
        groups=group_by_doctor(page.items, flt.doctors, registry),
        total_fetched=len(appointments),
        load_failed=load_failed,
        tab_choices=_status_tab_choices(),
        range_choices=_date_range_choices(),
        tab_label=_choice_label(flt.status_tab, _status_tab_choices(), "All"),
        range_label=_choice_label(flt.date_range, _date_range_choices(), "All Time"),
        calendar=state,
        nav_args={"mode": "calendar", "cal": state.view, "date": state.anchor.isoformat(), **filter_args},
        actions_for=available_actions,
    )


@bp.route("/appointments/events", methods=["GET"], endpoint="events")
@staff_required
def appointments_events():
    """FullCalendar event feed for the visible range."""
    api = staff_api()
    registry = doctor_registry(api)
    flt = _filter_from_request(registry.labels)
    start = parse_local_date(request.args.get("start")) or date.today().replace(day=1)
    end = parse_local_date(request.args.get("end")) or start + datetime.timedelta(days=42)
    try:
        appointments = fetch_all(api)
    except SessionExpired:
        raise
    except APIError as exc:
        return jsonify({"success": False, "error": exc.message}), 502
    # the calendar shows every status; only search and doctor filters apply
    visible = apply_filter(
        appointments, AppointmentFilter(search=flt.search, doctors=flt.doctors), registry=registry
    )
    in_range = [a for a in visible if a.appointment_date and start <= a.appointment_date <= end]
    events = to_events(
        in_range,
        registry,
        holidays_between(start, end),
        url_for_appointment=lambda appt_id: url_for("appointments.details", appointment_id=appt_id),
    )
    return jsonify(events)


@bp.route("/appointments/patient-search", methods=["GET"], endpoint="patient_search")
@staff_required
def patient_search():
    term = (request.args.get("q") or "").strip()
    if len(term) < 2:
        return jsonify({"success": True, "patients": []})
    try:
        patients = parse_patients(staff_api().patients.search({"q": term, "limit": 10}))
    except SessionExpired:
        raise
    except APIError as exc:
        return jsonify({"success": False, "error": exc.message}), 502
    return jsonify(
        {
            "success": True,
            "patients": [
                {
                    "id": p.id,
                    "patientId": p.patient_id,
                    "name": p.name,
                    "phone": p.contact_phone,
                    "type": p.patient_type,
                }
                for p in patients
            ],
        }
    )


@bp.route("/appointments/new", methods=["GET", "POST"], endpoint="new")
@staff_required
def new_appointment():
    api = staff_api()
    registry = doctor_registry(api)
    form = AppointmentForm()
    form.doctor_name.choices = [(label, label) for label in registry.labels]

    if request.method == "GET":
        if request.args.get("start"):
            try:
                start = datetime.datetime.fromisoformat(request.args["start"]).replace(tzinfo=None)
            except ValueError:
                start = None
            if start is not None:
                draft = slot_draft(start)
                form.appointment_date.data = date.fromisoformat(draft["date"])
                form.appointment_time.data = draft["time"]
        else:
            form.appointment_date.data = parse_local_date(request.args.get("date")) or date.today()
            form.appointment_time.data = request.args.get("time") if request.args.get("time") in TIME_SLOTS else "09:00 AM"
        if request.args.get("doctor") in registry.labels:
            form.doctor_name.data = request.args["doctor"]
        form.patient_id.data = request.args.get("patient_id") or ""
        form.patient_name.data = request.args.get("patient_name") or ""
        form.contact_number.data = request.args.get("phone") or ""

    selected_doctor = form.doctor_name.data or (registry.labels[0] if registry.labels else "")
    services = registry.services_for(selected_doctor)
    form.service_type.choices = [(s, s.replace("_", " ").title()) for s in services]

    if form.validate_on_submit():
        if form.service_type.data not in services:
            form.service_type.errors.append("Please select a valid service type")
        else:
            doctor = registry.resolve(form.doctor_name.data)
            try:
                api.appointments.create(staff_payload(form, registry.doctor_type_for(form.doctor_name.data)))
            except SessionExpired:
                raise
            except APIError as exc:
                notifications.error(exc.message or "Failed to create appointment")
            else:
                current_app.logger.info(
                    "appointment created for %s with %s", form.patient_name.data, doctor.id if doctor else "?"
                )
                notifications.success("Appointment created successfully")
                return redirect(url_for("appointments.index"))

    services_by_doctor = {label: list(registry.services_for(label)) for label in registry.labels}
    return render_page(
        "appointments/new.html",
        form=form,
        registry=registry,
        services_by_doctor=services_by_doctor,
    )


@bp.route("/appointments/<appointment_id>", methods=["GET"], endpoint="details")
@staff_required
def appointment_details(appointment_id: str):
    api = staff_api()
    appt = _load_appointment(api, appointment_id)
    if appt is None:
        return redirect(url_for("appointments.index"))
    registry = doctor_registry(api)
    return render_page(
        "appointments/details.html",
        appt=appt,
        doctor=registry.resolve(appt.doctor_name),
        actions=available_actions(appt),
    )


def _action_form(action: str):
    if action == RESCHEDULE:
        return RescheduleForm()
    if action == CANCEL:
        return CancelForm()
    if action in (APPROVE_CANCELLATION, REJECT_CANCELLATION):
        return ConfirmActionForm()
    return FlaskForm()


@bp.route("/appointments/<appointment_id>/<action>", methods=["GET", "POST"], endpoint="action")
@staff_required
def appointment_action(appointment_id: str, action: str):
    rule = ACTIONS.get(action)
    if rule is None:
        abort(404)
    api = staff_api()
    appt = _load_appointment(api, appointment_id)
    if appt is None:
        return redirect(url_for("appointments.index"))

    if appt.status not in rule.allowed_from:
        notifications.error(str(TransitionNotAllowed(action, appt.status)))
        return redirect(url_for("appointments.details", appointment_id=appointment_id))

    form = _action_form(action)
    if request.method == "GET" and action == RESCHEDULE:
        form.new_date.data = appt.appointment_date or date.today()
        form.new_time.data = appt.appointment_time if appt.appointment_time in TIME_SLOTS else TIME_SLOTS[0]

    if form.validate_on_submit():
        kwargs: dict = {}
        if action == RESCHEDULE:
            kwargs = {"new_date": form.new_date.data, "new_time": form.new_time.data}
        elif action == CANCEL:
            kwargs = {"reason": form.reason.data}
        elif action in (APPROVE_CANCELLATION, REJECT_CANCELLATION):
            kwargs = {"notes": form.notes.data}
        try:
            perform(api, action, appt, **kwargs)
        except TransitionNotAllowed as exc:
            notifications.error(str(exc))
            return redirect(url_for("appointments.details", appointment_id=appointment_id))
        except SessionExpired:
            raise
        except APIError as exc:
            notifications.error(exc.message)
        except ValueError as exc:
            notifications.error(str(exc))
        except Exception as exc:
            record_exception(f"appointments.{action}", exc)
            raise
        else:
            notifications.success(rule.success_message)
            return redirect(url_for("appointments.index"))

    return render_page(
        "appointments/confirm.html",
        appt=appt,
        action=rule,
        form=form,
        time_slots=TIME_SLOTS,
    )
