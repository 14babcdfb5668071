from __future__ import annotations

import math
from datetime import date

from flask import Blueprint, abort, current_app, redirect, request, url_for
from flask_wtf import FlaskForm

from clinic_portal.auth import staff_required
from clinic_portal.forms import (
    ImmunizationForm,
    ObGyneConsultationForm,
    ObGynePatientForm,
    PediatricConsultationForm,
    PediatricPatientForm,
)
from clinic_portal.records import OB_GYNE, PEDIATRIC, Patient
from clinic_portal.services import notifications
from clinic_portal.services.api_client import APIError, SessionExpired, staff_api
from clinic_portal.services.appointments import fetch_all, parse_patients
from clinic_portal.services.timefmt import parse_local_date
from clinic_portal.services.ui import render_page

bp = Blueprint("patients", __name__)

_TYPE_CHOICES = [("", "All Types"), (PEDIATRIC, "Pediatric"), (OB_GYNE, "OB-GYNE")]
_STATUS_CHOICES = [("", "All Status"), ("New", "New"), ("Active", "Active"), ("Inactive", "Inactive")]


def _patient_type(value: str | None) -> str:
    return OB_GYNE if value == OB_GYNE else PEDIATRIC


def _load_patient(patient_id: str) -> Patient:
    try:
        payload = staff_api().patients.get(patient_id)
    except SessionExpired:
        raise
    except APIError as exc:
        if exc.status == 404:
            abort(404)
        raise
    if isinstance(payload, dict) and isinstance(payload.get("patient"), dict):
        payload = payload["patient"]
    if not isinstance(payload, dict) or not payload:
        abort(404)
    return Patient.from_api(payload)


def _record_form(patient_type: str, data: dict | None = None):
    if patient_type == PEDIATRIC:
        form = PediatricPatientForm()
        if data is not None and request.method == "GET":
            form.name_of_children.data = data.get("nameOfChildren")
            form.birth_date.data = parse_local_date(data.get("birthDate"))
            form.sex.data = data.get("sex")
            form.name_of_mother.data = data.get("nameOfMother")
            form.name_of_father.data = data.get("nameOfFather")
            form.contact_number.data = data.get("contactNumber")
            form.address.data = data.get("address")
            form.birth_weight.data = data.get("birthWeight")
            form.birth_length.data = data.get("birthLength")
        return form
    form = ObGynePatientForm()
    if data is not None and request.method == "GET":
        form.patient_name.data = data.get("patientName")
        form.birth_date.data = parse_local_date(data.get("birthDate"))
        form.contact_number.data = data.get("contactNumber")
        form.address.data = data.get("address")
        form.civil_status.data = data.get("civilStatus")
        form.occupation.data = data.get("occupation")
        form.religion.data = data.get("religion")
        form.referred_by.data = data.get("referredBy")
        emergency = data.get("emergencyContact") or {}
        form.emergency_name.data = emergency.get("name")
        form.emergency_number.data = emergency.get("contactNumber")
    return form


@bp.route("/patients", methods=["GET"], endpoint="index")
@staff_required
def patients_index():
    search = (request.args.get("q") or "").strip()
    patient_type = request.args.get("type") or ""
    status = request.args.get("status") or ""
    try:
        page_no = max(1, int(request.args.get("page", "1")))
    except ValueError:
        page_no = 1
    per_page = current_app.config["CLINIC_PAGE_SIZE"]

    patients: list[Patient] = []
    total = 0
    try:
        payload = staff_api().patients.list(
            {"page": page_no, "limit": per_page, "search": search, "patientType": patient_type, "status": status}
        )
        patients = parse_patients(payload)
        pagination = payload.get("pagination", {}) if isinstance(payload, dict) else {}
        total = int(pagination.get("total") or pagination.get("totalItems") or len(patients))
    except SessionExpired:
        raise
    except APIError as exc:
        notifications.error(f"Failed to load patients: {exc.message}")

    pages = max(1, math.ceil(total / per_page))
    return render_page(
        "patients/index.html",
        patients=patients,
        search=search,
        patient_type=patient_type,
        status=status,
        page_no=min(page_no, pages),
        pages=pages,
        total=total,
        type_choices=_TYPE_CHOICES,
        status_choices=_STATUS_CHOICES,
    )


@bp.route("/patients/new", methods=["GET", "POST"], endpoint="create")
@staff_required
def create_patient():
    patient_type = _patient_type(request.args.get("type"))
    form = _record_form(patient_type)
    if form.validate_on_submit():
        payload = {"patientType": patient_type, "record": form.to_record()}
        if patient_type == OB_GYNE:
            payload["contactInfo"] = {"emergencyContact": form.emergency_contact()}
        try:
            created = staff_api().patients.create(payload)
        except SessionExpired:
            raise
        except APIError as exc:
            notifications.error(exc.message)
        else:
            notifications.success("Patient registered successfully")
            if isinstance(created, dict) and isinstance(created.get("patient"), dict):
                created = created["patient"]
            new_id = (created or {}).get("_id") if isinstance(created, dict) else None
            if new_id:
                return redirect(url_for("patients.detail", patient_id=new_id))
            return redirect(url_for("patients.index"))
    return render_page("patients/form.html", form=form, patient_type=patient_type, patient=None)


@bp.route("/patients/<patient_id>", methods=["GET"], endpoint="detail")
@staff_required
def patient_detail(patient_id: str):
    try:
        patient = _load_patient(patient_id)
    except APIError as exc:
        notifications.error(exc.message)
        return redirect(url_for("patients.index"))

    appointments = []
    try:
        appointments = [
            a for a in fetch_all(staff_api())
            if a.patient.kind == "staff" and patient_id in (a.patient.record_id, a.patient.patient_id)
        ]
    except SessionExpired:
        raise
    except APIError as exc:
        current_app.logger.info("patient appointments unavailable: %s", exc.message)

    tab = request.args.get("tab") or "overview"
    if tab not in ("overview", "consultations", "immunizations", "appointments"):
        tab = "overview"
    return render_page(
        "patients/detail.html",
        patient=patient,
        tab=tab,
        appointments=appointments,
        delete_form=FlaskForm(),
        today=date.today(),
    )


@bp.route("/patients/<patient_id>/edit", methods=["GET", "POST"], endpoint="edit")
@staff_required
def edit_patient(patient_id: str):
    try:
        patient = _load_patient(patient_id)
    except APIError as exc:
        notifications.error(exc.message)
        return redirect(url_for("patients.index"))

    form = _record_form(patient.patient_type, patient.record)
    if form.validate_on_submit():
        if patient.patient_type == PEDIATRIC:
            payload = {"pediatricRecord": form.to_record()}
        else:
            payload = {
                "obGyneRecord": form.to_record(),
                "contactInfo": {"emergencyContact": form.emergency_contact()},
            }
        try:
            staff_api().patients.update(patient_id, payload)
        except SessionExpired:
            raise
        except APIError as exc:
            notifications.error(exc.message)
        else:
            notifications.success("Patient updated successfully")
            return redirect(url_for("patients.detail", patient_id=patient_id))
    return render_page("patients/form.html", form=form, patient_type=patient.patient_type, patient=patient)


@bp.route("/patients/<patient_id>/delete", methods=["GET", "POST"], endpoint="delete")
@staff_required
def delete_patient(patient_id: str):
    try:
        patient = _load_patient(patient_id)
    except APIError as exc:
        notifications.error(exc.message)
        return redirect(url_for("patients.index"))

    form = FlaskForm()
    if form.validate_on_submit():
        try:
            staff_api().patients.delete(patient_id)
        except SessionExpired:
            raise
        except APIError as exc:
            notifications.error(exc.message)
        else:
            notifications.success(f"{patient.name} was deleted")
            return redirect(url_for("patients.index"))
    return render_page("patients/delete.html", patient=patient, form=form)


@bp.route("/patients/<patient_id>/consultations/new", methods=["GET", "POST"], endpoint="add_consultation")
@staff_required
def add_consultation(patient_id: str):
    try:
        patient = _load_patient(patient_id)
    except APIError as exc:
        notifications.error(exc.message)
        return redirect(url_for("patients.index"))

    form = PediatricConsultationForm() if patient.patient_type == PEDIATRIC else ObGyneConsultationForm()
    if request.method == "GET":
        form.date.data = date.today()
    if form.validate_on_submit():
        try:
            staff_api().patients.add_consultation(patient_id, form.to_payload())
        except SessionExpired:
            raise
        except APIError as exc:
            notifications.error(exc.message or "Failed to add consultation record")
        else:
            notifications.success("Consultation record added successfully!")
            return redirect(url_for("patients.detail", patient_id=patient_id, tab="consultations"))
    return render_page("patients/consultation.html", patient=patient, form=form)


@bp.route("/patients/<patient_id>/immunizations/new", methods=["GET", "POST"], endpoint="add_immunization")
@staff_required
def add_immunization(patient_id: str):
    try:
        patient = _load_patient(patient_id)
    except APIError as exc:
        notifications.error(exc.message)
        return redirect(url_for("patients.index"))
    if patient.patient_type != PEDIATRIC:
        notifications.error("Immunization records are only kept for pediatric patients")
        return redirect(url_for("patients.detail", patient_id=patient_id))

    form = ImmunizationForm()
    if request.method == "GET":
        form.date.data = date.today()
    if form.validate_on_submit():
        try:
            staff_api().patients.add_immunization(patient_id, form.to_payload())
        except SessionExpired:
            raise
        except APIError as exc:
            notifications.error(exc.message or "Failed to add immunization record")
        else:
            notifications.success("Immunization record added successfully!")
            return redirect(url_for("patients.detail", patient_id=patient_id, tab="immunizations"))
    return render_page("patients/immunization.html", patient=patient, form=form)
