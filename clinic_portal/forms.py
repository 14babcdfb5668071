"""WTForms definitions for staff and portal pages."""

from __future__ import annotations

import re

from flask_wtf import FlaskForm
from wtforms import (
    BooleanField,
    DateField,
    DecimalField,
    EmailField,
    HiddenField,
    PasswordField,
    SelectField,
    StringField,
    TextAreaField,
)
from wtforms.validators import DataRequired, Email, EqualTo, Length, Optional, Regexp, ValidationError

from clinic_portal.records import WEEKDAYS
from clinic_portal.services.timefmt import TIME_SLOTS

STAFF_PHONE_RE = re.compile(r"^(\+63|0)?9\d{9}$")
PORTAL_PHONE_RE = r"^[\d\s\-()+]+$"


def ph_mobile(form, field) -> None:
    """Philippine mobile number, spaces ignored."""
    value = (field.data or "").replace(" ", "")
    if value and not STAFF_PHONE_RE.match(value):
        raise ValidationError("Please enter a valid Philippine mobile number (e.g. 09171234567)")


def _slot_choices() -> list[tuple[str, str]]:
    return [(slot, slot) for slot in TIME_SLOTS]


class LoginForm(FlaskForm):
    username = StringField("Username or email", validators=[DataRequired(), Length(max=120)])
    password = PasswordField("Password", validators=[DataRequired()])


class ChangePasswordForm(FlaskForm):
    current_password = PasswordField("Current password", validators=[DataRequired()])
    new_password = PasswordField("New password", validators=[DataRequired(), Length(min=6)])
    confirm_password = PasswordField(
        "Confirm new password", validators=[DataRequired(), EqualTo("new_password", "Passwords do not match")]
    )


class StaffProfileForm(FlaskForm):
    first_name = StringField("First name", validators=[DataRequired(), Length(max=80)])
    last_name = StringField("Last name", validators=[DataRequired(), Length(max=80)])
    email = EmailField("Email", validators=[Optional(), Email()])


class AppointmentForm(FlaskForm):
    patient_id = HiddenField()
    patient_name = StringField("Patient name", validators=[DataRequired(), Length(max=160)])
    contact_number = StringField("Contact number", validators=[DataRequired(), ph_mobile])
    doctor_name = SelectField("Doctor", validators=[DataRequired()])
    appointment_date = DateField("Date", validators=[DataRequired()])
    appointment_time = SelectField("Time", choices=_slot_choices(), validators=[DataRequired()])
    service_type = SelectField("Service", validators=[DataRequired()], validate_choice=False)
    reason_for_visit = TextAreaField("Reason for visit", validators=[Optional(), Length(max=500)])


class RescheduleForm(FlaskForm):
    new_date = DateField("New date", validators=[DataRequired()])
    new_time = SelectField("New time", choices=_slot_choices(), validators=[DataRequired()])


class CancelForm(FlaskForm):
    reason = TextAreaField("Reason (optional)", validators=[Optional(), Length(max=500)])


class ConfirmActionForm(FlaskForm):
    notes = TextAreaField("Notes (optional)", validators=[Optional(), Length(max=500)])


def _hours_fields(prefix: str) -> dict:
    return {
        f"{prefix}_{day}": StringField(day.title(), validators=[Optional(), Length(max=40)])
        for day in WEEKDAYS
    }


class ClinicSettingsForm(FlaskForm):
    clinic_name = StringField("Clinic name", validators=[DataRequired(), Length(max=160)])
    address = StringField("Address", validators=[Optional(), Length(max=255)])
    phone = StringField("Phone", validators=[Optional(), Length(max=40)])
    email = EmailField("Email", validators=[Optional(), Email()])
    obgyne_name = StringField("OB-GYNE doctor", validators=[DataRequired(), Length(max=160)])
    pediatrician_name = StringField("Pediatrician", validators=[DataRequired(), Length(max=160)])

    def hours_for(self, prefix: str) -> dict[str, str]:
        return {
            day: (getattr(self, f"{prefix}_{day}").data or "").strip()
            for day in WEEKDAYS
            if (getattr(self, f"{prefix}_{day}").data or "").strip()
        }


for _name, _field in {**_hours_fields("obgyne"), **_hours_fields("pediatrician")}.items():
    setattr(ClinicSettingsForm, _name, _field)


class PediatricPatientForm(FlaskForm):
    name_of_children = StringField("Child's name", validators=[DataRequired(), Length(max=160)])
    birth_date = DateField("Birth date", validators=[DataRequired()])
    sex = SelectField("Sex", choices=[("Male", "Male"), ("Female", "Female")], validators=[DataRequired()])
    name_of_mother = StringField("Mother's name", validators=[DataRequired(), Length(max=160)])
    name_of_father = StringField("Father's name", validators=[Optional(), Length(max=160)])
    contact_number = StringField("Contact number", validators=[DataRequired(), ph_mobile])
    address = StringField("Address", validators=[Optional(), Length(max=255)])
    birth_weight = DecimalField("Birth weight (kg)", validators=[Optional()])
    birth_length = DecimalField("Birth length (cm)", validators=[Optional()])

    def to_record(self) -> dict:
        record = {
            "nameOfChildren": self.name_of_children.data.strip(),
            "birthDate": self.birth_date.data.isoformat(),
            "sex": self.sex.data,
            "nameOfMother": self.name_of_mother.data.strip(),
            "nameOfFather": (self.name_of_father.data or "").strip(),
            "contactNumber": self.contact_number.data.replace(" ", ""),
            "address": (self.address.data or "").strip(),
        }
        if self.birth_weight.data is not None:
            record["birthWeight"] = float(self.birth_weight.data)
        if self.birth_length.data is not None:
            record["birthLength"] = float(self.birth_length.data)
        return {k: v for k, v in record.items() if v not in ("", None)}


class ObGynePatientForm(FlaskForm):
    patient_name = StringField("Patient name", validators=[DataRequired(), Length(max=160)])
    birth_date = DateField("Birth date", validators=[DataRequired()])
    contact_number = StringField("Contact number", validators=[DataRequired(), ph_mobile])
    address = StringField("Address", validators=[Optional(), Length(max=255)])
    civil_status = SelectField(
        "Civil status",
        choices=[("Single", "Single"), ("Married", "Married"), ("Widowed", "Widowed"), ("Separated", "Separated")],
        validators=[DataRequired()],
    )
    occupation = StringField("Occupation", validators=[Optional(), Length(max=120)])
    religion = StringField("Religion", validators=[Optional(), Length(max=120)])
    referred_by = StringField("Referred by", validators=[Optional(), Length(max=160)])
    emergency_name = StringField("Emergency contact", validators=[Optional(), Length(max=160)])
    emergency_number = StringField("Emergency contact number", validators=[Optional(), ph_mobile])

    def to_record(self) -> dict:
        record = {
            "patientName": self.patient_name.data.strip(),
            "birthDate": self.birth_date.data.isoformat(),
            "contactNumber": self.contact_number.data.replace(" ", ""),
            "address": (self.address.data or "").strip(),
            "civilStatus": self.civil_status.data,
            "occupation": (self.occupation.data or "").strip(),
            "religion": (self.religion.data or "").strip(),
            "referredBy": (self.referred_by.data or "").strip(),
        }
        return {k: v for k, v in record.items() if v}

    def emergency_contact(self) -> dict:
        return {
            "name": (self.emergency_name.data or "").strip(),
            "contactNumber": (self.emergency_number.data or "").replace(" ", ""),
        }


class PediatricConsultationForm(FlaskForm):
    date = DateField("Date", validators=[DataRequired()])
    history_and_pe = TextAreaField("History & PE", validators=[DataRequired()])
    nature_txn = TextAreaField("Nature of treatment", validators=[Optional()])
    impression = TextAreaField("Impression", validators=[Optional()])

    def to_payload(self) -> dict:
        return {
            "date": self.date.data.isoformat(),
            "historyAndPE": self.history_and_pe.data.strip(),
            "natureTxn": (self.nature_txn.data or "").strip(),
            "impression": (self.impression.data or "").strip(),
        }


class ObGyneConsultationForm(FlaskForm):
    date = DateField("Date", validators=[DataRequired()])
    bp = StringField("BP", validators=[Optional(), Length(max=20)])
    pr = StringField("PR", validators=[Optional(), Length(max=20)])
    rr = StringField("RR", validators=[Optional(), Length(max=20)])
    temp = StringField("Temp", validators=[Optional(), Length(max=20)])
    weight = StringField("Weight", validators=[Optional(), Length(max=20)])
    history_physical_exam = TextAreaField("History / physical exam", validators=[DataRequired()])
    assessment_plan = TextAreaField("Assessment / plan", validators=[Optional()])

    def to_payload(self) -> dict:
        payload = {
            "date": self.date.data.isoformat(),
            "bp": self.bp.data,
            "pr": self.pr.data,
            "rr": self.rr.data,
            "temp": self.temp.data,
            "weight": self.weight.data,
            "historyPhysicalExam": self.history_physical_exam.data.strip(),
            "assessmentPlan": (self.assessment_plan.data or "").strip(),
        }
        return {k: v for k, v in payload.items() if v}


class ImmunizationForm(FlaskForm):
    vaccine = StringField("Vaccine", validators=[DataRequired(), Length(max=120)])
    date = DateField("Date given", validators=[DataRequired()])
    batch_number = StringField("Batch number", validators=[Optional(), Length(max=60)])
    manufacturer = StringField("Manufacturer", validators=[Optional(), Length(max=120)])
    site = StringField("Site", validators=[Optional(), Length(max=60)])
    route = StringField("Route", validators=[Optional(), Length(max=60)])
    remarks = TextAreaField("Remarks", validators=[Optional(), Length(max=500)])

    def to_payload(self) -> dict:
        payload = {
            "vaccineName": self.vaccine.data.strip(),
            "date": self.date.data.isoformat(),
            "batchNumber": self.batch_number.data,
            "manufacturer": self.manufacturer.data,
            "site": self.site.data,
            "route": self.route.data,
            "remarks": self.remarks.data,
        }
        return {k: v for k, v in payload.items() if v}


class PatientLoginForm(FlaskForm):
    email = EmailField("Email", validators=[DataRequired(), Email()])
    password = PasswordField("Password", validators=[DataRequired()])


class PatientRegisterForm(FlaskForm):
    first_name = StringField("First name", validators=[DataRequired(message="First name is required")])
    last_name = StringField("Last name", validators=[DataRequired(message="Last name is required")])
    email = EmailField(
        "Email",
        validators=[DataRequired(message="Email is required"), Email(message="Please enter a valid email address")],
    )
    phone_number = StringField(
        "Phone number",
        validators=[
            DataRequired(message="Phone number is required"),
            Regexp(PORTAL_PHONE_RE, message="Please enter a valid phone number"),
        ],
    )
    date_of_birth = DateField("Date of birth", validators=[DataRequired(message="Date of birth is required")])
    gender = SelectField(
        "Gender",
        choices=[("", "Select"), ("male", "Male"), ("female", "Female"), ("other", "Other")],
        validators=[DataRequired(message="Gender is required")],
    )
    password = PasswordField(
        "Password",
        validators=[
            DataRequired(message="Password is required"),
            Length(min=8, message="Password must be at least 8 characters long"),
        ],
    )
    confirm_password = PasswordField(
        "Confirm password",
        validators=[
            DataRequired(message="Please confirm your password"),
            EqualTo("password", message="Passwords do not match"),
        ],
    )
    consent = BooleanField(
        "I agree to the Terms of Service and Privacy Policy",
        validators=[DataRequired(message="You must agree to the terms and conditions")],
    )

    def to_payload(self) -> dict:
        return {
            "firstName": self.first_name.data.strip(),
            "lastName": self.last_name.data.strip(),
            "email": self.email.data.strip(),
            "phoneNumber": self.phone_number.data.strip(),
            "dateOfBirth": self.date_of_birth.data.isoformat(),
            "gender": self.gender.data,
            "password": self.password.data,
        }


class PatientProfileForm(FlaskForm):
    first_name = StringField("First name", validators=[DataRequired()])
    last_name = StringField("Last name", validators=[DataRequired()])
    phone_number = StringField(
        "Phone number", validators=[DataRequired(), Regexp(PORTAL_PHONE_RE, message="Please enter a valid phone number")]
    )
    street = StringField("Street", validators=[Optional()])
    city = StringField("City", validators=[Optional()])
    province = StringField("Province", validators=[Optional()])
    zip_code = StringField("ZIP code", validators=[Optional()])
    emergency_name = StringField("Emergency contact", validators=[Optional()])
    emergency_relationship = StringField("Relationship", validators=[Optional()])
    emergency_phone = StringField(
        "Emergency phone", validators=[Optional(), Regexp(PORTAL_PHONE_RE, message="Please enter a valid phone number")]
    )

    def to_payload(self) -> dict:
        return {
            "firstName": self.first_name.data.strip(),
            "lastName": self.last_name.data.strip(),
            "phoneNumber": self.phone_number.data.strip(),
            "address": {
                "street": self.street.data or "",
                "city": self.city.data or "",
                "province": self.province.data or "",
                "zipCode": self.zip_code.data or "",
            },
            "emergencyContact": {
                "name": self.emergency_name.data or "",
                "relationship": self.emergency_relationship.data or "",
                "phoneNumber": self.emergency_phone.data or "",
            },
        }


class BookingForm(FlaskForm):
    doctor_id = HiddenField(validators=[DataRequired()])
    appointment_date = HiddenField(validators=[DataRequired()])
    appointment_time = StringField("Time slot", validators=[DataRequired(message="Please select a time slot")])
    patient_type = SelectField(
        "Booking for", choices=[("self", "Myself"), ("dependent", "A dependent")], validators=[DataRequired()]
    )
    patient_name = StringField("Patient name", validators=[DataRequired(message="Patient name is required")])
    contact_number = StringField(
        "Contact number",
        validators=[
            DataRequired(message="Contact number is required"),
            Regexp(PORTAL_PHONE_RE, message="Please enter a valid phone number"),
        ],
    )
    relationship = StringField("Relationship", validators=[Optional()])
    dependent_age = StringField("Age", validators=[Optional()])
    reason = TextAreaField("Reason for visit", validators=[Optional(), Length(max=500)])


class CancellationRequestForm(FlaskForm):
    reason = TextAreaField("Reason", validators=[DataRequired(message="Please provide a reason"), Length(max=500)])


class RescheduleRequestForm(FlaskForm):
    reason = TextAreaField("Reason", validators=[DataRequired(message="Please provide a reason"), Length(max=500)])
    preferred_date = DateField("Preferred date", validators=[Optional()])
    preferred_time = SelectField("Preferred time", choices=[("", "Any time")] + _slot_choices(), validators=[Optional()])
