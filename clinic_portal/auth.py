"""Authentication helpers for staff (Flask-Login) and portal patients."""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable

from flask import flash, g, redirect, request, session, url_for
from flask_login import LoginManager, UserMixin, login_required, login_user, logout_user

from clinic_portal.services.api_client import PATIENT, STAFF, TOKEN_KEYS, clear_tokens

STAFF_PROFILE_KEY = "staff_profile"
PATIENT_PROFILE_KEY = "patient_profile"

login_manager = LoginManager()
login_manager.login_view = "auth.login"
login_manager.login_message = "Please sign in to continue."
login_manager.login_message_category = "err"


class StaffUser(UserMixin):
    def __init__(self, profile: dict[str, Any]) -> None:
        self.profile = dict(profile)
        self.id = str(profile.get("_id") or profile.get("id") or profile.get("username") or "")
        self.username = profile.get("username") or profile.get("email") or ""
        self.first_name = profile.get("firstName") or ""
        self.last_name = profile.get("lastName") or ""
        self.email = profile.get("email") or ""
        self.role = profile.get("role") or "staff"

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.username or "Staff"


@login_manager.user_loader
def _load_user(user_id: str) -> StaffUser | None:
    if not session.get(TOKEN_KEYS[STAFF][0]):
        return None
    profile = session.get(STAFF_PROFILE_KEY)
    if not isinstance(profile, dict):
        return None
    user = StaffUser(profile)
    return user if user.id == str(user_id) else None


def start_staff_session(data: dict[str, Any]) -> StaffUser:
    """Store tokens and profile from a login response and log the user in."""
    token_key, refresh_key = TOKEN_KEYS[STAFF]
    session[token_key] = data.get("token")
    if data.get("refreshToken"):
        session[refresh_key] = data["refreshToken"]
    profile = data.get("user") or {}
    session[STAFF_PROFILE_KEY] = profile
    session.permanent = True
    user = StaffUser(profile)
    login_user(user)
    return user


def end_staff_session() -> None:
    logout_user()
    clear_tokens(STAFF)
    session.pop(STAFF_PROFILE_KEY, None)


def update_staff_profile(profile: dict[str, Any]) -> None:
    session[STAFF_PROFILE_KEY] = profile


def staff_required(func: Callable[..., Any]) -> Callable[..., Any]:
    """Staff pages: logged in and never cached."""

    @wraps(func)
    @login_required
    def wrapped(*args: Any, **kwargs: Any):
        g.nostore = True
        return func(*args, **kwargs)

    return wrapped


@dataclass
class PatientUser:
    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    profile: dict | None = None

    @classmethod
    def from_profile(cls, profile: dict[str, Any]) -> "PatientUser":
        return cls(
            id=str(profile.get("_id") or profile.get("id") or ""),
            first_name=profile.get("firstName") or "",
            last_name=profile.get("lastName") or "",
            email=profile.get("email") or "",
            phone=profile.get("phoneNumber") or "",
            profile=dict(profile),
        )

    @property
    def full_name(self) -> str:
        name = (self.profile or {}).get("fullName")
        return name or f"{self.first_name} {self.last_name}".strip()


def current_patient() -> PatientUser | None:
    if not session.get(TOKEN_KEYS[PATIENT][0]):
        return None
    profile = session.get(PATIENT_PROFILE_KEY)
    if not isinstance(profile, dict):
        return None
    return PatientUser.from_profile(profile)


def start_patient_session(data: dict[str, Any]) -> PatientUser:
    token_key, refresh_key = TOKEN_KEYS[PATIENT]
    session[token_key] = data.get("token")
    if data.get("refreshToken"):
        session[refresh_key] = data["refreshToken"]
    session[PATIENT_PROFILE_KEY] = data.get("user") or {}
    session.permanent = True
    return PatientUser.from_profile(session[PATIENT_PROFILE_KEY])


def end_patient_session() -> None:
    clear_tokens(PATIENT)
    session.pop(PATIENT_PROFILE_KEY, None)


def update_patient_profile(profile: dict[str, Any]) -> None:
    session[PATIENT_PROFILE_KEY] = profile


def patient_required(func: Callable[..., Any]) -> Callable[..., Any]:
    """Portal pages: a patient token must be present."""

    @wraps(func)
    def wrapped(*args: Any, **kwargs: Any):
        patient = current_patient()
        if patient is None:
            flash("Please sign in to your patient account.", "err")
            return redirect(url_for("portal.login", next=request.path))
        g.nostore = True
        g.patient = patient
        return func(*args, **kwargs)

    return wrapped
