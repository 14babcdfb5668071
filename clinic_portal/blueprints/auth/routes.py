from __future__ import annotations

from flask import Blueprint, current_app, redirect, request, url_for
from flask_login import current_user

from clinic_portal.auth import end_staff_session, start_staff_session
from clinic_portal.forms import LoginForm
from clinic_portal.services import notifications
from clinic_portal.services.api_client import APIError, staff_api
from clinic_portal.services.security import record_login, record_logout
from clinic_portal.services.ui import render_page

bp = Blueprint("auth", __name__)


def _safe_next(target: str | None) -> str | None:
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return None


@bp.route("/login", methods=["GET", "POST"], endpoint="login")
def login():
    if current_user.is_authenticated:
        return redirect(url_for("core.dashboard"))
    form = LoginForm()
    if form.validate_on_submit():
        username = form.username.data.strip()
        try:
            data = staff_api().auth.login({"username": username, "password": form.password.data})
        except APIError as exc:
            record_login(username, success=False)
            notifications.error(exc.message)
        else:
            if not isinstance(data, dict) or not data.get("token"):
                record_login(username, success=False)
                notifications.error("Login failed. Please try again.")
            else:
                user = start_staff_session(data)
                record_login(user.username or username, success=True)
                notifications.success(f"Welcome back, {user.first_name or user.display_name}!")
                return redirect(_safe_next(request.args.get("next")) or url_for("core.dashboard"))
    return render_page("auth/login.html", form=form)


@bp.route("/logout", methods=["POST"], endpoint="logout")
def logout():
    username = current_user.username if current_user.is_authenticated else None
    try:
        staff_api().auth.logout()
    except APIError as exc:
        current_app.logger.info("logout call failed: %s", exc.message)
    end_staff_session()
    record_logout(username)
    notifications.notify("You have been logged out")
    return redirect(url_for("auth.login"))
