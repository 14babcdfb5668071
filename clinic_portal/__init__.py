"""Clinic portal package exposing the Flask application factory."""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from flask import Flask, flash, jsonify, redirect, request, url_for
from flask_wtf.csrf import CSRFError

from .auth import end_patient_session, end_staff_session, login_manager
from .blueprints import register_blueprints
from .extensions import ensure_base_tables, init_extensions
from .services.api_client import STAFF, SessionExpired, close_clients
from .services.notifications import init_notifications
from .services.security import init_security
from .services.ui import register_ui

APP_HOST = "127.0.0.1"
APP_PORT = 8080

DEFAULT_API_URL = "http://localhost:8000/api"

log = logging.getLogger(__name__)


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    logging.getLogger("clinic_portal").setLevel(level)


def _wants_json() -> bool:
    return request.is_json or request.accept_mimetypes.best == "application/json"


def create_app(overrides: dict[str, Any] | None = None) -> Flask:
    load_dotenv()
    base_dir = Path(__file__).resolve().parent.parent
    template_folder = base_dir / "templates"
    static_folder = base_dir / "static"

    app = Flask(
        __name__,
        template_folder=str(template_folder),
        static_folder=str(static_folder),
    )

    secret_key = os.getenv("CLINIC_SECRET_KEY")
    if not secret_key:
        secret_key = os.urandom(32)

    db_override = os.getenv("CLINIC_DB_PATH")
    db_path = Path(db_override) if db_override else base_dir / "data" / "app.db"

    app.config.update(
        SECRET_KEY=secret_key,
        SESSION_COOKIE_NAME="clinic_session",
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        PERMANENT_SESSION_LIFETIME=timedelta(hours=12),
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{db_path}",
        SQLALCHEMY_ENGINE_OPTIONS={"connect_args": {"check_same_thread": False}},
        RATELIMIT_STORAGE_URI=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
        CLINIC_API_URL=os.getenv("CLINIC_API_URL", DEFAULT_API_URL),
        CLINIC_API_TIMEOUT=float(_int_env("CLINIC_API_TIMEOUT", 30)),
        CLINIC_PAGE_SIZE=max(1, _int_env("CLINIC_PAGE_SIZE", 10)),
        CLINIC_SEARCH_DEBOUNCE_MS=_int_env("CLINIC_SEARCH_DEBOUNCE_MS", 400),
        CLINIC_TOAST_DURATION_MS=_int_env("CLINIC_TOAST_DURATION_MS", 4000),
        CLINIC_NAME=os.getenv("CLINIC_NAME", "VM Mother and Child Clinic"),
        CLINIC_LOG_LEVEL=os.getenv("CLINIC_LOG_LEVEL", "INFO"),
    )
    if overrides:
        app.config.update(overrides)

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///"):
        Path(app.config["SQLALCHEMY_DATABASE_URI"][len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

    _configure_logging(app.config["CLINIC_LOG_LEVEL"])
    register_ui(app)
    init_extensions(app)
    login_manager.init_app(app)
    init_notifications(app)
    register_blueprints(app)
    ensure_base_tables(app)
    init_security(app)
    app.teardown_appcontext(close_clients)

    @app.errorhandler(SessionExpired)
    def handle_session_expired(exc: SessionExpired):
        log.info("%s session expired on %s", exc.scope, request.path)
        if exc.scope == STAFF:
            end_staff_session()
            target = url_for("auth.login")
        else:
            end_patient_session()
            target = url_for("portal.login")
        if _wants_json():
            return jsonify({"success": False, "error": exc.message, "redirect": target}), 401
        flash(exc.message, "err")
        return redirect(target)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        log.warning("CSRF validation failed on %s: %s", request.path, e.description)
        if _wants_json():
            return jsonify({"success": False, "errors": [f"CSRF validation failed: {e.description}"]}), 400
        flash("Your form expired. Please try again.", "err")
        return redirect(request.referrer or url_for("index"))

    @app.errorhandler(400)
    def handle_bad_request(e):
        log.warning("Bad request on %s: %s", request.path, e)
        return jsonify({"success": False, "errors": ["Bad request - check request format and CSRF token"]}), 400

    return app


__all__ = ["create_app", "APP_HOST", "APP_PORT"]
