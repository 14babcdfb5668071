"""Security helpers: headers, rate limiting, and sign-in audit logging."""

from __future__ import annotations

import logging

from flask import flash, g, make_response, redirect, request
from flask_limiter.errors import RateLimitExceeded
from flask_login import current_user

from clinic_portal.extensions import limiter

audit_log = logging.getLogger("clinic_portal.audit")

PROTECTED_BLUEPRINTS = (
    "core",
    "auth",
    "appointments",
    "patients",
    "reports",
    "settings",
    "portal",
)

CALENDAR_CDN = "https://cdn.jsdelivr.net"


def init_security(app) -> None:
    for bp_name in PROTECTED_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp is not None:
            limiter.limit("60 per minute", methods=["POST", "PUT", "DELETE"])(bp)

    @limiter.request_filter
    def skip_rate_limits() -> bool:  # type: ignore[unused-local]
        return request.endpoint in {"static"}

    @app.before_request
    def sync_current_user() -> None:
        g.nostore = False
        g.current_user = current_user if current_user.is_authenticated else None

    @app.after_request
    def apply_headers(response):
        response.headers.setdefault(
            "Content-Security-Policy",
            "default-src 'self'; "
            f"script-src 'self' 'unsafe-inline' {CALENDAR_CDN}; "
            "img-src 'self' data:; "
            f"style-src 'self' 'unsafe-inline' {CALENDAR_CDN}; "
            "font-src 'self' data:; "
            "connect-src 'self';",
        )
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Permissions-Policy", "geolocation=(), camera=(), microphone=()")
        if getattr(g, "nostore", False):
            response.headers["Cache-Control"] = "no-store"
        return response

    @app.errorhandler(RateLimitExceeded)
    def handle_rate_limit(exc: RateLimitExceeded):  # type: ignore[override]
        audit_log.warning("rate limit hit on %s from %s", request.endpoint or "global", request.remote_addr)
        if request.method == "POST" and request.referrer:
            flash("Too many requests. Please wait a moment before trying again.", "err")
            return redirect(request.referrer)
        return make_response("Too Many Requests", 429)


def record_login(username: str, *, success: bool, scope: str = "staff") -> None:
    if success:
        audit_log.info("%s login: %s", scope, username)
    else:
        audit_log.warning("%s login failed: %s", scope, username)


def record_logout(username: str | None, *, scope: str = "staff") -> None:
    if username:
        audit_log.info("%s logout: %s", scope, username)
