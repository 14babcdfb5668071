"""Helpers for validating CSRF tokens on JSON endpoints."""

from __future__ import annotations

import logging
from typing import Mapping, MutableMapping

from flask import current_app, request
from flask_wtf.csrf import CSRFError, validate_csrf
from wtforms import ValidationError

log = logging.getLogger(__name__)


def ensure_csrf_token(payload: MutableMapping[str, object] | Mapping[str, object] | None = None) -> None:
    """Validate CSRF token from header or JSON payload.

    Flask-WTF inspects form data on its own; JSON posts from the calendar page
    send the token in the ``X-CSRFToken`` header or a ``csrf_token`` field.
    """
    if not current_app.config.get("WTF_CSRF_ENABLED", True):
        return

    token = request.headers.get("X-CSRFToken") or request.headers.get("X-CSRF-Token")
    if not token and payload and isinstance(payload, MutableMapping):
        token = payload.pop("csrf_token", None)
    elif not token and payload:
        token = payload.get("csrf_token")

    if not token:
        raise CSRFError("The CSRF token is missing.")

    try:
        validate_csrf(token, secret_key=current_app.secret_key)
    except ValidationError as exc:
        log.info("CSRF validation failed for %s: %s", request.path, exc)
        raise CSRFError(str(exc)) from exc
