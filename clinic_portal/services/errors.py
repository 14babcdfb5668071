"""Logging helpers for unexpected exceptions."""

from __future__ import annotations

import logging

from flask import has_request_context, request

log = logging.getLogger("clinic_portal.errors")


def record_exception(where: str, exc: BaseException) -> None:
    """Log ``exc`` with traceback, tagged with the place it was caught."""
    path = request.path if has_request_context() else "-"
    log.error("Unhandled error in %s (%s): %s", where, path, exc, exc_info=exc)
