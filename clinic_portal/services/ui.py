"""Template helpers shared by every page."""

from __future__ import annotations

from typing import Any

from flask import current_app, render_template, request

from clinic_portal.records import STATUS_LABELS
from clinic_portal.services.timefmt import format_display_date, to_display_time

_STATUS_BADGES = {
    "scheduled": "badge-blue",
    "confirmed": "badge-green",
    "in-progress": "badge-amber",
    "completed": "badge-gray",
    "cancelled": "badge-red",
    "no-show": "badge-orange",
    "cancellation_pending": "badge-amber",
    "reschedule_pending": "badge-amber",
    "rescheduled": "badge-purple",
}


def render_page(template: str, **context: Any):
    """Render ``template`` with the shared page context."""
    context.setdefault("active_page", request.endpoint or "")
    return render_template(template, **context)


def status_badge(status: str | None) -> str:
    return _STATUS_BADGES.get((status or "").lower(), "badge-gray")


def status_label(status: str | None) -> str:
    status = (status or "").lower()
    return STATUS_LABELS.get(status, status.replace("_", " ").title())


def humanize(value: str | None) -> str:
    return (value or "").replace("_", " ").title()


def register_ui(app) -> None:
    app.jinja_env.filters["status_badge"] = status_badge
    app.jinja_env.filters["status_label"] = status_label
    app.jinja_env.filters["humanize"] = humanize
    app.jinja_env.filters["display_date"] = lambda value, with_year=False: format_display_date(
        value, with_year=with_year
    )
    app.jinja_env.filters["display_time"] = to_display_time

    @app.context_processor
    def inject_ui_settings() -> dict[str, Any]:
        return {
            "clinic_name": current_app.config.get("CLINIC_NAME"),
            "toast_duration_ms": current_app.config.get("CLINIC_TOAST_DURATION_MS", 4000),
            "search_debounce_ms": current_app.config.get("CLINIC_SEARCH_DEBOUNCE_MS", 400),
        }
