"""Clinic settings with a local SQLite fallback when the settings API is down."""

from __future__ import annotations

import datetime as dt
import json
import logging

from flask import g

from clinic_portal.extensions import db
from clinic_portal.models import ClinicSettingsCache
from clinic_portal.records import ClinicSettings
from clinic_portal.services.api_client import APIError, ClinicAPI, SessionExpired
from clinic_portal.services.doctors import DoctorRegistry, sync_doctors

log = logging.getLogger(__name__)

CACHE_KEY = "clinic_settings"


def _write_cache(payload: dict) -> None:
    row = db.session.get(ClinicSettingsCache, CACHE_KEY)
    now = dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)
    if row is None:
        row = ClinicSettingsCache(key=CACHE_KEY, payload=json.dumps(payload), updated_at=now)
        db.session.add(row)
    else:
        row.payload = json.dumps(payload)
        row.updated_at = now
    db.session.commit()


def cached_settings() -> ClinicSettings | None:
    row = db.session.get(ClinicSettingsCache, CACHE_KEY)
    if row is None:
        return None
    try:
        return ClinicSettings.from_api(json.loads(row.payload))
    except ValueError:
        log.warning("Ignoring unreadable cached clinic settings")
        return None


def load_settings(api: ClinicAPI) -> ClinicSettings:
    """Fetch settings from the API, falling back to the cache, then to defaults."""
    try:
        payload = api.settings.get_clinic()
    except SessionExpired:
        raise
    except APIError as exc:
        log.info("Settings API unavailable (%s); using cached settings", exc.message)
        return cached_settings() or ClinicSettings()
    settings = ClinicSettings.from_api(payload if isinstance(payload, dict) else {})
    _write_cache(settings.to_api())
    return settings


def save_settings(api: ClinicAPI, settings: ClinicSettings) -> DoctorRegistry:
    """Persist settings remotely and locally; the local copy survives an API failure."""
    payload = settings.to_api()
    _write_cache(payload)
    registry = sync_doctors(settings)
    g.clinic_settings = settings
    g.doctor_registry = registry
    api.settings.update_clinic(payload)
    return registry


def clinic_settings(api: ClinicAPI) -> ClinicSettings:
    """Request-cached settings."""
    if "clinic_settings" not in g:
        g.clinic_settings = load_settings(api)
    return g.clinic_settings


def doctor_registry(api: ClinicAPI) -> DoctorRegistry:
    """Request-cached doctor registry synced with the current settings."""
    if "doctor_registry" not in g:
        g.doctor_registry = sync_doctors(clinic_settings(api))
    return g.doctor_registry
