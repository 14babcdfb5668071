import json

import pytest
import respx

from clinic_portal.services.api_client import APIError, SessionExpired, StaffAPI
from clinic_portal.services.settings_store import (
    cached_settings,
    clinic_settings,
    doctor_registry,
    load_settings,
    save_settings,
)
from tests.helpers import API

REMOTE = {
    "clinicName": "VM Clinic Annex",
    "obgyneDoctor": {"name": "Dr. Maria Sarah L. Manaloto", "hours": {"monday": "8AM-12PM"}},
    "pediatrician": {"name": "Dr. Shara Laine S. Vino", "hours": {"tuesday": "1PM-5PM"}},
}


@pytest.fixture
def ctx(app):
    with app.app_context():
        api = StaffAPI(API, token="tok")
        yield api
        api.close()


def load_remote(api, payload=REMOTE):
    with respx.mock(base_url=API) as m:
        m.get("/settings/clinic").respond(200, json={"success": True, "data": payload})
        return load_settings(api)


def test_load_settings_refreshes_cache(ctx):
    settings = load_remote(ctx)
    assert settings.clinic_name == "VM Clinic Annex"
    assert cached_settings().clinic_name == "VM Clinic Annex"


def test_load_settings_falls_back_to_defaults_without_cache(ctx):
    with respx.mock(base_url=API) as m:
        m.get("/settings/clinic").respond(503, json={"message": "down"})
        assert load_settings(ctx).clinic_name == "VM Mother and Child Clinic"


def test_load_settings_falls_back_to_cache(ctx):
    load_remote(ctx)
    with respx.mock(base_url=API) as m:
        m.get("/settings/clinic").respond(500)
        assert load_settings(ctx).clinic_name == "VM Clinic Annex"


def test_expired_session_is_not_masked_by_cache(ctx):
    load_remote(ctx)
    with respx.mock(base_url=API) as m:
        m.get("/settings/clinic").respond(401)
        with pytest.raises(SessionExpired):
            load_settings(ctx)


def test_save_settings_keeps_local_copy_when_api_fails(ctx):
    changed = load_remote(ctx).model_copy(update={"clinic_name": "Renamed Clinic"})
    with respx.mock(base_url=API) as m:
        put = m.put("/settings/clinic").respond(500, json={"message": "Database unavailable"})
        with pytest.raises(APIError) as info:
            save_settings(ctx, changed)
    assert info.value.message == "Database unavailable"
    assert json.loads(put.calls.last.request.content)["clinicName"] == "Renamed Clinic"
    assert cached_settings().clinic_name == "Renamed Clinic"
    assert clinic_settings(ctx).clinic_name == "Renamed Clinic"


def test_request_cache_fetches_once(ctx):
    with respx.mock(base_url=API) as m:
        route = m.get("/settings/clinic").respond(200, json={"data": REMOTE})
        clinic_settings(ctx)
        registry = doctor_registry(ctx)
        clinic_settings(ctx)
    assert route.call_count == 1
    assert registry.labels == ["Dr. Maria Sarah L. Manaloto", "Dr. Shara Laine S. Vino"]
