import pytest
import respx

from clinic_portal import create_app
from tests.helpers import API

STAFF_PROFILE = {"_id": "u1", "username": "frontdesk", "firstName": "Ana", "lastName": "Reyes", "role": "staff"}
PATIENT_PROFILE = {
    "_id": "p1",
    "firstName": "Liza",
    "lastName": "Cruz",
    "fullName": "Liza Cruz",
    "email": "liza@example.com",
    "phoneNumber": "09171234567",
}

@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "WTF_CSRF_ENABLED": False,
            "RATELIMIT_ENABLED": False,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'portal.db'}",
            "CLINIC_API_URL": API,
        }
    )
    yield app

@pytest.fixture
def client(app):
    return app.test_client()

@pytest.fixture
def backend():
    # unmatched calls get an empty 200 so pages that fetch extras still render
    with respx.mock(base_url=API, assert_all_called=False, assert_all_mocked=False) as mock:
        yield mock

@pytest.fixture
def staff_client(client):
    with client.session_transaction() as sess:
        sess["clinic_token"] = "staff-token"
        sess["staff_profile"] = dict(STAFF_PROFILE)
        sess["_user_id"] = STAFF_PROFILE["_id"]
        sess["_fresh"] = True
    return client

@pytest.fixture
def patient_client(client):
    with client.session_transaction() as sess:
        sess["patient_token"] = "patient-token"
        sess["patient_profile"] = dict(PATIENT_PROFILE)
    return client
