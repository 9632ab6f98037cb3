import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="portal-tests-")
os.environ["PORTAL_DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'portal.db')}"
os.environ["PORTAL_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient

from portal.db import Base, engine
from portal.main import app
from portal.api.applications import application_edits


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    application_edits.clear()
    yield
    application_edits.clear()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def application(client):
    response = client.post(
        "/api/v1/applications",
        json={
            "companyName": "Roadside Towing Co",
            "ownerFirstName": "Sam",
            "ownerLastName": "Rivera",
            "email": "dispatch@roadside.example",
            "phoneNumber": "555-0100",
            "facilityAddress1": "100 Main St",
            "facilityCity": "Springfield",
            "facilityState": "IL",
            "facilityZip": "62701",
        },
    )
    assert response.status_code == 200, response.text
    return response.json()
