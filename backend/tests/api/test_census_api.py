import pytest
from fastapi.testclient import TestClient

from app.deps import get_document_store, get_import_policy
from app.main import app
from app.services.census.errors import DocumentStoreError
from app.services.census.importer import ImportPolicy
from app.services.census.store import InMemoryDocumentStore

DOE_DROPPED = """\
Unit 2 201-A SMITH, JOHN (MRN100) 01/15/1940 Active Current Medicare
Unit 4 410-B ROE, RICHARD (MRN300) 03/03/1945 Active Current Private
"""


class BrokenStore(InMemoryDocumentStore):
    def load(self):
        raise DocumentStoreError("database is locked")


@pytest.fixture
def client(facility_store):
    app.dependency_overrides[get_document_store] = lambda: facility_store
    app.dependency_overrides[get_import_policy] = lambda: ImportPolicy()
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_preview(client, census_text):
    response = client.post("/census/preview", json={"raw_text": census_text})
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["default_selected"] == ["row-1", "row-2", "row-3"]
    assert body["summary"]["total"] == 3
    assert body["rows"][0]["mrn"] == "MRN100"
    assert body["rows"][0]["validation"]["status"] == "valid"


def test_apply_and_list(client, facility_store):
    response = client.post("/census/apply", json={"raw_text": DOE_DROPPED, "user": "icn"})
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["residents_dropped"] == 1
    assert body["abx_closed"] == 1
    assert body["message"].startswith("Imported 2 residents, 1 discharged")
    assert facility_store.save_count == 1

    active = client.get("/census/residents", params={"active": "true"}).json()
    assert [resident["mrn"] for resident in active] == ["MRN300", "MRN100"]
    inactive = client.get("/census/residents", params={"active": "false"}).json()
    assert [resident["mrn"] for resident in inactive] == ["MRN200"]
    unit_two = client.get("/census/residents", params={"unit": "2"}).json()
    assert [resident["mrn"] for resident in unit_two] == ["MRN100"]


def test_apply_blocked_returns_conflict(client, facility_store):
    text = DOE_DROPPED + "Unit 9 901 GHOST, CASPER (MRN7) 01/01/1950\n"
    response = client.post(
        "/census/apply",
        json={"raw_text": text, "selected_keys": ["row-1", "row-2", "row-3"]},
    )
    assert response.status_code == 409
    assert response.json()["detail"]["error_keys"] == ["row-3"]
    assert facility_store.save_count == 0


def test_apply_empty_selection_is_rejected(client):
    response = client.post("/census/apply", json={"raw_text": "nothing to see"})
    assert response.status_code == 422


def test_store_failure_maps_to_503(facility_payload):
    app.dependency_overrides[get_document_store] = lambda: BrokenStore(facility_payload)
    try:
        response = TestClient(app).get("/census/residents")
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 503


def test_audit_lists_newest_first(client):
    client.post("/census/apply", json={"raw_text": DOE_DROPPED})
    entries = client.get("/audit").json()
    assert [entry["action"] for entry in entries] == [
        "census_import",
        "vax_discharge",
        "ip_discharge",
        "abx_discharge",
    ]
    filtered = client.get("/audit", params={"entity_type": "ip"}).json()
    assert [entry["action"] for entry in filtered] == ["ip_discharge"]
    page = client.get("/audit", params={"limit": 1, "offset": 1}).json()
    assert [entry["action"] for entry in page] == ["vax_discharge"]


def test_manual_discharge(client, facility_store):
    response = client.post("/trackers/abx/abx-3/discharge", json={"user": "icn"})
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "discontinued"
    assert body["close_reason"] == "manual_discharge"
    assert body["notes"].startswith("[Manual discharge:")

    document = facility_store.load()
    assert document.audit_log[-1].action == "abx_discharge"
    assert document.audit_log[-1].user == "icn"


def test_manual_discharge_errors(client):
    assert client.post("/trackers/abx/missing/discharge").status_code == 404
    assert client.post("/trackers/abx/abx-2/discharge").status_code == 409
    assert client.post("/trackers/flu/abx-1/discharge").status_code == 422


def test_list_tracker_episodes(client):
    response = client.get("/trackers/vax", params={"open_only": "true"})
    assert response.status_code == 200
    assert [episode["id"] for episode in response.json()] == ["vax-1", "vax-3"]


def test_tracker_mrn_filter_matches_canonical_form(client):
    response = client.get("/trackers/abx", params={"mrn": "mrn-200"})
    assert [episode["id"] for episode in response.json()] == ["abx-1", "abx-2"]


def test_tracker_mrn_filter_matches_differently_formatted_stored_mrn(facility_payload):
    facility_payload["records"]["abx"].append(
        {"id": "abx-9", "mrn": "mrn-100", "status": "active", "medication": "Amoxicillin"}
    )
    app.dependency_overrides[get_document_store] = lambda: InMemoryDocumentStore(facility_payload)
    try:
        response = TestClient(app).get("/trackers/abx", params={"mrn": "MRN100"})
    finally:
        app.dependency_overrides.clear()
    assert [episode["id"] for episode in response.json()] == ["abx-3", "abx-9"]
