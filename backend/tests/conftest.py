from datetime import datetime, timezone

import pytest

from app.services.census.store import InMemoryDocumentStore, default_payload

CENSUS_TEXT = """\
Unit 2 201-A SMITH, JOHN (MRN100) 01/15/1940 Active Current Medicare
Unit 3 305 DOE, JANE (MRN200) 02/20/1938 Active Current Medicaid
Unit 4 410-B ROE, RICHARD (MRN300) 03/03/1945 Active Current Private
Unit 2 202 EMPTY
"""


@pytest.fixture
def now():
    return datetime(2025, 3, 1, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def census_text():
    return CENSUS_TEXT


def make_payload(residents=None, abx=None, ip_cases=None, vax=None, audit_log=None):
    payload = default_payload()
    payload["census"]["residentsByMrn"] = residents or {}
    payload["records"]["abx"] = abx or []
    payload["records"]["ip_cases"] = ip_cases or []
    payload["records"]["vax"] = vax or []
    payload["audit_log"] = audit_log or []
    return payload


def resident(mrn, name, unit, room, active=True):
    return {
        "id": f"res_{mrn}",
        "mrn": mrn,
        "name": name,
        "unit": unit,
        "room": room,
        "dob_raw": "01/01/1940",
        "active_on_census": active,
    }


@pytest.fixture
def facility_payload():
    return make_payload(
        residents={
            "MRN100": resident("MRN100", "SMITH, JOHN", "Unit 2", "201-A"),
            "MRN200": resident("MRN200", "DOE, JANE", "Unit 3", "305"),
            "MRN300": resident("MRN300", "ROE, RICHARD", "Unit 4", "410-B"),
        },
        abx=[
            {"id": "abx-1", "mrn": "MRN200", "residentName": "DOE, JANE", "status": "active",
             "medication": "Cephalexin", "unit": "Unit 3", "room": "305"},
            {"id": "abx-2", "mrn": "MRN200", "status": "completed", "medication": "Nitrofurantoin",
             "end_date": "2025-01-10"},
            {"id": "abx-3", "mrn": "MRN100", "status": "active", "medication": "Doxycycline",
             "unit": "Unit 2", "room": "201-A"},
        ],
        ip_cases=[
            {"id": "ip-1", "mrn": "MRN200", "status": "Active", "infection_type": "UTI",
             "unit": "Unit 3", "room": "305"},
            {"id": "ip-2", "mrn": "MRN200", "status": "Resolved", "infection_type": "Flu"},
        ],
        vax=[
            {"id": "vax-1", "mrn": "MRN200", "status": "due", "vaccine": "Influenza"},
            {"id": "vax-2", "mrn": "MRN200", "status": "given", "vaccine": "COVID-19"},
            {"id": "vax-3", "mrn": "MRN300", "status": "overdue", "vaccine": "Pneumococcal"},
        ],
    )


@pytest.fixture
def facility_store(facility_payload):
    return InMemoryDocumentStore(facility_payload)


@pytest.fixture
def session_factory(tmp_path):
    from sqlalchemy.orm import sessionmaker

    from app.db.session import build_engine
    from app.models import Base

    engine = build_engine(f"sqlite:///{tmp_path / 'icn_hub_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()
