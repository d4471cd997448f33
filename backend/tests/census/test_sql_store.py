import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.models.document import StoredDocument
from app.services.census.errors import DocumentStoreError
from app.services.census.sql_store import SqlDocumentStore
from app.services.census.store import document_from_payload


def test_load_missing_row_returns_empty_document(session_factory):
    store = SqlDocumentStore(session_factory, key="facility-a")
    assert store.load().residents == {}
    assert store.revision() == 0


def test_save_inserts_then_updates(session_factory, facility_payload):
    store = SqlDocumentStore(session_factory, key="facility-a")
    document = document_from_payload(facility_payload)
    store.save(document)
    assert store.revision() == 1

    document.residents.pop("MRN300")
    store.save(document)
    assert store.revision() == 2

    session = session_factory()
    try:
        rows = list(session.scalars(select(StoredDocument)))
    finally:
        session.close()
    assert len(rows) == 1
    assert set(rows[0].payload["census"]["residentsByMrn"]) == {"MRN100", "MRN200"}


def test_documents_are_isolated_by_key(session_factory, facility_payload):
    SqlDocumentStore(session_factory, key="facility-a").save(document_from_payload(facility_payload))
    assert SqlDocumentStore(session_factory, key="facility-b").load().residents == {}


def test_save_failure_raises_store_error(session_factory, facility_payload, monkeypatch):
    store = SqlDocumentStore(session_factory, key="facility-a")

    def broken_commit(self):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr("sqlalchemy.orm.Session.commit", broken_commit)
    with pytest.raises(DocumentStoreError):
        store.save(document_from_payload(facility_payload))
    monkeypatch.undo()
    assert store.revision() == 0
