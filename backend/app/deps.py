from app.core.settings import settings
from app.db.session import SessionLocal
from app.services.census.importer import ImportPolicy
from app.services.census.sql_store import SqlDocumentStore
from app.services.census.store import DocumentStore


def get_document_store() -> DocumentStore:
    return SqlDocumentStore(SessionLocal, key=settings.document_key)


def get_import_policy() -> ImportPolicy:
    return ImportPolicy.from_settings(settings)
