from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.document import StoredDocument
from app.services.census.errors import DocumentStoreError
from app.services.census.store import DocumentStore, document_from_payload, document_to_payload
from app.services.census.types import Document

logger = logging.getLogger("icn_hub.store")


class SqlDocumentStore(DocumentStore):
    def __init__(self, session_factory: Callable[[], Session], key: str = "default") -> None:
        self.session_factory = session_factory
        self.key = key

    def _get_row(self, session: Session) -> StoredDocument | None:
        return session.scalar(select(StoredDocument).where(StoredDocument.key == self.key))

    def load(self) -> Document:
        session = self.session_factory()
        try:
            row = self._get_row(session)
            payload = row.payload if row is not None else None
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"Unable to load document {self.key!r}: {exc}") from exc
        finally:
            session.close()
        return document_from_payload(payload)

    def revision(self) -> int:
        session = self.session_factory()
        try:
            row = self._get_row(session)
            return row.revision if row is not None else 0
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"Unable to read revision for {self.key!r}: {exc}") from exc
        finally:
            session.close()

    def save(self, document: Document) -> None:
        payload = document_to_payload(document)
        session = self.session_factory()
        try:
            row = self._get_row(session)
            if row is None:
                session.add(StoredDocument(key=self.key, payload=payload, revision=1))
            else:
                row.payload = payload
                row.revision = row.revision + 1
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise DocumentStoreError(f"Unable to save document {self.key!r}: {exc}") from exc
        finally:
            session.close()
        logger.info("Saved document %s", self.key)
