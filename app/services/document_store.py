# app/services/document_store.py
"""
Key-value document store.
Values are plain JSON structures (lists/dicts). The fleet core only ever
talks to a DocumentStore; the SQL-backed one is used by the running service,
the in-memory one by tests and throwaway demos.
"""

import copy
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.database import SessionLocal
from app.exceptions import StorageError
from app.models.document import Document
from app.utils.json_parser import safe_parse_json, dump_json
from app.utils.logger import get_logger

logger = get_logger(__name__)

VEHICLES_KEY = "vehicles"
VEHICLE_TYPES_KEY = "vehicleTypes"
ABOUT_CONTENT_KEY = "aboutContent"
EMAIL_CONFIG_KEY = "emailConfig"


class DocumentStore:
    def get(self, key: str) -> Optional[Any]:
        """Return the document stored under `key`, or None when absent. Raises StorageError."""
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError


class MemoryDocumentStore(DocumentStore):
    def __init__(self, initial: Optional[dict] = None):
        self._docs: dict = copy.deepcopy(initial or {})

    def get(self, key):
        value = self._docs.get(key)
        return copy.deepcopy(value)

    def set(self, key, value):
        self._docs[key] = copy.deepcopy(value)


class SqlDocumentStore(DocumentStore):
    """One row per key in the `documents` table. Fresh session per call."""

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    def get(self, key):
        db = self._session_factory()
        try:
            row = db.query(Document).filter(Document.key == key).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Cannot read document '{key}': {e}") from e
        finally:
            db.close()

        if row is None:
            return None
        value = safe_parse_json(row.value)
        if value is None:
            raise StorageError(f"Document '{key}' is corrupt")
        return value

    def set(self, key, value):
        db = self._session_factory()
        try:
            row = db.query(Document).filter(Document.key == key).first()
            if row is None:
                row = Document(key=key, value=dump_json(value), updated_at=datetime.utcnow())
                db.add(row)
            else:
                row.value = dump_json(value)
                row.updated_at = datetime.utcnow()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Cannot write document '{key}': {e}") from e
        finally:
            db.close()
