# app/models/document.py
"""
Key-value document table.
Each row holds one JSON document (e.g. `vehicles`, `vehicleTypes`, `aboutContent`).
Read and written only through app.services.document_store.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from app.database import Base


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(Text, nullable=False)          # JSON-encoded document
    updated_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<Document {self.key} updated={self.updated_at}>"
