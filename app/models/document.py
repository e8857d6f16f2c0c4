"""
Document model - generic collection-keyed record storage
"""
from sqlalchemy import Column, String, JSON, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from app.database import Base


class Document(Base):
    """
    Documents table - one row per record, keyed by (collection, id)

    The record's own fields live in the JSON payload; timestamps are
    stamped by the store.
    """
    __tablename__ = "documents"

    collection = Column(String(64), primary_key=True)
    id = Column(String(128), primary_key=True)
    data = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True))

    def __repr__(self):
        return f"<Document(collection={self.collection}, id={self.id})>"
