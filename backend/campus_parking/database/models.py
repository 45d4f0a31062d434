"""
SQLAlchemy ORM Models

A single table stores every document of every collection
(vehicles, violations, sanctions) as a JSON body with an integer
version used for optimistic concurrency.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Index
from sqlalchemy.sql import func
from .database import Base


class DocumentRecord(Base):
    """
    One document of a collection

    version starts at 1 and is incremented on every write; transactions
    compare it at commit time to detect concurrent modification.
    """
    __tablename__ = "documents"

    collection = Column(String, primary_key=True)
    doc_id = Column(String, primary_key=True)

    data = Column(Text, nullable=False)  # JSON object
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_documents_collection', 'collection'),
    )
