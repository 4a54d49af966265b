from sqlalchemy import Column, String, DateTime, Integer, JSON, UniqueConstraint, Index
from sqlalchemy.sql import func

from .database import Base


class Document(Base):
    """One document of a collection (invoices, bookings, packages)"""
    __tablename__ = "documents"

    collection = Column(String(64), primary_key=True)
    id = Column(String(64), primary_key=True)

    # Flat camelCase fields; invoice line items live here as a JSON string
    data = Column(JSON, nullable=False, default=dict)

    # Audit Trail
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_documents_collection_created_at", "collection", "created_at"),
    )


class DocumentUniqueKey(Base):
    """Unique field values per collection, e.g. invoiceNumber and bookingId"""
    __tablename__ = "document_unique_keys"

    id = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(64), nullable=False)
    field = Column(String(64), nullable=False)
    value = Column(String(255), nullable=False)
    document_id = Column(String(64), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("collection", "field", "value", name="uq_document_unique_keys_value"),
    )
