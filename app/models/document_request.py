"""
DocumentRequest database model
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, Enum, DateTime, ForeignKey, Index, Text, text
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.enums import DocumentType, RequestStatus


class DocumentRequest(Base):
    """
    DocumentRequest model representing a citizen's ask for an official paper.

    Status transitions: pending → approved or pending → denied, both terminal.
    A pending request may also be deleted by its owner (cancellation).

    Features:
    - Partial unique index on (citizen_id, document_type) where status is
      pending: at most one open request per citizen and document type
    - generated_file names the stored DOCX once the request is approved
    """
    __tablename__ = "document_requests"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    citizen_id = Column(String(36), ForeignKey("citizens.id", ondelete="CASCADE"), nullable=False, index=True)
    document_type = Column(
        Enum(DocumentType, values_callable=lambda e: [m.value for m in e]),
        default=DocumentType.BARANGAY_CLEARANCE,
        nullable=False,
    )
    purpose = Column(String(255), nullable=False)
    status = Column(
        Enum(RequestStatus, values_callable=lambda e: [m.value for m in e]),
        default=RequestStatus.PENDING,
        nullable=False,
        index=True,
    )
    admin_notes = Column(Text, nullable=True)
    denial_reason = Column(Text, nullable=True)
    processed_by_id = Column(String(36), ForeignKey("citizens.id", ondelete="SET NULL"), nullable=True)
    processed_at = Column(DateTime, nullable=True)
    generated_file = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    citizen = relationship("Citizen", back_populates="document_requests", foreign_keys=[citizen_id])
    processed_by = relationship("Citizen", foreign_keys=[processed_by_id])

    # Indexes
    __table_args__ = (
        # One pending request per citizen and document type
        Index(
            "idx_one_pending_per_type",
            "citizen_id",
            "document_type",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self):
        return f"<DocumentRequest(id={self.id}, type={self.document_type.value}, status={self.status.value})>"

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    @property
    def has_generated_file(self) -> bool:
        """Check if an approved document is available for download"""
        return self.status == RequestStatus.APPROVED and bool(self.generated_file)
