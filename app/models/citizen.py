"""
Citizen database model
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Enum, Date, DateTime, Boolean
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.enums import UserRole


class Citizen(Base):
    """
    Registered resident (or admin) of the barangay.

    Address fields come in two naming schemes: the current
    street_number/street_name pair and the legacy house_number/street pair.
    is_profile_complete is a cached copy of the completeness predicate kept
    for display; gating decisions always recompute it from the fields.
    """
    __tablename__ = "citizens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    email = Column(String, nullable=False, unique=True, index=True)
    role = Column(
        Enum(UserRole, values_callable=lambda e: [m.value for m in e]),
        default=UserRole.CITIZEN,
        nullable=False,
    )

    first_name = Column(String, nullable=True)
    middle_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    suffix = Column(String, nullable=True)
    date_of_birth = Column(Date, nullable=True)
    phone_number = Column(String, nullable=True)

    house_number = Column(String, nullable=True)  # legacy
    street = Column(String, nullable=True)  # legacy
    street_number = Column(String, nullable=True)
    street_name = Column(String, nullable=True)
    barangay = Column(String, nullable=True)
    city = Column(String, nullable=True)

    is_profile_complete = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    document_requests = relationship(
        "DocumentRequest",
        back_populates="citizen",
        foreign_keys="DocumentRequest.citizen_id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Citizen(id={self.id}, email={self.email}, role={self.role.value})>"

    @property
    def full_name(self) -> str:
        """First, middle, last name and suffix, skipping blanks"""
        parts = [self.first_name, self.middle_name, self.last_name, self.suffix]
        return " ".join(p.strip() for p in parts if p and p.strip())

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
