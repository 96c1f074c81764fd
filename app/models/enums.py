"""
Enum definitions for database models
"""
import enum


class UserRole(str, enum.Enum):
    """Account role"""
    CITIZEN = "citizen"
    ADMIN = "admin"


class DocumentType(str, enum.Enum):
    """Documents a citizen can request"""
    BARANGAY_CLEARANCE = "barangay_clearance"
    CERTIFICATE_OF_RESIDENCY = "certificate_of_residency"
    CERTIFICATE_OF_INDIGENCY = "certificate_of_indigency"

    @property
    def display_name(self) -> str:
        """Human-readable document name used in SMS and on the document"""
        return DOCUMENT_TITLES[self]


DOCUMENT_TITLES = {
    DocumentType.BARANGAY_CLEARANCE: "Barangay Clearance",
    DocumentType.CERTIFICATE_OF_RESIDENCY: "Certificate of Residency",
    DocumentType.CERTIFICATE_OF_INDIGENCY: "Certificate of Indigency",
}


class RequestStatus(str, enum.Enum):
    """Document request status"""
    PENDING = "pending"    # Waiting for an admin decision
    APPROVED = "approved"  # Document generated (terminal)
    DENIED = "denied"      # Rejected with a reason (terminal)


class ActivityType(str, enum.Enum):
    """Activity log categories"""
    DOCUMENT = "document"
    PROFILE = "profile"
    TEMPLATE = "template"
