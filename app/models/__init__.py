"""
Database models package
"""
from app.models.enums import UserRole, DocumentType, RequestStatus, ActivityType
from app.models.citizen import Citizen
from app.models.document_request import DocumentRequest
from app.models.activity_log import ActivityLog

__all__ = [
    "UserRole",
    "DocumentType",
    "RequestStatus",
    "ActivityType",
    "Citizen",
    "DocumentRequest",
    "ActivityLog",
]
