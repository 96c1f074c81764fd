"""
Pydantic schemas for request/response validation
"""
from app.schemas.citizen import CitizenCreate, CitizenResponse, CitizenSummary, ProfileUpdate
from app.schemas.document_request import (
    DocumentRequestCreate,
    AdminDocumentRequestCreate,
    ApproveRequest,
    DenyRequest,
    DocumentRequestResponse,
    AdminDocumentRequestResponse,
    MessageResponse,
    DocumentRequestEnvelope,
    OptionalDocumentRequestEnvelope,
    DocumentRequestListEnvelope,
    AdminDocumentRequestListEnvelope,
    TemplateStatusResponse,
    TemplateListEnvelope,
    TemplateUploadResponse,
    TemplateInspectResponse,
    TemplatePreviewResponse,
)
from app.schemas.activity_log import ActivityLogResponse, ActivityLogListEnvelope

__all__ = [
    "CitizenCreate",
    "CitizenResponse",
    "CitizenSummary",
    "ProfileUpdate",
    "DocumentRequestCreate",
    "AdminDocumentRequestCreate",
    "ApproveRequest",
    "DenyRequest",
    "DocumentRequestResponse",
    "AdminDocumentRequestResponse",
    "MessageResponse",
    "DocumentRequestEnvelope",
    "OptionalDocumentRequestEnvelope",
    "DocumentRequestListEnvelope",
    "AdminDocumentRequestListEnvelope",
    "TemplateStatusResponse",
    "TemplateListEnvelope",
    "TemplateUploadResponse",
    "TemplateInspectResponse",
    "TemplatePreviewResponse",
    "ActivityLogResponse",
    "ActivityLogListEnvelope",
]
