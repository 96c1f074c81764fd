"""
Document request Pydantic schemas
"""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import Field
from app.models.enums import DocumentType, RequestStatus
from app.schemas.base import CamelModel
from app.schemas.citizen import CitizenSummary


class DocumentRequestCreate(CamelModel):
    """Schema for a citizen submitting a request"""
    document_type: DocumentType = Field(DocumentType.BARANGAY_CLEARANCE, description="Requested document type")
    purpose: str = Field(..., min_length=1, max_length=255, description="Why the document is needed")


class AdminDocumentRequestCreate(DocumentRequestCreate):
    """Schema for an admin creating a request on a citizen's behalf"""
    user_id: str = Field(..., description="Citizen UUID")


class ApproveRequest(CamelModel):
    admin_notes: Optional[str] = None


class DenyRequest(CamelModel):
    denial_reason: Optional[str] = Field(None, description="Reason shown to the citizen")


class DocumentRequestResponse(CamelModel):
    """Schema for document request response"""
    id: int
    citizen_id: str
    document_type: DocumentType
    purpose: str
    status: RequestStatus
    admin_notes: Optional[str] = None
    denial_reason: Optional[str] = None
    processed_by_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    generated_file: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AdminDocumentRequestResponse(DocumentRequestResponse):
    """Request with the requesting citizen attached (admin lists)"""
    citizen: Optional[CitizenSummary] = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class DocumentRequestEnvelope(CamelModel):
    success: bool = True
    message: Optional[str] = None
    data: DocumentRequestResponse


class OptionalDocumentRequestEnvelope(CamelModel):
    success: bool = True
    data: Optional[DocumentRequestResponse] = None


class DocumentRequestListEnvelope(CamelModel):
    success: bool = True
    data: List[DocumentRequestResponse]


class AdminDocumentRequestListEnvelope(CamelModel):
    success: bool = True
    data: List[AdminDocumentRequestResponse]


class TemplateStatusResponse(CamelModel):
    document_type: DocumentType
    has_template: bool
    updated_at: Optional[datetime] = None


class TemplateListEnvelope(CamelModel):
    success: bool = True
    data: List[TemplateStatusResponse]


class TemplateUploadResponse(MessageResponse):
    data: TemplateStatusResponse


class TemplateInspectResponse(CamelModel):
    """Placeholders and embedded images found in a template"""
    success: bool = True
    file_name: str
    size: int
    placeholders: List[str]
    images: Dict[str, str] = Field(default_factory=dict, description="Image name to data URI")


class TemplatePreviewResponse(CamelModel):
    success: bool = True
    html: str
