"""Document request and template API endpoints."""

import json
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_workflow, require_admin
from app.core.database import get_db
from app.core.exceptions import ValidationError
from app.models.citizen import Citizen
from app.schemas.document_request import (
    AdminDocumentRequestCreate,
    AdminDocumentRequestListEnvelope,
    AdminDocumentRequestResponse,
    ApproveRequest,
    DenyRequest,
    DocumentRequestCreate,
    DocumentRequestEnvelope,
    DocumentRequestListEnvelope,
    DocumentRequestResponse,
    MessageResponse,
    OptionalDocumentRequestEnvelope,
    TemplateInspectResponse,
    TemplateListEnvelope,
    TemplatePreviewResponse,
    TemplateStatusResponse,
    TemplateUploadResponse,
)
from app.services.document_workflow import DocumentWorkflowService
from app.services.template_renderer import DOCX_MIME_TYPE, PDF_MIME_TYPE
from app.utils.file_handling import validate_file_size

router = APIRouter()


def _attachment(content: bytes, filename: str, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={
            "Content-Disposition": f"attachment; filename=\"{filename}\"; filename*=UTF-8''{quote(filename)}",
        },
    )


async def _read_upload(upload: UploadFile, max_size: int) -> bytes:
    """Read an uploaded file, never holding more than max_size + 1 bytes.

    Raises:
        ValidationError 413: If the declared size exceeds max_size
    """
    if upload.size is not None:
        validate_file_size(upload.size, max_size)
    # One extra byte lets the service size check see an undeclared oversize body
    return await upload.read(max_size + 1)


def _parse_data(data: Optional[str]) -> dict:
    """Parse the JSON `data` form field of preview requests."""
    if not data:
        return {}
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON in data field")
    if not isinstance(parsed, dict):
        raise ValidationError("data must be a JSON object")
    return parsed


# ---------------------------------------------------------------------------
# Citizen endpoints
# ---------------------------------------------------------------------------

@router.post("/request", response_model=DocumentRequestEnvelope, status_code=201)
async def create_document_request(
    payload: DocumentRequestCreate,
    current_user: Citizen = Depends(get_current_user),
    workflow: DocumentWorkflowService = Depends(get_workflow),
    db: AsyncSession = Depends(get_db)
):
    """
    Submit a document request.

    Raises:
        HTTPException 403: If the profile is incomplete
        HTTPException 409: If a pending request of this type exists
    """
    request = await workflow.create_request(db, current_user.id, payload.document_type, payload.purpose)
    return DocumentRequestEnvelope(
        message="Document request submitted successfully",
        data=DocumentRequestResponse.model_validate(request),
    )


@router.get("/my-requests", response_model=DocumentRequestListEnvelope)
async def get_my_requests(
    current_user: Citizen = Depends(get_current_user),
    workflow: DocumentWorkflowService = Depends(get_workflow),
    db: AsyncSession = Depends(get_db)
):
    requests = await workflow.list_citizen_requests(db, current_user.id)
    return DocumentRequestListEnvelope(data=[DocumentRequestResponse.model_validate(r) for r in requests])


@router.get("/my-pending-request", response_model=OptionalDocumentRequestEnvelope)
async def get_my_pending_request(
    current_user: Citizen = Depends(get_current_user),
    workflow: DocumentWorkflowService = Depends(get_workflow),
    db: AsyncSession = Depends(get_db)
):
    """Most recent pending request of any type, or null"""
    request = await workflow.get_citizen_pending_request(db, current_user.id)
    return OptionalDocumentRequestEnvelope(
        data=DocumentRequestResponse.model_validate(request) if request else None
    )


@router.get("/my-pending-requests", response_model=DocumentRequestListEnvelope)
async def get_my_pending_requests(
    current_user: Citizen = Depends(get_current_user),
    workflow: DocumentWorkflowService = Depends(get_workflow),
    db: AsyncSession = Depends(get_db)
):
    requests = await workflow.list_citizen_pending_requests(db, current_user.id)
    return DocumentRequestListEnvelope(data=[DocumentRequestResponse.model_validate(r) for r in requests])


@router.post("/cancel/{request_id}", response_model=MessageResponse)
async def cancel_document_request(
    request_id: int,
    current_user: Citizen = Depends(get_current_user),
    workflow: DocumentWorkflowService = Depends(get_workflow),
    db: AsyncSession = Depends(get_db)
):
    """
    Cancel one of the caller's pending requests.

    Raises:
        HTTPException 404: If the request does not exist
        HTTPException 403: If the request belongs to someone else
        HTTPException 409: If the request is no longer pending
    """
    await workflow.cancel_request(db, request_id, current_user.id)
    return MessageResponse(message="Request cancelled successfully")


@router.get("/download/{request_id}")
async def download_document(
    request_id: int,
    current_user: Citizen = Depends(get_current_user),
    workflow: DocumentWorkflowService = Depends(get_workflow),
    db: AsyncSession = Depends(get_db)
):
    """
    Download the generated DOCX of an approved request (owner only).

    Raises:
        HTTPException 403: If the request belongs to someone else
        HTTPException 404: If the request or the stored file does not exist
        HTTPException 409: If the document has not been generated yet
    """
    filename, content = await workflow.get_generated_document(db, request_id, current_user.id)
    return _attachment(content, filename, DOCX_MIME_TYPE)


@router.get("/download/{request_id}/pdf")
async def download_document_pdf(
    request_id: int,
    current_user: Citizen = Depends(get_current_user),
    workflow: DocumentWorkflowService = Depends(get_workflow),
    db: AsyncSession = Depends(get_db)
):
    filename, content = await workflow.get_generated_document_pdf(db, request_id, current_user.id)
    return _attachment(content, filename, PDF_MIME_TYPE)


# ---------------------------------------------------------------------------
# Admin endpoints
# ---------------------------------------------------------------------------

@router.post("/admin/requests", response_model=DocumentRequestEnvelope, status_code=201)
async def create_admin_document_request(
    payload: AdminDocumentRequestCreate,
    admin: Citizen = Depends(require_admin),
    workflow: DocumentWorkflowService = Depends(get_workflow),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a request on behalf of a citizen.

    Skips the profile completeness check and the pending-request pre-check.
    """
    request = await workflow.create_admin_request(
        db, admin, payload.user_id, payload.document_type, payload.purpose
    )
    return DocumentRequestEnvelope(
        message="Document request created successfully",
        data=DocumentRequestResponse.model_validate(request),
    )


@router.get("/admin/pending", response_model=AdminDocumentRequestListEnvelope)
async def get_pending_requests(
    admin: Citizen = Depends(require_admin),
    workflow: DocumentWorkflowService = Depends(get_workflow),
    db: AsyncSession = Depends(get_db)
):
    requests = await workflow.list_pending_requests(db)
    return AdminDocumentRequestListEnvelope(
        data=[AdminDocumentRequestResponse.model_validate(r) for r in requests]
    )


@router.get("/admin/all", response_model=AdminDocumentRequestListEnvelope)
async def get_all_requests(
    admin: Citizen = Depends(require_admin),
    workflow: DocumentWorkflowService = Depends(get_workflow),
    db: AsyncSession = Depends(get_db)
):
    requests = await workflow.list_all_requests(db)
    return AdminDocumentRequestListEnvelope(
        data=[AdminDocumentRequestResponse.model_validate(r) for r in requests]
    )


@router.post("/admin/requests/{request_id}/approve")
async def approve_document_request(
    request_id: int,
    payload: Optional[ApproveRequest] = None,
    admin: Citizen = Depends(require_admin),
    workflow: DocumentWorkflowService = Depends(get_workflow),
    db: AsyncSession = Depends(get_db)
):
    """
    Approve a pending request and return the generated DOCX.

    Raises:
        HTTPException 404: If the request does not exist
        HTTPException 409: If the request is not pending
        HTTPException 422: If the template has unresolved placeholders
        HTTPException 500: If document generation fails
    """
    admin_notes = payload.admin_notes if payload else None
    result = await workflow.approve_request(db, request_id, admin, admin_notes)
    return _attachment(result.content, result.filename, DOCX_MIME_TYPE)


@router.post("/admin/requests/{request_id}/deny", response_model=DocumentRequestEnvelope)
async def deny_document_request(
    request_id: int,
    payload: DenyRequest,
    admin: Citizen = Depends(require_admin),
    workflow: DocumentWorkflowService = Depends(get_workflow),
    db: AsyncSession = Depends(get_db)
):
    request = await workflow.deny_request(db, request_id, admin, payload.denial_reason)
    return DocumentRequestEnvelope(
        message="Request denied successfully",
        data=DocumentRequestResponse.model_validate(request),
    )


@router.get("/admin/requests/{request_id}/download")
async def admin_download_document(
    request_id: int,
    admin: Citizen = Depends(require_admin),
    workflow: DocumentWorkflowService = Depends(get_workflow),
    db: AsyncSession = Depends(get_db)
):
    """Download any approved request's DOCX"""
    filename, content = await workflow.get_generated_document(db, request_id, None)
    return _attachment(content, filename, DOCX_MIME_TYPE)


# ---------------------------------------------------------------------------
# Template endpoints (admin)
# ---------------------------------------------------------------------------

@router.get("/admin/templates", response_model=TemplateListEnvelope)
async def get_templates(
    admin: Citizen = Depends(require_admin),
    workflow: DocumentWorkflowService = Depends(get_workflow)
):
    return TemplateListEnvelope(
        data=[TemplateStatusResponse.model_validate(s) for s in workflow.template_status()]
    )


@router.post("/admin/templates/upload", response_model=TemplateUploadResponse)
async def upload_template(
    template: UploadFile = File(...),
    type: str = Form(...),
    admin: Citizen = Depends(require_admin),
    workflow: DocumentWorkflowService = Depends(get_workflow),
    db: AsyncSession = Depends(get_db)
):
    """
    Replace the stored template for a document type.

    Raises:
        HTTPException 400: If the type, extension or file content is invalid
        HTTPException 413: If the file exceeds MAX_TEMPLATE_SIZE
    """
    content = await _read_upload(template, workflow.max_template_size)
    status = await workflow.upload_template(db, admin, type, template.filename, content)
    return TemplateUploadResponse(
        message="Template uploaded successfully",
        data=TemplateStatusResponse.model_validate(status),
    )


@router.post("/admin/templates/inspect", response_model=TemplateInspectResponse)
async def inspect_template(
    template: UploadFile = File(...),
    admin: Citizen = Depends(require_admin),
    workflow: DocumentWorkflowService = Depends(get_workflow)
):
    content = await _read_upload(template, workflow.max_template_size)
    return TemplateInspectResponse(**workflow.inspect_template(template.filename, content))


@router.post("/admin/templates/preview", response_model=TemplatePreviewResponse)
async def preview_template(
    template: UploadFile = File(...),
    data: Optional[str] = Form(None),
    admin: Citizen = Depends(require_admin),
    workflow: DocumentWorkflowService = Depends(get_workflow)
):
    """Fill a template with sample data (overridden by `data`) and return HTML"""
    content = await _read_upload(template, workflow.max_template_size)
    preview = workflow.preview_template(template.filename, content, _parse_data(data))
    return TemplatePreviewResponse(html=preview.html)


@router.post("/admin/templates/render-pdf")
async def render_template_pdf(
    template: UploadFile = File(...),
    data: Optional[str] = Form(None),
    admin: Citizen = Depends(require_admin),
    workflow: DocumentWorkflowService = Depends(get_workflow)
):
    content = await _read_upload(template, workflow.max_template_size)
    filename, pdf = workflow.render_template_pdf(template.filename, content, _parse_data(data))
    return _attachment(pdf, filename, PDF_MIME_TYPE)
