"""Document request workflow service.

Owns the request lifecycle:

    citizen submits ──► PENDING ──► admin approves ──► APPROVED (document generated)
                           │  └────► admin denies ───► DENIED
                           └──► owner cancels (row deleted)

Every transition out of PENDING is a compare-and-swap UPDATE guarded by
``status = 'pending'``, and the partial unique index on document_requests
keeps one pending request per citizen and document type. SMS notifications
are queued only after the transaction commits.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import Settings
from app.core.exceptions import (
    DocumentNotReadyError,
    DuplicatePendingRequestError,
    ForbiddenError,
    GenerationFailureError,
    InvalidStateError,
    NotFoundError,
    ProfileIncompleteError,
    TemplateRenderError,
    ValidationError,
)
from app.models.citizen import Citizen
from app.models.document_request import DocumentRequest
from app.models.enums import ActivityType, DocumentType, RequestStatus
from app.services.activity_service import record_activity
from app.services.notification_service import (
    NotificationDispatcher,
    format_request_approved_message,
    format_request_denied_message,
    format_request_submitted_message,
)
from app.services.profile_service import (
    format_street_address,
    is_profile_complete,
    street_name_of,
    street_number_of,
)
from app.services.template_renderer import TemplateRenderer, is_docx_container
from app.services.template_store import TemplateStatus, TemplateStore
from app.utils.file_handling import (
    GeneratedDocumentStorage,
    safe_filename,
    validate_file_size,
    validate_file_type,
)

logger = logging.getLogger(__name__)


def format_long_date(value: date) -> str:
    """January 5, 2026"""
    return f"{value:%B} {value.day}, {value.year}"


def format_short_date(value: date) -> str:
    """1/5/2026"""
    return f"{value.month}/{value.day}/{value.year}"


@dataclass
class ApprovalResult:
    """Approved request plus the generated document returned to the admin"""
    request: DocumentRequest
    filename: str
    content: bytes


@dataclass
class RenderedPreview:
    html: str
    content: bytes
    filename: str


class DocumentWorkflowService:
    """Document request lifecycle and document generation."""

    def __init__(
        self,
        template_store: TemplateStore,
        storage: GeneratedDocumentStorage,
        dispatcher: NotificationDispatcher,
        renderer: TemplateRenderer,
        settings: Settings,
    ):
        self.template_store = template_store
        self.storage = storage
        self.dispatcher = dispatcher
        self.renderer = renderer
        self.barangay_name = settings.BARANGAY_NAME
        self.city_name = settings.CITY_NAME
        self.max_template_size = settings.MAX_TEMPLATE_SIZE
        self.allowed_template_extensions = settings.ALLOWED_TEMPLATE_EXTENSIONS

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _get_citizen(self, db: AsyncSession, citizen_id: str) -> Citizen:
        # populate_existing: gate on the row as stored now, not a cached identity
        result = await db.execute(
            select(Citizen)
            .where(Citizen.id == citizen_id)
            .execution_options(populate_existing=True)
        )
        citizen = result.scalar_one_or_none()
        if not citizen:
            raise NotFoundError("User not found")
        return citizen

    async def get_request(self, db: AsyncSession, request_id: int) -> DocumentRequest:
        result = await db.execute(
            select(DocumentRequest)
            .where(DocumentRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        request = result.scalar_one_or_none()
        if not request:
            raise NotFoundError("Request not found")
        return request

    async def find_pending_request(
        self, db: AsyncSession, citizen_id: str, document_type: DocumentType
    ) -> Optional[DocumentRequest]:
        result = await db.execute(
            select(DocumentRequest).where(
                DocumentRequest.citizen_id == citizen_id,
                DocumentRequest.document_type == document_type,
                DocumentRequest.status == RequestStatus.PENDING,
            )
        )
        return result.scalars().first()

    async def list_citizen_requests(self, db: AsyncSession, citizen_id: str) -> List[DocumentRequest]:
        result = await db.execute(
            select(DocumentRequest)
            .where(DocumentRequest.citizen_id == citizen_id)
            .order_by(DocumentRequest.created_at.desc(), DocumentRequest.id.desc())
        )
        return list(result.scalars().all())

    async def list_citizen_pending_requests(self, db: AsyncSession, citizen_id: str) -> List[DocumentRequest]:
        result = await db.execute(
            select(DocumentRequest)
            .where(
                DocumentRequest.citizen_id == citizen_id,
                DocumentRequest.status == RequestStatus.PENDING,
            )
            .order_by(DocumentRequest.created_at.desc(), DocumentRequest.id.desc())
        )
        return list(result.scalars().all())

    async def get_citizen_pending_request(self, db: AsyncSession, citizen_id: str) -> Optional[DocumentRequest]:
        """Most recent pending request of any type, if any"""
        pending = await self.list_citizen_pending_requests(db, citizen_id)
        return pending[0] if pending else None

    async def list_pending_requests(self, db: AsyncSession) -> List[DocumentRequest]:
        result = await db.execute(
            select(DocumentRequest)
            .options(selectinload(DocumentRequest.citizen))
            .where(DocumentRequest.status == RequestStatus.PENDING)
            .order_by(DocumentRequest.created_at.desc(), DocumentRequest.id.desc())
        )
        return list(result.scalars().all())

    async def list_all_requests(self, db: AsyncSession) -> List[DocumentRequest]:
        result = await db.execute(
            select(DocumentRequest)
            .options(selectinload(DocumentRequest.citizen), selectinload(DocumentRequest.processed_by))
            .order_by(DocumentRequest.created_at.desc(), DocumentRequest.id.desc())
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_request(
        self,
        db: AsyncSession,
        citizen_id: str,
        document_type: DocumentType,
        purpose: str,
    ) -> DocumentRequest:
        """Submit a request on behalf of the citizen themself.

        Raises:
            NotFoundError: Citizen does not exist
            ProfileIncompleteError: Profile lacks required fields
            DuplicatePendingRequestError: A pending request of this type exists
            ValidationError: Purpose is blank
        """
        document_type = DocumentType(document_type)
        purpose = self._clean_purpose(purpose)
        citizen = await self._get_citizen(db, citizen_id)

        if not is_profile_complete(citizen):
            logger.info(f"Request by citizen {citizen.id} blocked: profile incomplete")
            raise ProfileIncompleteError()

        if await self.find_pending_request(db, citizen.id, document_type):
            raise DuplicatePendingRequestError(document_type.value)

        # The stored flag is display-only; bring it in line with the live check
        if not citizen.is_profile_complete:
            citizen.is_profile_complete = True

        request = await self._insert_request(db, citizen, document_type, purpose)
        record_activity(
            db,
            citizen,
            "Document Request Submitted",
            f"{citizen.full_name} requested a {document_type.display_name} (request #{request.id}).",
            changes={"request_id": request.id, "document_type": document_type.value, "purpose": purpose},
        )
        await db.commit()
        logger.info(f"Document request {request.id} ({document_type.value}) created for citizen {citizen.id}")

        self.dispatcher.dispatch(
            citizen.phone_number,
            format_request_submitted_message(request, citizen, self.barangay_name),
            context=f"request submitted: Request ID {request.id}",
        )
        return request

    async def create_admin_request(
        self,
        db: AsyncSession,
        admin: Citizen,
        citizen_id: str,
        document_type: DocumentType,
        purpose: str,
    ) -> DocumentRequest:
        """Create a request for a citizen without the profile or duplicate pre-checks.

        The storage-level unique index still applies, so a second pending
        request of the same type is rejected with DuplicatePendingRequestError.
        """
        document_type = DocumentType(document_type)
        purpose = self._clean_purpose(purpose)
        citizen = await self._get_citizen(db, citizen_id)

        request = await self._insert_request(db, citizen, document_type, purpose)
        record_activity(
            db,
            admin,
            "Document Request Created by Admin",
            f"{admin.full_name or admin.email} created a {document_type.display_name} request "
            f"(request #{request.id}) for {citizen.full_name or citizen.email}.",
            changes={
                "request_id": request.id,
                "citizen_id": citizen.id,
                "document_type": document_type.value,
                "purpose": purpose,
            },
        )
        await db.commit()
        logger.info(f"Admin {admin.id} created document request {request.id} for citizen {citizen.id}")

        self.dispatcher.dispatch(
            citizen.phone_number,
            format_request_submitted_message(request, citizen, self.barangay_name),
            context=f"request submitted: Request ID {request.id}",
        )
        return request

    async def _insert_request(
        self, db: AsyncSession, citizen: Citizen, document_type: DocumentType, purpose: str
    ) -> DocumentRequest:
        request = DocumentRequest(
            citizen_id=citizen.id,
            document_type=document_type,
            purpose=purpose,
            status=RequestStatus.PENDING,
        )
        db.add(request)
        try:
            await db.flush()
        except IntegrityError:
            # A concurrent submission won the unique index
            await db.rollback()
            raise DuplicatePendingRequestError(document_type.value)
        return request

    @staticmethod
    def _clean_purpose(purpose: Optional[str]) -> str:
        purpose = (purpose or "").strip()
        if not purpose:
            raise ValidationError("Purpose is required")
        return purpose

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def approve_request(
        self,
        db: AsyncSession,
        request_id: int,
        admin: Citizen,
        admin_notes: Optional[str] = None,
    ) -> ApprovalResult:
        """Generate the document and mark the request approved.

        The document is rendered from the citizen's profile as it is now.
        The file is written before the status change commits and removed
        again if the commit fails, so a reader never sees one without the
        other.

        Raises:
            NotFoundError: Request or citizen does not exist
            InvalidStateError: Request is not pending
            TemplateRenderError: Template has unresolved placeholders
            GenerationFailureError: Rendering or storage failed
        """
        request = await self.get_request(db, request_id)
        if request.status != RequestStatus.PENDING:
            raise InvalidStateError("Request is not pending")

        citizen = await self._get_citizen(db, request.citizen_id)
        today = datetime.now().date()
        content = self.generate_document(request, citizen, today)
        filename = self.build_filename(request, citizen, today)
        now = datetime.utcnow()

        await self._transition(
            db,
            request.id,
            status=RequestStatus.APPROVED,
            processed_by_id=admin.id,
            processed_at=now,
            admin_notes=admin_notes or "",
            generated_file=filename,
            updated_at=now,
        )

        try:
            self.storage.save(filename, content)
            record_activity(
                db,
                admin,
                "Document Request Approved",
                f"{admin.full_name or admin.email} approved {request.document_type.display_name} "
                f"request #{request.id} for {citizen.full_name}.",
                changes={"request_id": request.id, "generated_file": filename, "admin_notes": admin_notes or ""},
            )
            await db.commit()
        except OSError as e:
            await db.rollback()
            self._discard_file(filename)
            logger.error(f"Failed to store generated document {filename}: {e}", exc_info=True)
            raise GenerationFailureError(f"Failed to store generated document: {e}")
        except Exception:
            await db.rollback()
            self._discard_file(filename)
            raise

        await db.refresh(request)
        logger.info(f"Document request {request.id} approved by {admin.id}, file {filename}")

        self.dispatcher.dispatch(
            citizen.phone_number,
            format_request_approved_message(request, citizen, self.barangay_name),
            context=f"request approved: Request ID {request.id}",
        )
        return ApprovalResult(request=request, filename=filename, content=content)

    async def deny_request(
        self,
        db: AsyncSession,
        request_id: int,
        admin: Citizen,
        denial_reason: Optional[str],
    ) -> DocumentRequest:
        """Mark a pending request denied and store the reason as given.

        Raises:
            NotFoundError: Request does not exist
            InvalidStateError: Request is not pending
        """
        request = await self.get_request(db, request_id)
        if request.status != RequestStatus.PENDING:
            raise InvalidStateError("Request is not pending")
        if not (denial_reason or "").strip():
            logger.warning(f"Denying request {request.id} without a reason")

        citizen = await self._get_citizen(db, request.citizen_id)
        now = datetime.utcnow()
        await self._transition(
            db,
            request.id,
            status=RequestStatus.DENIED,
            processed_by_id=admin.id,
            processed_at=now,
            denial_reason=denial_reason,
            updated_at=now,
        )
        record_activity(
            db,
            admin,
            "Document Request Denied",
            f"{admin.full_name or admin.email} denied {request.document_type.display_name} "
            f"request #{request.id} for {citizen.full_name}.",
            changes={"request_id": request.id, "denial_reason": denial_reason},
        )
        await db.commit()
        await db.refresh(request)
        logger.info(f"Document request {request.id} denied by {admin.id}")

        self.dispatcher.dispatch(
            citizen.phone_number,
            format_request_denied_message(request, citizen, self.barangay_name),
            context=f"request denied: Request ID {request.id}",
        )
        return request

    async def _transition(self, db: AsyncSession, request_id: int, **values: Any) -> None:
        """Apply values only if the request is still pending."""
        result = await db.execute(
            update(DocumentRequest)
            .where(
                DocumentRequest.id == request_id,
                DocumentRequest.status == RequestStatus.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise InvalidStateError("Request is not pending")

    async def cancel_request(self, db: AsyncSession, request_id: int, citizen_id: str) -> None:
        """Delete a pending request owned by the citizen.

        The row is removed; an activity log entry keeps a record of it.

        Raises:
            NotFoundError: Request does not exist (including already cancelled)
            ForbiddenError: Request belongs to someone else
            InvalidStateError: Request is no longer pending
        """
        request = await self.get_request(db, request_id)
        if request.citizen_id != citizen_id:
            raise ForbiddenError("You can only cancel your own requests")
        if request.status != RequestStatus.PENDING:
            raise InvalidStateError("Only pending requests can be cancelled")

        citizen = await self._get_citizen(db, citizen_id)
        snapshot = {
            "request_id": request.id,
            "document_type": request.document_type.value,
            "purpose": request.purpose,
            "created_at": request.created_at.isoformat() if request.created_at else None,
        }
        result = await db.execute(
            delete(DocumentRequest)
            .where(
                DocumentRequest.id == request.id,
                DocumentRequest.status == RequestStatus.PENDING,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise InvalidStateError("Only pending requests can be cancelled")
        db.expunge(request)

        record_activity(
            db,
            citizen,
            "Document Request Cancelled",
            f"{citizen.full_name} cancelled {request.document_type.display_name} request #{request.id}.",
            changes=snapshot,
        )
        await db.commit()
        logger.info(f"Document request {request.id} cancelled by citizen {citizen_id}")

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def get_generated_document(
        self, db: AsyncSession, request_id: int, citizen_id: Optional[str]
    ) -> Tuple[str, bytes]:
        """Return (filename, bytes) of an approved request's document.

        Args:
            citizen_id: Requesting citizen; None skips the ownership check
                (admin access)

        Raises:
            NotFoundError: Request or stored file does not exist
            ForbiddenError: Request belongs to someone else
            DocumentNotReadyError: Request is not approved yet
        """
        request = await self.get_request(db, request_id)
        if citizen_id is not None and request.citizen_id != citizen_id:
            raise ForbiddenError("Access denied")
        if not request.has_generated_file:
            raise DocumentNotReadyError()
        return request.generated_file, self.storage.read(request.generated_file)

    async def get_generated_document_pdf(
        self, db: AsyncSession, request_id: int, citizen_id: Optional[str]
    ) -> Tuple[str, bytes]:
        """PDF rendition of the stored document, with the same checks."""
        filename, content = await self.get_generated_document(db, request_id, citizen_id)
        pdf_name = filename[:-len(".docx")] + ".pdf" if filename.lower().endswith(".docx") else f"{filename}.pdf"
        return pdf_name, self.renderer.docx_to_pdf(content)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def build_document_data(
        self, request: DocumentRequest, citizen: Citizen, today: Optional[date] = None
    ) -> Dict[str, Any]:
        """Placeholder values for a request's document.

        full_name leaves out middle name and suffix. Barangay and city come
        from configuration, not from the citizen's address.
        """
        today = today or datetime.now().date()
        first_name = (citizen.first_name or "").strip()
        last_name = (citizen.last_name or "").strip()
        street_number = street_number_of(citizen)
        street_name = street_name_of(citizen)
        street_address = format_street_address(citizen)
        return {
            "full_name": f"{first_name} {last_name}".strip(),
            "first_name": first_name,
            "last_name": last_name,
            "birth_date": format_long_date(citizen.date_of_birth) if citizen.date_of_birth else "",
            "street_address": street_address,
            "street_number": street_number,
            "street_name": street_name,
            "barangay_name": self.barangay_name,
            "city_name": self.city_name,
            "full_address": f"{street_address}, {self.barangay_name}, {self.city_name}",
            "request_purpose": request.purpose,
            "date_issued": format_long_date(today),
            "current_year": today.year,
            "current_date": format_short_date(today),
        }

    def load_template(self, document_type: DocumentType) -> bytes:
        """Stored template for the type, creating the built-in one if none exists."""
        if not self.template_store.exists(document_type):
            logger.info(f"No template for {DocumentType(document_type).value}, creating default template")
            self.template_store.put(document_type, self.renderer.build_default_template(DocumentType(document_type)))
        return self.template_store.get(document_type)

    def generate_document(
        self, request: DocumentRequest, citizen: Citizen, today: Optional[date] = None
    ) -> bytes:
        template = self.load_template(request.document_type)
        data = self.build_document_data(request, citizen, today)
        try:
            return self.renderer.render(template, data)
        except TemplateRenderError:
            raise
        except Exception as e:
            logger.error(f"Document generation failed for request {request.id}: {e}", exc_info=True)
            raise GenerationFailureError(f"Failed to generate document: {e}")

    @staticmethod
    def build_filename(request: DocumentRequest, citizen: Citizen, today: date) -> str:
        """<Type>_<LastName>_<YYYY-MM-DD>_<request id>.docx"""
        document_name = DocumentType(request.document_type).display_name.replace(" ", "_")
        surname = safe_filename(citizen.last_name or "Resident")
        return f"{document_name}_{surname}_{today:%Y-%m-%d}_{request.id}.docx"

    def _discard_file(self, filename: str) -> None:
        try:
            self.storage.delete(filename)
        except OSError as e:
            logger.error(f"Could not remove orphaned document {filename}: {e}")

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def template_status(self) -> List[TemplateStatus]:
        return self.template_store.status_all()

    def validate_template_upload(self, filename: str, content: bytes) -> None:
        """
        Raises:
            ValidationError: Wrong extension, too large, or not a DOCX container
        """
        if not content:
            raise ValidationError("No file uploaded")
        validate_file_type(filename, self.allowed_template_extensions)
        validate_file_size(len(content), self.max_template_size)
        if not is_docx_container(content):
            raise ValidationError("Invalid DOCX file: document.xml not found")

    async def upload_template(
        self,
        db: AsyncSession,
        admin: Citizen,
        document_type: str,
        filename: str,
        content: bytes,
    ) -> TemplateStatus:
        try:
            document_type = DocumentType(document_type)
        except ValueError:
            raise ValidationError("Invalid document type")
        self.validate_template_upload(filename, content)

        self.template_store.put(document_type, content)
        record_activity(
            db,
            admin,
            "Template Uploaded",
            f"{admin.full_name or admin.email} uploaded the {document_type.display_name} template.",
            type=ActivityType.TEMPLATE,
            changes={"document_type": document_type.value, "filename": filename, "size": len(content)},
        )
        await db.commit()
        return self.template_store.status(document_type)

    def sample_document_data(self) -> Dict[str, Any]:
        """Placeholder values for previews, shaped like build_document_data()."""
        today = datetime.now().date()
        return {
            "full_name": "Juan Dela Cruz",
            "first_name": "Juan",
            "last_name": "Dela Cruz",
            "birth_date": "January 15, 1990",
            "street_address": "123 Rizal Street",
            "street_number": "123",
            "street_name": "Rizal Street",
            "barangay_name": self.barangay_name,
            "city_name": self.city_name,
            "full_address": f"123 Rizal Street, {self.barangay_name}, {self.city_name}",
            "request_purpose": "Employment",
            "date_issued": format_long_date(today),
            "current_year": today.year,
            "current_date": format_short_date(today),
        }

    def inspect_template(self, filename: str, content: bytes) -> Dict[str, Any]:
        """Placeholders and embedded images of an uploaded template."""
        self.validate_template_upload(filename, content)
        return {
            "file_name": filename,
            "size": len(content),
            "placeholders": self.renderer.find_placeholders(content),
            "images": self.renderer.extract_images(content),
        }

    def preview_template(
        self, filename: str, content: bytes, data: Optional[Dict[str, Any]] = None
    ) -> RenderedPreview:
        """Render a template with sample data and convert it to HTML."""
        self.validate_template_upload(filename, content)
        filled = self.renderer.render(content, {**self.sample_document_data(), **(data or {})})
        return RenderedPreview(html=self.renderer.to_html(filled), content=filled, filename=safe_filename(filename))

    def render_template_pdf(
        self, filename: str, content: bytes, data: Optional[Dict[str, Any]] = None
    ) -> Tuple[str, bytes]:
        preview = self.preview_template(filename, content, data)
        base = preview.filename[:-len(".docx")] if preview.filename.lower().endswith(".docx") else preview.filename
        return f"{base}.pdf", self.renderer.to_pdf(preview.html)
