"""
Domain exceptions for the document request workflow.

Services raise these instead of HTTPException so the same code can run
outside a request. The API layer maps each one to its ``status_code`` with
a ``{"detail": message}`` body.
"""
from typing import Iterable


class BarangayServiceError(Exception):
    """Base exception for all workflow errors"""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(BarangayServiceError):
    """Request, citizen, template or stored file does not exist"""

    status_code = 404


class ForbiddenError(BarangayServiceError):
    """Caller does not own the resource"""

    status_code = 403


class InvalidStateError(BarangayServiceError):
    """Operation not allowed for the request's current status"""

    status_code = 409


class DocumentNotReadyError(InvalidStateError):
    """Request is not approved or has no generated document yet"""

    def __init__(self, message: str = "Document not yet generated"):
        super().__init__(message)


class ProfileIncompleteError(BarangayServiceError):
    """Citizen profile lacks the fields needed to issue documents"""

    status_code = 403

    def __init__(self):
        super().__init__(
            "Profile incomplete. Please complete your profile with first name, last name, "
            "birthday, street number and street name before requesting documents."
        )


class DuplicatePendingRequestError(BarangayServiceError):
    """Citizen already has a pending request of the same document type"""

    status_code = 409

    def __init__(self, document_type: str):
        self.document_type = document_type
        super().__init__(
            f"You already have a pending request for {document_type}. Please wait for it "
            "to be processed or cancel it before submitting a new request."
        )


class ValidationError(BarangayServiceError):
    """Malformed input such as a wrong file type or oversize upload"""

    status_code = 400

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class TemplateRenderError(ValidationError):
    """Template is not a document container or has unresolved placeholders"""

    def __init__(self, message: str, missing: Iterable[str] = ()):
        super().__init__(message, status_code=422)
        self.missing = sorted(set(missing))


class GenerationFailureError(BarangayServiceError):
    """Rendering or conversion pipeline failed"""

    status_code = 500
