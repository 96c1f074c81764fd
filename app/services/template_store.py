"""Template storage: one DOCX per document type on disk."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from app.core.exceptions import NotFoundError
from app.models.enums import DocumentType
from app.utils.file_handling import write_file_atomic

logger = logging.getLogger(__name__)


@dataclass
class TemplateStatus:
    """Presence and last modification time of a stored template"""
    document_type: DocumentType
    has_template: bool
    updated_at: Optional[datetime] = None


class TemplateStore:
    """Stores templates as <templates_dir>/<document_type>.docx.

    Uploading overwrites; there is no version history.
    """

    def __init__(self, templates_dir: Path):
        self.templates_dir = Path(templates_dir)
        self.templates_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, document_type: DocumentType) -> Path:
        return self.templates_dir / f"{DocumentType(document_type).value}.docx"

    def exists(self, document_type: DocumentType) -> bool:
        return self.path_for(document_type).is_file()

    def get(self, document_type: DocumentType) -> bytes:
        """Read a template.

        Raises:
            NotFoundError: If no template is stored for the type
        """
        path = self.path_for(document_type)
        if not path.is_file():
            raise NotFoundError(f"No template found for {DocumentType(document_type).value}")
        return path.read_bytes()

    def put(self, document_type: DocumentType, content: bytes) -> Path:
        path = write_file_atomic(self.path_for(document_type), content)
        logger.info(f"Template stored for {DocumentType(document_type).value} at {path}")
        return path

    def status(self, document_type: DocumentType) -> TemplateStatus:
        path = self.path_for(document_type)
        if not path.is_file():
            return TemplateStatus(document_type=DocumentType(document_type), has_template=False)
        return TemplateStatus(
            document_type=DocumentType(document_type),
            has_template=True,
            updated_at=datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc).replace(tzinfo=None),
        )

    def status_all(self) -> List[TemplateStatus]:
        return [self.status(document_type) for document_type in DocumentType]
