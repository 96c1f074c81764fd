"""
File handling utilities for templates and generated documents
"""
import os
import re
import tempfile
from pathlib import Path
from app.core.exceptions import NotFoundError, ValidationError


def safe_filename(text: str) -> str:
    """
    Replace characters outside [A-Za-z0-9._-] with underscores.

    Args:
        text: Raw name (e.g. a citizen surname)

    Returns:
        Name safe to use as a single path component
    """
    cleaned = re.sub(r"[^A-Za-z0-9._-]", "_", text.strip())
    return cleaned.strip("._") or "document"


def validate_file_type(filename: str, allowed_extensions: set) -> str:
    """
    Validate file extension.

    Args:
        filename: Name of the uploaded file
        allowed_extensions: Set of allowed file extensions (e.g., {'.docx'})

    Returns:
        Lower-cased extension

    Raises:
        ValidationError 400: If file extension is not allowed
    """
    file_ext = Path(filename or "").suffix.lower()

    if file_ext not in allowed_extensions:
        raise ValidationError(
            f"File type {file_ext or '(none)'} not allowed. Allowed types: {', '.join(sorted(allowed_extensions))}"
        )

    return file_ext


def validate_file_size(file_size: int, max_size: int) -> None:
    """
    Validate file size is within allowed limit.

    Args:
        file_size: Size of file in bytes
        max_size: Maximum allowed size in bytes

    Raises:
        ValidationError 413: If file size exceeds maximum
    """
    if file_size > max_size:
        max_mb = max_size / (1024 * 1024)
        actual_mb = file_size / (1024 * 1024)
        raise ValidationError(
            f"File size {actual_mb:.2f}MB exceeds maximum allowed size of {max_mb:.2f}MB",
            status_code=413,
        )


def write_file_atomic(path: Path, content: bytes) -> Path:
    """
    Write bytes so readers see either the old file or the complete new one.

    The content goes to a temporary file in the same directory, is flushed
    to disk, then renamed over the target.

    Args:
        path: Final file path
        content: Bytes to write

    Returns:
        The final path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return path


class GeneratedDocumentStorage:
    """
    Durable blob storage for generated documents, keyed by filename.
    """

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, filename: str) -> Path:
        if Path(filename).name != filename:
            raise ValidationError(f"Invalid document filename: {filename}")
        return self.base_dir / filename

    def save(self, filename: str, content: bytes) -> Path:
        return write_file_atomic(self.path_for(filename), content)

    def exists(self, filename: str) -> bool:
        return self.path_for(filename).is_file()

    def read(self, filename: str) -> bytes:
        """
        Read a stored document.

        Raises:
            NotFoundError 404: If the file is missing
        """
        path = self.path_for(filename)
        if not path.is_file():
            raise NotFoundError("Generated document file not found")
        return path.read_bytes()

    def delete(self, filename: str) -> None:
        path = self.path_for(filename)
        if path.exists():
            path.unlink()
