from __future__ import annotations

import mimetypes
import secrets
import string
import time
from pathlib import Path

from ..config import (
    ALLOWED_ANSWER_TYPES,
    ALLOWED_DOCUMENT_TYPES,
    MAX_ANSWER_FILE_BYTES,
    MAX_DOCUMENT_BYTES,
)
from ..errors import ValidationError
from ..models import FileUpload

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def generate_id() -> str:
    """Opaque identifier for tests, submissions and answer files."""
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(24))


def generate_file_name(original_name: str, now_ms: int | None = None) -> str:
    """
    Collision-resistant blob name: ``<epoch-millis>_<random>.<extension>``.

    The extension of the original name is kept so stored files stay openable.
    """
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(13))
    extension = original_name.rsplit(".", 1)[-1] if "." in original_name else "bin"
    return f"{timestamp}_{suffix}.{extension}"


def guess_content_type(file_name: str) -> str:
    content_type, _ = mimetypes.guess_type(file_name)
    return content_type or "application/octet-stream"


def load_upload(path: str | Path) -> FileUpload:
    """Read a file from disk into a FileUpload."""
    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise ValidationError(f"File not found: {file_path}")
    return FileUpload(
        file_name=file_path.name,
        content_type=guess_content_type(file_path.name),
        data=file_path.read_bytes(),
    )


def validate_document(document: FileUpload | None) -> None:
    if document is None or not document.file_name:
        raise ValidationError("Please select a PDF file to upload.")
    if document.content_type not in ALLOWED_DOCUMENT_TYPES and document.extension != "pdf":
        raise ValidationError("Please upload a PDF file only.")
    if document.size == 0:
        raise ValidationError(f"{document.file_name} is empty.")
    if document.size > MAX_DOCUMENT_BYTES:
        raise ValidationError(
            f"{document.file_name} exceeds the {MAX_DOCUMENT_BYTES // (1024 * 1024)}MB limit."
        )


def validate_answer_file(upload: FileUpload) -> None:
    if upload.content_type not in ALLOWED_ANSWER_TYPES:
        raise ValidationError(
            f"{upload.file_name} is not a supported file type. "
            "Please upload only images or PDFs."
        )
    if upload.size == 0:
        raise ValidationError(f"{upload.file_name} is empty.")
    if upload.size > MAX_ANSWER_FILE_BYTES:
        raise ValidationError(
            f"{upload.file_name} exceeds the {MAX_ANSWER_FILE_BYTES // (1024 * 1024)}MB limit."
        )
