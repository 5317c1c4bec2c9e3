"""
Upload validation and document preparation.

Turns an uploaded file into the ``document_data`` consumed by the
payload assembler: one whole-file data URL, or one PNG data URL per
rendered PDF page.
"""

import base64
import logging

from ..config import get_settings
from ..exceptions import DocumentProcessingError
from ..models import PageRange, Provider
from .ai.payload import PDF_MIME_TYPE, get_capability
from .pdf_service import PDFService, get_pdf_service

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = [
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/jpg",
]


def validate_file_type(mime_type: str | None) -> str:
    """Return the mime type if it is accepted, otherwise raise."""
    if mime_type not in ALLOWED_MIME_TYPES:
        raise DocumentProcessingError(
            f"Unsupported file type: {mime_type}. "
            f"Allowed types: {', '.join(ALLOWED_MIME_TYPES)}"
        )
    return mime_type


def validate_file_size(size: int, max_size_bytes: int | None = None) -> None:
    if max_size_bytes is None:
        max_size_bytes = get_settings().max_file_size_bytes
    if size > max_size_bytes:
        raise DocumentProcessingError(
            f"File size {size / 1024 / 1024:.2f}MB exceeds maximum allowed size "
            f"of {max_size_bytes / 1024 / 1024:g}MB"
        )


def bytes_to_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def prepare_document(
    file_bytes: bytes,
    mime_type: str,
    provider: Provider,
    filename: str | None = None,
    password: str | None = None,
    page_range: PageRange | None = None,
    pdf_service: PDFService | None = None,
) -> list[str]:
    """
    Build the document data for one pipeline run.

    Images travel as a single data URL. PDFs travel whole (decrypted and
    sliced when needed) to providers that read PDFs natively, and as
    rendered pages to the others.

    Raises:
        DocumentProcessingError: If the file is empty or cannot be processed.
    """
    if not file_bytes:
        raise DocumentProcessingError("Empty file provided")

    if mime_type != PDF_MIME_TYPE:
        return [bytes_to_data_url(file_bytes, mime_type)]

    pdf_service = pdf_service or get_pdf_service()
    page_range = page_range or PageRange()

    if get_capability(provider).supports_native_file and filename:
        if password or not page_range.is_full_document:
            logger.info("Decrypting/slicing PDF %s before upload", filename)
            return [pdf_service.decrypt(file_bytes, password, page_range)]
        return [bytes_to_data_url(file_bytes, mime_type)]

    return pdf_service.rasterize(file_bytes, page_range, password)
