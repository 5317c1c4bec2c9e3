"""
PDF processing service.

Uses pypdf for decryption and page slicing (PDFs sent natively to the
provider) and pdf2image (poppler) for rasterizing pages into PNG data
URLs (PDFs sent as page images).
"""

import base64
import io
import logging

from pdf2image import convert_from_bytes
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFSyntaxError,
)
from PIL import Image
from pypdf import PdfReader, PdfWriter
from pypdf.errors import DependencyError, FileNotDecryptedError, PdfReadError

from ..config import get_settings
from ..exceptions import DocumentProcessingError
from ..models import PageRange

logger = logging.getLogger(__name__)

MAX_IMAGE_DIMENSION = 2048

INVALID_PASSWORD_MESSAGE = "Invalid PDF password"
UNSUPPORTED_ENCRYPTION_MESSAGE = "This PDF uses an encryption method that is not supported."


class PDFConversionError(DocumentProcessingError):
    """Raised when a PDF cannot be decrypted, sliced or rendered."""


def _page_indices(total_pages: int, page_range: PageRange | None) -> range:
    """0-indexed pages selected by ``page_range``, clamped to the document."""
    if page_range is None:
        return range(total_pages)

    start = max(1, page_range.start) - 1
    end = min(page_range.end, total_pages) if page_range.end else total_pages
    if start >= end:
        raise PDFConversionError(
            f"Invalid page range: pages {page_range.start}-{page_range.end or 'end'} "
            f"are outside the document ({total_pages} pages)"
        )
    return range(start, end)


def pdf_data_url(pdf_bytes: bytes) -> str:
    return f"data:application/pdf;base64,{base64.b64encode(pdf_bytes).decode('ascii')}"


class PDFService:
    """
    Service for PDF processing operations.

    Converts PDF pages to images with pdf2image and rewrites PDFs
    (decrypt, keep a page range) with pypdf.
    """

    def __init__(self, dpi: int = 200, image_format: str = "PNG"):
        """
        Initialize the PDF service.

        Args:
            dpi: Resolution for PDF to image conversion. Higher = better quality but slower.
            image_format: Output image format (PNG recommended for quality).
        """
        self.dpi = dpi
        self.image_format = image_format

    def _check_pdf(self, pdf_bytes: bytes) -> None:
        if not pdf_bytes:
            raise PDFConversionError("Empty PDF file provided")

        if not pdf_bytes[:4] == b"%PDF":
            raise PDFConversionError(
                "Invalid PDF file: does not start with PDF header"
            )

    def _open(self, pdf_bytes: bytes, password: str | None) -> PdfReader:
        """Open and, if needed, decrypt a PDF with pypdf."""
        self._check_pdf(pdf_bytes)
        try:
            reader = PdfReader(io.BytesIO(pdf_bytes))
            if reader.is_encrypted:
                if not reader.decrypt(password or ""):
                    if password:
                        raise PDFConversionError(INVALID_PASSWORD_MESSAGE)
                    raise PDFConversionError(
                        "This PDF is password protected. Please provide the password."
                    )
            return reader
        except PDFConversionError:
            raise
        except (DependencyError, NotImplementedError) as e:
            logger.error("Unsupported PDF encryption: %s", e)
            raise PDFConversionError(UNSUPPORTED_ENCRYPTION_MESSAGE) from e
        except FileNotDecryptedError as e:
            raise PDFConversionError(INVALID_PASSWORD_MESSAGE) from e
        except PdfReadError as e:
            logger.error("Could not read PDF: %s", e)
            raise PDFConversionError(f"Failed to decrypt PDF: {e}") from e

    def get_page_count(self, pdf_bytes: bytes, password: str | None = None) -> int:
        """
        Get the total number of pages in a PDF.

        Raises:
            PDFConversionError: If page count cannot be determined.
        """
        return len(self._open(pdf_bytes, password).pages)

    def decrypt(
        self,
        pdf_bytes: bytes,
        password: str | None = None,
        page_range: PageRange | None = None,
    ) -> str:
        """
        Remove encryption and keep only the requested pages.

        Args:
            pdf_bytes: Original PDF.
            password: User password, if the PDF is encrypted.
            page_range: Pages to keep (1-indexed, inclusive); None keeps all.

        Returns:
            The resulting unencrypted PDF as a data URL.

        Raises:
            PDFConversionError: On a wrong password, unsupported encryption
                or unreadable file.
        """
        reader = self._open(pdf_bytes, password)
        total_pages = len(reader.pages)
        indices = _page_indices(total_pages, page_range)

        if not reader.is_encrypted and len(indices) == total_pages:
            return pdf_data_url(pdf_bytes)

        try:
            writer = PdfWriter()
            for index in indices:
                writer.add_page(reader.pages[index])
            buffer = io.BytesIO()
            writer.write(buffer)
        except (DependencyError, NotImplementedError) as e:
            raise PDFConversionError(UNSUPPORTED_ENCRYPTION_MESSAGE) from e
        except Exception as e:
            logger.exception("Unexpected error while rewriting PDF")
            raise PDFConversionError(f"Failed to decrypt PDF: {e}") from e

        logger.info("Prepared PDF with %d of %d page(s)", len(indices), total_pages)
        return pdf_data_url(buffer.getvalue())

    def convert_pdf_to_images(
        self,
        pdf_bytes: bytes,
        first_page: int | None = None,
        last_page: int | None = None,
        password: str | None = None,
    ) -> list[Image.Image]:
        """
        Convert PDF pages to PIL Images.

        Args:
            pdf_bytes: PDF file contents.
            first_page: First page to convert (1-indexed, inclusive). None for first page.
            last_page: Last page to convert (1-indexed, inclusive). None for last page.
            password: User password for encrypted PDFs.

        Returns:
            List of PIL Image objects, one per page.

        Raises:
            PDFConversionError: If conversion fails for any reason.
        """
        self._check_pdf(pdf_bytes)

        try:
            logger.info(
                "Converting PDF to images (dpi=%d, pages=%s-%s)",
                self.dpi,
                first_page or "first",
                last_page or "last",
            )

            images = convert_from_bytes(
                pdf_bytes,
                dpi=self.dpi,
                fmt=self.image_format.lower(),
                first_page=first_page,
                last_page=last_page,
                userpw=password,
                thread_count=2,
            )

            logger.info("Successfully converted %d page(s)", len(images))
            return images

        except PDFInfoNotInstalledError as e:
            logger.error("Poppler not installed: %s", e)
            raise PDFConversionError(
                "Poppler not installed. Install poppler-utils: "
                "brew install poppler (macOS) or apt-get install poppler-utils (Linux)"
            ) from e

        except PDFPageCountError as e:
            logger.error("Could not get PDF page count: %s", e)
            if "password" in str(e).lower():
                raise PDFConversionError(INVALID_PASSWORD_MESSAGE) from e
            raise PDFConversionError(
                f"Could not determine PDF page count: {e}"
            ) from e

        except PDFSyntaxError as e:
            logger.error("PDF syntax error: %s", e)
            raise PDFConversionError(f"Invalid or corrupted PDF file: {e}") from e

        except Exception as e:
            logger.exception("Unexpected error during PDF conversion")
            raise PDFConversionError(f"PDF conversion failed: {e}") from e

    def image_to_bytes(self, image: Image.Image, format: str = "PNG") -> bytes:
        """
        Convert a PIL Image to bytes.

        Args:
            image: PIL Image to convert.
            format: Output format (PNG, JPEG, etc.).

        Returns:
            Image as bytes.
        """
        buffer = io.BytesIO()
        image.save(buffer, format=format)
        buffer.seek(0)
        return buffer.getvalue()

    def image_to_data_url(self, image: Image.Image) -> str:
        """Encode an image as a PNG data URL, downscaled to MAX_IMAGE_DIMENSION."""
        if max(image.size) > MAX_IMAGE_DIMENSION:
            image = image.copy()
            image.thumbnail((MAX_IMAGE_DIMENSION, MAX_IMAGE_DIMENSION))
        encoded = base64.b64encode(self.image_to_bytes(image, format="PNG")).decode("ascii")
        return f"data:image/png;base64,{encoded}"

    def rasterize(
        self,
        pdf_bytes: bytes,
        page_range: PageRange | None = None,
        password: str | None = None,
    ) -> list[str]:
        """
        Render the selected pages as PNG data URLs, in page order.

        The range is clamped to the document before rendering.

        Raises:
            PDFConversionError: If the PDF cannot be opened or rendered, or
                the range lies outside the document.
        """
        indices = _page_indices(self.get_page_count(pdf_bytes, password), page_range)
        images = self.convert_pdf_to_images(
            pdf_bytes,
            first_page=indices.start + 1,
            last_page=indices.stop,
            password=password,
        )
        if not images:
            raise PDFConversionError("No pages found in PDF")
        return [self.image_to_data_url(image) for image in images]


_pdf_service: PDFService | None = None


def get_pdf_service() -> PDFService:
    """Get or create the PDF service singleton."""
    global _pdf_service
    if _pdf_service is None:
        _pdf_service = PDFService(dpi=get_settings().pdf_dpi)
    return _pdf_service
