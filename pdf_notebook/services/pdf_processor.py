"""
PDF processing service for extracting text from PDF files.
"""

import PyPDF2
from io import BytesIO
from typing import Any, Dict

from ..errors import ExtractionError
from ..models import ExtractedDocument
from ..utils import (
    measure_time,
    log_processing_info,
    handle_processing_error
)
import logging

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"


class PDFProcessor:
    """Service for processing PDF files and extracting text."""

    @measure_time
    def extract(self, file_content: bytes) -> ExtractedDocument:
        """
        Extract text, page count and document info from PDF bytes.

        Args:
            file_content: PDF file content as bytes

        Returns:
            ExtractedDocument with the joined page text

        Raises:
            ExtractionError: If the document cannot be opened or parsed
        """
        if not file_content:
            raise ExtractionError("Failed to parse PDF: file is empty")

        try:
            pdf_reader = PyPDF2.PdfReader(BytesIO(file_content))
            total_pages = len(pdf_reader.pages)
            info = self._document_info(pdf_reader)
        except Exception as e:
            handle_processing_error("pdf_extraction", e, {"file_size": len(file_content)})
            raise ExtractionError(
                f"Failed to parse PDF: {e}",
                {"file_size": len(file_content)},
            ) from e

        log_processing_info("PDF extraction started", {
            "total_pages": total_pages,
            "file_size": len(file_content)
        })

        page_texts = []
        for page_num, page in enumerate(pdf_reader.pages):
            try:
                page_texts.append(page.extract_text() or "")
            except Exception as page_error:
                error_info = handle_processing_error(
                    "page_extraction",
                    page_error,
                    {"page": page_num + 1}
                )
                logger.warning(f"Skipping page {page_num + 1}: {error_info}")

        text = PAGE_SEPARATOR.join(page_texts)

        log_processing_info("PDF extraction completed", {
            "total_pages": total_pages,
            "text_length": len(text)
        })

        return ExtractedDocument(text=text, page_count=total_pages, info=info)

    def extract_file(self, path: str) -> ExtractedDocument:
        """Extract a PDF that has been staged on disk."""
        try:
            with open(path, "rb") as staged:
                file_content = staged.read()
        except OSError as e:
            raise ExtractionError(f"Failed to read staged upload: {e}") from e
        return self.extract(file_content)

    def _document_info(self, pdf_reader: PyPDF2.PdfReader) -> Dict[str, Any]:
        """Document information dictionary with plain keys and string values."""
        metadata = pdf_reader.metadata
        if not metadata:
            return {}
        return {
            str(key).lstrip("/"): str(value)
            for key, value in metadata.items()
        }
