"""
Exceptions raised by the PDF Notebook services.

Every error carries an ``ErrorKind`` and the HTTP status it maps to, so the
request layer can translate failures without inspecting messages.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Categories of failure surfaced to API callers."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    EXTRACTION = "extraction"
    UPSTREAM = "upstream"
    CONFIGURATION = "configuration"


class PdfNotebookError(Exception):
    """Base exception for all PDF Notebook errors."""

    kind: ErrorKind = ErrorKind.CONFIGURATION
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ValidationError(PdfNotebookError):
    """Bad input shape, type or size. Always caused by the client."""

    kind = ErrorKind.VALIDATION
    status_code = 400


class NotFoundError(PdfNotebookError):
    """The referenced document has no live record."""

    kind = ErrorKind.NOT_FOUND
    status_code = 404

    def __init__(self, file_id: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"PDF '{file_id}' not found", {"file_id": file_id})
        self.file_id = file_id


class ExtractionError(PdfNotebookError):
    """Parsing the uploaded document failed."""

    kind = ErrorKind.EXTRACTION
    status_code = 422


class UpstreamError(PdfNotebookError):
    """The model provider call failed or timed out."""

    kind = ErrorKind.UPSTREAM
    status_code = 502

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        timed_out: bool = False,
    ) -> None:
        super().__init__(message, details)
        self.timed_out = timed_out
        if timed_out:
            self.status_code = 408


class ConfigurationError(PdfNotebookError):
    """A required setting is missing or invalid."""

    kind = ErrorKind.CONFIGURATION
    status_code = 500
