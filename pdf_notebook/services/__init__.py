"""
Services package for the PDF Notebook API.
"""

from .pdf_processor import PDFProcessor
from .document_store import DocumentStore
from .chat_service import ChatService
from .document_service import DocumentService

__all__ = [
    "PDFProcessor",
    "DocumentStore",
    "ChatService",
    "DocumentService"
]
