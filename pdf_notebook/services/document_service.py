"""
Main document service that orchestrates PDF ingestion, the document store and chat.
"""

from datetime import timedelta
from typing import Optional

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from .pdf_processor import PDFProcessor
from .document_store import DocumentStore
from .chat_service import ChatService
from ..config import Settings, settings as default_settings
from ..errors import NotFoundError, PdfNotebookError, ValidationError
from ..models import (
    AnswerOptions,
    ChatData,
    DocumentInfoResponse,
    OperationResult,
    UploadData,
)
from ..utils import (
    format_timestamp,
    generate_file_id,
    sanitize_filename,
    staged_upload,
    validate_file_id,
    log_processing_info,
    handle_processing_error
)
import logging

logger = logging.getLogger(__name__)


class DocumentService:
    """Service for document ingestion and chat over stored documents."""

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        pdf_processor: Optional[PDFProcessor] = None,
        chat_service: Optional[ChatService] = None,
        config: Optional[Settings] = None,
    ):
        """Initialize the document service."""
        self.config = config or default_settings
        self.store = store or DocumentStore(
            retention=timedelta(hours=self.config.document_retention_hours),
            sweep_interval=timedelta(seconds=self.config.sweep_interval_seconds),
        )
        self.pdf_processor = pdf_processor or PDFProcessor()
        self.chat_service = chat_service or ChatService(self.config)

    def _validate_upload(self, upload: Optional[UploadFile], file_id: Optional[str]) -> None:
        """
        Validate an upload before anything is staged or stored.

        Raises:
            ValidationError: If the upload is missing, not a PDF or the id is malformed
        """
        if upload is None or not upload.filename:
            raise ValidationError("No file provided")

        if upload.content_type not in self.config.allowed_mime_types:
            raise ValidationError(
                "Only PDF files are supported",
                {"filename": upload.filename, "content_type": upload.content_type}
            )

        if upload.size is not None and upload.size > self.config.max_file_size_bytes:
            raise ValidationError(
                f"File size exceeds {self.config.max_file_size_mb}MB limit",
                {"filename": upload.filename, "size": upload.size}
            )

        if file_id is not None and not validate_file_id(file_id):
            raise ValidationError(
                "file_id may only contain letters, digits, '.', '_' and '-' (max 128 characters)",
                {"file_id": file_id}
            )

    async def ingest_upload(
        self,
        upload: Optional[UploadFile],
        file_id: Optional[str] = None
    ) -> OperationResult[UploadData]:
        """
        Stage, extract and store an uploaded PDF.

        The document is only stored once extraction has succeeded; the staged
        file is removed whatever the outcome.

        Args:
            upload: Uploaded file
            file_id: Optional caller-supplied identifier, generated if not provided

        Returns:
            OperationResult with the upload summary or the error that stopped it
        """
        try:
            self._validate_upload(upload, file_id)
            file_id = file_id or generate_file_id()

            async with staged_upload(
                upload,
                max_bytes=self.config.max_file_size_bytes,
                upload_dir=self.config.upload_path,
            ) as (path, size):
                extracted = await run_in_threadpool(self.pdf_processor.extract_file, path)

            uploaded_at = format_timestamp()
            metadata = {
                "original_name": upload.filename,
                "filename": sanitize_filename(upload.filename),
                "size": size,
                "mimetype": upload.content_type,
                "pages": extracted.page_count,
                "text_length": len(extracted.text),
                "uploaded_at": uploaded_at,
                "info": extracted.info,
            }
            self.store.put(file_id, extracted.text, metadata)

            log_processing_info("PDF ingested", {
                "file_id": file_id,
                "filename": upload.filename,
                "pages": extracted.page_count,
                "text_length": len(extracted.text)
            })

            return OperationResult.ok(UploadData(
                file_id=file_id,
                file_name=upload.filename,
                pages=extracted.page_count,
                text_length=len(extracted.text),
                uploaded_at=uploaded_at,
            ))

        except PdfNotebookError as e:
            handle_processing_error(
                "pdf_ingestion",
                e,
                {"filename": getattr(upload, "filename", None), "file_id": file_id}
            )
            return OperationResult.err(e)

    async def chat(
        self,
        question: Optional[str],
        file_id: Optional[str],
        options: Optional[AnswerOptions] = None
    ) -> OperationResult[ChatData]:
        """
        Answer a question about a stored document.

        Args:
            question: User's question
            file_id: Identifier of a stored document
            options: Optional model overrides

        Returns:
            OperationResult with the answer or the error that stopped it
        """
        try:
            if not question or not file_id:
                raise ValidationError("Question and fileId are required")
            if not isinstance(question, str) or not question.strip():
                raise ValidationError("Question must be a non-empty string")

            context = self.store.get(file_id)
            if context is None:
                raise NotFoundError(file_id, "PDF not found. Please upload the document first.")

            log_processing_info("Chat query started", {
                "file_id": file_id,
                "question_length": len(question)
            })

            result = await run_in_threadpool(self.chat_service.answer, question, context, options)

            return OperationResult.ok(ChatData(
                answer=result.answer,
                citations=result.citations,
                model=result.model_id,
                usage=result.usage,
                timestamp=format_timestamp(),
            ))

        except PdfNotebookError as e:
            handle_processing_error("chat_query", e, {"file_id": file_id})
            return OperationResult.err(e)

    def get_document_info(self, file_id: str) -> OperationResult[DocumentInfoResponse]:
        """Describe a stored document without marking it as accessed."""
        summary = self.store.describe(file_id)
        if summary is None:
            return OperationResult.err(NotFoundError(file_id, "PDF not found"))
        return OperationResult.ok(DocumentInfoResponse(
            **summary.model_dump(),
            text_length=summary.metadata.get("text_length", 0),
        ))

    def delete_document(self, file_id: str) -> OperationResult[str]:
        """Remove a stored document."""
        if not self.store.remove(file_id):
            return OperationResult.err(NotFoundError(file_id, "PDF not found"))
        return OperationResult.ok(file_id)

    def health_check(self) -> dict:
        """Health status of the document pipeline."""
        return {
            "status": "healthy",
            "storage": self.store.stats(),
            "sweep_running": self.store.running,
            "chat_configured": self.chat_service.is_configured,
        }
