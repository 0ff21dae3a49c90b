"""
Pydantic models for request/response validation and service results.
"""

from datetime import datetime
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .errors import ErrorKind, PdfNotebookError

DEFAULT_SYSTEM_PROMPT = (
    "You are an AI that helps summarize and answer questions about PDF documents "
    "using provided content. Be concise and cite page numbers if known."
)

T = TypeVar("T")


# ============================================================================
# SERVICE MODELS
# ============================================================================

class ExtractedDocument(BaseModel):
    """Text and page information extracted from a PDF."""
    text: str = Field(..., description="Full extracted text")
    page_count: int = Field(..., ge=0, description="Number of pages in the document")
    info: Dict[str, Any] = Field(default_factory=dict, description="PDF document information dictionary")


class AnswerOptions(BaseModel):
    """Per-call options for the question-answering gateway."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True, protected_namespaces=())

    model: Optional[str] = Field(default=None, description="Model identifier, defaults to the configured model")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Sampling temperature")
    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        min_length=1,
        validation_alias=AliasChoices("system_prompt", "systemPrompt"),
        description="System prompt sent ahead of the question",
    )


class AnswerResult(BaseModel):
    """Answer produced by the question-answering gateway."""
    model_config = ConfigDict(protected_namespaces=())

    answer: str = Field(..., description="Model answer")
    citations: List[int] = Field(default_factory=list, description="Distinct page numbers cited in the answer")
    model_id: str = Field(..., description="Model that produced the answer")
    usage: Optional[Dict[str, Any]] = Field(default=None, description="Token usage reported by the provider")


class StoredDocumentSummary(BaseModel):
    """Snapshot of one record held by the document store."""
    file_id: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    has_content: bool = True
    created_at: datetime
    last_accessed_at: datetime


class StoreStats(BaseModel):
    """Aggregate document store statistics."""
    count: int = Field(..., ge=0, description="Number of live records")


class OperationError(BaseModel):
    """Failure half of an operation result."""
    kind: ErrorKind
    message: str
    status_code: int


class OperationResult(BaseModel, Generic[T]):
    """Outcome of a service operation: either data or an error, never both."""
    status: Literal["success", "error"]
    data: Optional[T] = None
    error: Optional[OperationError] = None

    @classmethod
    def ok(cls, data: T) -> "OperationResult[T]":
        return cls(status="success", data=data)

    @classmethod
    def err(cls, exc: PdfNotebookError) -> "OperationResult[T]":
        return cls(
            status="error",
            error=OperationError(kind=exc.kind, message=exc.message, status_code=exc.status_code),
        )

    @property
    def is_ok(self) -> bool:
        return self.status == "success"


class UploadData(BaseModel):
    """Result of a successful ingestion."""
    file_id: str
    file_name: str
    pages: int
    text_length: int
    uploaded_at: str


class ChatData(BaseModel):
    """Result of a successful chat request."""
    answer: str
    citations: List[int] = Field(default_factory=list)
    model: str
    usage: Optional[Dict[str, Any]] = None
    timestamp: str


# ============================================================================
# REQUEST / RESPONSE MODELS
# ============================================================================

class ChatRequest(BaseModel):
    """Request model for chat queries."""
    model_config = ConfigDict(populate_by_name=True)

    question: Optional[str] = Field(default=None, description="User's question")
    file_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("file_id", "fileId"),
        description="Identifier returned by the upload endpoint",
    )
    options: Optional[AnswerOptions] = Field(default=None, description="Optional model overrides")


class ChatResponse(ChatData):
    """Response model for chat queries."""


class UploadResponse(UploadData):
    """Response model for PDF upload."""
    message: str = Field(default="PDF uploaded and processed successfully")
    file_url: str = Field(..., description="URL of the document information endpoint")


class DocumentInfoResponse(StoredDocumentSummary):
    """Response model for a single stored document."""
    text_length: int = Field(default=0, description="Length of the extracted text")


class DocumentListResponse(BaseModel):
    """Response model for listing stored documents."""
    files: List[StoredDocumentSummary] = Field(default_factory=list)
    count: int = Field(..., description="Number of documents listed")


class StatsResponse(StoreStats):
    """Response model for store statistics."""
    timestamp: str = Field(..., description="Current timestamp")


class MessageResponse(BaseModel):
    """Response model for simple acknowledgements."""
    message: str


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str = Field(..., description="Health status")
    message: str = Field(..., description="Status message")
    version: str = Field(..., description="Application version")
    timestamp: str = Field(..., description="Current timestamp")
    uptime_seconds: float = Field(..., description="Seconds since the application started")
    storage: StoreStats = Field(..., description="Document store statistics")
    sweep_running: bool = Field(..., description="Whether the expiry sweep is scheduled")
    chat_configured: bool = Field(..., description="Whether an AI provider credential is set")


class ModelsResponse(BaseModel):
    """Response model for the upstream model listing."""
    models: List[Dict[str, Any]] = Field(default_factory=list)
    count: int = 0
    message: Optional[str] = None
    timestamp: str


class AIStatusResponse(BaseModel):
    """Response model for the gateway connection status."""
    status: Literal["connected", "disconnected", "not_configured"]
    timestamp: str


class ErrorResponse(BaseModel):
    """Response model for errors."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(default=None, description="Detailed error information")
    status_code: int = Field(..., description="HTTP status code")
