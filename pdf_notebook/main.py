"""
FastAPI application for the PDF Notebook API.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from fastapi import APIRouter, Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
import logging

from .config import Settings, get_settings, settings, validate_required_settings
from .errors import PdfNotebookError
from .models import (
    AIStatusResponse, ChatRequest, ChatResponse, DocumentInfoResponse,
    DocumentListResponse, ErrorResponse, HealthResponse, MessageResponse,
    ModelsResponse, OperationResult, StatsResponse, UploadResponse
)
from .services import DocumentService
from .utils import format_timestamp

# Configure logging
logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

router = APIRouter()


def get_document_service(request: Request) -> DocumentService:
    """Document service attached to the running application."""
    return request.app.state.document_service


def raise_for_error(result: OperationResult):
    """Return the result data, or raise the HTTP error the result carries."""
    if not result.is_ok:
        raise HTTPException(status_code=result.error.status_code, detail=result.error.message)
    return result.data


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the document sweep on startup and stop it on shutdown."""
    store = app.state.document_service.store
    await store.start()
    try:
        yield
    finally:
        await store.shutdown()


@router.get("/", response_model=dict)
async def root(request: Request):
    """Root endpoint."""
    return {
        "message": "PDF Notebook API is running",
        "version": request.app.version,
        "timestamp": format_timestamp(),
        "endpoints": {
            "pdf": "/api/upload",
            "chat": "/api/chat",
            "health": "/api/health",
            "models": "/api/models",
        },
    }


@router.get("/api/health", response_model=HealthResponse)
async def health_check(request: Request, document_service: DocumentService = Depends(get_document_service)):
    """Health check endpoint with storage statistics."""
    health_info = document_service.health_check()

    return HealthResponse(
        status=health_info["status"],
        message="Service health check completed",
        version=request.app.version,
        timestamp=format_timestamp(),
        uptime_seconds=round(time.time() - request.app.state.started_at, 3),
        storage=health_info["storage"],
        sweep_running=health_info["sweep_running"],
        chat_configured=health_info["chat_configured"],
    )


@router.post("/api/upload", response_model=UploadResponse, status_code=201)
async def upload_pdf(
    request: Request,
    pdf: Optional[UploadFile] = File(None),
    file_id: Optional[str] = Form(None),
    document_service: DocumentService = Depends(get_document_service)
):
    """
    Upload a PDF, extract its text and keep it in memory for chatting.

    The upload is staged in a temporary file that is removed once parsing ends.
    """
    result = await document_service.ingest_upload(pdf, file_id)
    data = raise_for_error(result)

    return UploadResponse(
        **data.model_dump(),
        file_url=str(request.url_for("get_pdf_info", file_id=data.file_id)),
    )


@router.get("/api/pdf/{file_id}", response_model=DocumentInfoResponse)
async def get_pdf_info(file_id: str, document_service: DocumentService = Depends(get_document_service)):
    """Get information about an uploaded PDF."""
    return raise_for_error(document_service.get_document_info(file_id))


@router.delete("/api/pdf/{file_id}", response_model=MessageResponse)
async def delete_pdf(file_id: str, document_service: DocumentService = Depends(get_document_service)):
    """Delete an uploaded PDF."""
    raise_for_error(document_service.delete_document(file_id))
    return MessageResponse(message="PDF deleted successfully")


@router.get("/api/pdfs", response_model=DocumentListResponse)
async def list_pdfs(document_service: DocumentService = Depends(get_document_service)):
    """List every PDF currently held in memory."""
    files = document_service.store.list_all()
    return DocumentListResponse(files=files, count=len(files))


@router.get("/api/stats", response_model=StatsResponse)
async def get_stats(document_service: DocumentService = Depends(get_document_service)):
    """Get storage statistics."""
    stats = document_service.store.stats()
    return StatsResponse(count=stats.count, timestamp=format_timestamp())


@router.post("/api/chat", response_model=ChatResponse)
async def chat_with_pdf(
    chat_request: ChatRequest,
    document_service: DocumentService = Depends(get_document_service)
):
    """Ask a question about an uploaded PDF."""
    result = await document_service.chat(
        question=chat_request.question,
        file_id=chat_request.file_id,
        options=chat_request.options
    )
    data = raise_for_error(result)
    return ChatResponse(**data.model_dump())


@router.get("/api/models", response_model=ModelsResponse)
async def get_available_models(document_service: DocumentService = Depends(get_document_service)):
    """List the models offered by the AI provider."""
    try:
        models = await run_in_threadpool(document_service.chat_service.list_models)
    except PdfNotebookError as e:
        logger.error(f"Failed to fetch models: {e}")
        return ModelsResponse(
            models=[],
            count=0,
            message="Unable to fetch models at this time",
            timestamp=format_timestamp()
        )

    return ModelsResponse(models=models, count=len(models), timestamp=format_timestamp())


@router.get("/api/ai/status", response_model=AIStatusResponse)
async def get_ai_status(document_service: DocumentService = Depends(get_document_service)):
    """Check whether the AI provider accepts the configured credential."""
    status = await run_in_threadpool(document_service.chat_service.check_connection)
    return AIStatusResponse(status=status, timestamp=format_timestamp())


def register_exception_handlers(app: FastAPI, config: Settings) -> None:
    @app.exception_handler(PdfNotebookError)
    async def service_exception_handler(request: Request, exc: PdfNotebookError):
        """Errors raised by the services outside an operation result."""
        logger.error(f"{exc.kind.value} error: {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=exc.kind.value,
                detail=exc.message,
                status_code=exc.status_code
            ).model_dump()
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.error(f"Unhandled exception: {str(exc)}")
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="Internal server error",
                detail=str(exc) if config.debug else "An unexpected error occurred",
                status_code=500
            ).model_dump()
        )


def create_app(
    config: Optional[Settings] = None,
    document_service: Optional[DocumentService] = None
) -> FastAPI:
    """Build the application around an explicitly constructed document service."""
    config = config or get_settings()

    # Validate settings before serving anything
    try:
        validate_required_settings(config)
    except PdfNotebookError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise

    app = FastAPI(
        title=config.app_name,
        version=config.app_version,
        description="Upload PDFs and ask questions about them with an AI model",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.settings = config
    app.state.document_service = document_service or DocumentService(config=config)
    app.state.started_at = time.time()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_exception_handlers(app, config)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pdf_notebook.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
