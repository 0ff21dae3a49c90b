"""
Utility functions for the PDF Notebook API.
"""

import functools
import os
import re
import time
import uuid
import tempfile
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Tuple
from datetime import datetime, timezone
import logging

from starlette.datastructures import UploadFile

from .errors import ValidationError

logger = logging.getLogger(__name__)

FILE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{1,128}$")
UPLOAD_CHUNK_SIZE = 1024 * 1024


def generate_file_id() -> str:
    """Generate a unique document identifier."""
    return str(uuid.uuid4())


def validate_file_id(file_id: str) -> bool:
    """Validate a caller-supplied document identifier."""
    return bool(file_id) and FILE_ID_PATTERN.match(file_id) is not None


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: Optional[datetime] = None) -> str:
    """Get a timestamp in ISO format (now if not given)."""
    return (value or utc_now()).isoformat()


def measure_time(func):
    """Decorator to measure function execution time."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        result = func(*args, **kwargs)
        end_time = time.time()
        execution_time = end_time - start_time

        logger.info(f"{func.__name__} executed in {execution_time:.2f} seconds")
        return result
    return wrapper


def sanitize_filename(filename: str) -> str:
    """Sanitize filename for safe storage."""
    # Remove or replace dangerous characters
    dangerous_chars = ['/', '\\', ':', '*', '?', '"', '<', '>', '|']
    sanitized = filename

    for char in dangerous_chars:
        sanitized = sanitized.replace(char, '_')

    # Limit length
    if len(sanitized) > 255:
        name, ext = sanitized.rsplit('.', 1) if '.' in sanitized else (sanitized, '')
        sanitized = name[:255-len(ext)-1] + ('.' + ext if ext else '')

    return sanitized


@asynccontextmanager
async def staged_upload(
    upload: UploadFile,
    max_bytes: int,
    upload_dir: str,
) -> AsyncIterator[Tuple[str, int]]:
    """
    Stream an upload into a temporary file and yield ``(path, size)``.

    Raises ValidationError as soon as the upload grows past ``max_bytes``.
    The temporary file is removed on every exit path.
    """
    os.makedirs(upload_dir, exist_ok=True)
    fd, path = tempfile.mkstemp(prefix="pdf-", suffix=".pdf", dir=upload_dir)
    size = 0
    try:
        with os.fdopen(fd, "wb") as staged:
            while True:
                chunk = await upload.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise ValidationError(
                        f"File size exceeds {max_bytes // (1024 * 1024)}MB limit",
                        {"filename": upload.filename, "max_bytes": max_bytes},
                    )
                staged.write(chunk)
        yield path, size
    finally:
        cleanup_file(path)


def cleanup_file(path: str) -> None:
    """Remove a temporary file if it still exists."""
    try:
        if os.path.exists(path):
            os.unlink(path)
            logger.info(f"Cleaned up temporary file: {path}")
    except OSError as e:
        logger.error(f"Error cleaning up file {path}: {e}")


def log_processing_info(operation: str, details: Dict[str, Any]) -> None:
    """Log processing information."""
    logger.info(f"{operation}: {details}")


def handle_processing_error(operation: str, error: Exception, context: Dict[str, Any] = None) -> Dict[str, Any]:
    """Handle and log processing errors."""
    error_info = {
        'operation': operation,
        'error_type': type(error).__name__,
        'error_message': str(error),
        'timestamp': format_timestamp()
    }

    if context:
        error_info.update(context)

    logger.error(f"Processing error: {error_info}")
    return error_info
