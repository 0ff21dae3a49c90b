"""
In-memory document store with time-based eviction.

Records expire a fixed time after they were created, regardless of how often
they are read. Last-access time is tracked for reporting only.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from ..models import StoredDocumentSummary, StoreStats
from ..utils import utc_now, log_processing_info

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(hours=24)
DEFAULT_SWEEP_INTERVAL = timedelta(hours=1)


@dataclass
class _DocumentRecord:
    text: str
    metadata: Dict[str, Any]
    created_at: datetime
    last_accessed_at: datetime


class DocumentStore:
    """
    Holds extracted text and metadata per document identifier.

    None of the methods await, so under a single event loop each one runs to
    completion before any other store call starts. ``start`` launches the
    periodic sweep on the running loop and ``shutdown`` stops it.
    """

    def __init__(
        self,
        retention: timedelta = DEFAULT_RETENTION,
        sweep_interval: timedelta = DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.retention = retention
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._records: Dict[str, _DocumentRecord] = {}
        self._sweep_task: Optional[asyncio.Task] = None

    def put(self, file_id: str, text: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        """Insert a record, fully replacing any record stored under ``file_id``."""
        replaced = file_id in self._records
        now = self._clock()
        self._records[file_id] = _DocumentRecord(
            text=text,
            metadata=copy.deepcopy(metadata or {}),
            created_at=now,
            last_accessed_at=now,
        )
        log_processing_info("Document stored", {
            "file_id": file_id,
            "text_length": len(text),
            "replaced": replaced
        })

    def get(self, file_id: str) -> Optional[str]:
        """Return the stored text and mark the record as accessed."""
        record = self._records.get(file_id)
        if record is None:
            return None
        record.last_accessed_at = max(self._clock(), record.last_accessed_at)
        return record.text

    def get_metadata(self, file_id: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(file_id)
        if record is None:
            return None
        return copy.deepcopy(record.metadata)

    def has(self, file_id: str) -> bool:
        return file_id in self._records

    def remove(self, file_id: str) -> bool:
        removed = self._records.pop(file_id, None) is not None
        if removed:
            log_processing_info("Document removed", {"file_id": file_id})
        return removed

    def describe(self, file_id: str) -> Optional[StoredDocumentSummary]:
        """Summary of one record, without touching its access time."""
        record = self._records.get(file_id)
        if record is None:
            return None
        return self._summarize(file_id, record)

    def list_all(self) -> List[StoredDocumentSummary]:
        """Snapshot of every live record."""
        return [
            self._summarize(file_id, record)
            for file_id, record in list(self._records.items())
        ]

    def stats(self) -> StoreStats:
        return StoreStats(count=len(self._records))

    def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Remove every record created more than ``retention`` before ``now``.

        Returns the number of records removed.
        """
        now = now or self._clock()
        cutoff = now - self.retention
        expired = [
            file_id
            for file_id, record in list(self._records.items())
            if record.created_at < cutoff
        ]
        for file_id in expired:
            del self._records[file_id]

        if expired:
            log_processing_info("Expired documents swept", {
                "removed": len(expired),
                "remaining": len(self._records)
            })
        return len(expired)

    async def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.create_task(self._sweep_periodically())
        logger.info(f"Document sweep scheduled every {self.sweep_interval.total_seconds():.0f}s")

    async def shutdown(self) -> None:
        """Stop the periodic sweep."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Document sweep stopped")

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def _sweep_periodically(self) -> None:
        interval = self.sweep_interval.total_seconds()
        while True:
            await asyncio.sleep(interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Document sweep failed: {e}")

    @staticmethod
    def _summarize(file_id: str, record: _DocumentRecord) -> StoredDocumentSummary:
        return StoredDocumentSummary(
            file_id=file_id,
            metadata=copy.deepcopy(record.metadata),
            has_content=record.text is not None,
            created_at=record.created_at,
            last_accessed_at=record.last_accessed_at,
        )
