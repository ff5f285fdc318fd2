"""Audit trail of import runs (``import_logs``)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from permitdex.db.models import ImportLogModel
from permitdex.importing.types import ImportStatus, ImportSummary

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

# Error messages kept on the log row
MAX_LOGGED_ERRORS = 5


class ImportLogRecorder:
    """Records each run as pending -> processing -> completed | failed."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(self, table: str, file_name: str, imported_by: str | None = None) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                entry = ImportLogModel(
                    table_name=table,
                    file_name=file_name,
                    status=STATUS_PENDING,
                    imported_by=imported_by,
                )
                session.add(entry)
                await session.flush()
                log_id = entry.id
        return log_id

    async def mark_processing(self, log_id: int) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                entry = await session.get(ImportLogModel, log_id)
                if entry is not None:
                    entry.status = STATUS_PROCESSING

    async def finish(self, log_id: int, summary: ImportSummary) -> None:
        """Store final counters; a FAILED run is logged as ``failed``."""
        async with self.session_factory() as session:
            async with session.begin():
                entry = await session.get(ImportLogModel, log_id)
                if entry is None:
                    logger.warning(f"Import log {log_id} not found; result not recorded")
                    return
                entry.status = (
                    STATUS_FAILED if summary.status is ImportStatus.FAILED else STATUS_COMPLETED
                )
                entry.records_imported = summary.imported_rows
                entry.records_failed = summary.failed_rows
                entry.records_skipped = summary.skipped_rows
                messages = (summary.errors + summary.aggregate_errors)[:MAX_LOGGED_ERRORS]
                entry.error_message = "\n".join(messages) or None
                entry.completed_at = datetime.now(timezone.utc)

    async def fail(self, log_id: int, message: str) -> None:
        """Mark a run failed before it produced a summary (e.g. cancelled)."""
        async with self.session_factory() as session:
            async with session.begin():
                entry = await session.get(ImportLogModel, log_id)
                if entry is not None:
                    entry.status = STATUS_FAILED
                    entry.error_message = message
                    entry.completed_at = datetime.now(timezone.utc)

    async def recent(self, limit: int = 10) -> list[ImportLogModel]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ImportLogModel)
                .order_by(ImportLogModel.created_at.desc(), ImportLogModel.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
