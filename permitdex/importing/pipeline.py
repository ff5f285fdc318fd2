"""Chunked CSV import into a target table.

Per chunk: map and coerce every row, drop rows that fail validation (counted
as skipped), write the survivors as one batch, then fold the batch into any
derived directory table. Chunks are processed strictly one after another;
the next chunk is not read until the current one's writes have finished.

A rejected batch is counted as failed in full and the run continues. A parse
error in the stream ends the run immediately.
"""

from __future__ import annotations

import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Collection, Mapping
from datetime import date
from pathlib import Path
from typing import Any

from permitdex.config import ImportConfig
from permitdex.core.logging import bind_import_context, clear_import_context
from permitdex.db.store import TargetStore, collapse_on_key
from permitdex.importing.aggregates import get_aggregator
from permitdex.importing.coercion import coerce_value
from permitdex.importing.errors import CSVParseError, StoreError
from permitdex.importing.reader import Row, iter_chunks
from permitdex.importing.schemas import PERMITS_TABLE, SchemaDefinition
from permitdex.importing.translations import NameResolver, TranslationStore
from permitdex.importing.types import ImportProgress, ImportStatus, ImportSummary, SkipReason

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ImportProgress], Awaitable[None] | None]

CUTOFF_COLUMN = "project_creation_date"


class ImportPipeline:
    """Imports one CSV file into one target table."""

    def __init__(
        self,
        store: TargetStore,
        schema: SchemaDefinition,
        column_mapping: Mapping[str, str],
        *,
        translate_columns: Collection[str] = (),
        translations: TranslationStore | None = None,
        config: ImportConfig | None = None,
        fallback: str | None = None,
    ):
        """Initialize pipeline.

        Args:
            store: Target store receiving batches
            schema: Target table definition
            column_mapping: target column -> source CSV header
            translate_columns: Target columns with Arabic -> English enabled
            translations: Curated translations snapshot
            config: Import settings (chunk size, cutoff date)
            fallback: Policy for Arabic without a curated translation,
                overriding ``config.untranslated_fallback``
        """
        unknown = [column for column in column_mapping if not schema.has_column(column)]
        if unknown:
            raise ValueError(f"Columns not in '{schema.table}': {unknown}")

        self.store = store
        self.schema = schema
        self.column_mapping = {target: source for target, source in column_mapping.items() if source}
        self.config = config or ImportConfig()
        self.translate_columns = frozenset(
            column for column in translate_columns if schema.column(column).translatable
        )
        self.resolver = NameResolver(
            translations if translations is not None else TranslationStore(),
            fallback or self.config.untranslated_fallback,
        )
        self.aggregator = get_aggregator(schema.table)

    def map_row(self, raw: Mapping[str, Any]) -> dict[str, Any]:
        """Build a target record from one raw CSV row."""
        record: dict[str, Any] = {}
        for target, source in self.column_mapping.items():
            if source not in raw:
                continue
            translate = self.resolver if target in self.translate_columns else None
            record[target] = coerce_value(raw[source], self.schema.column(target), translate)
        return record

    def skip_reason(self, record: Mapping[str, Any]) -> SkipReason | None:
        """Why ``record`` must be dropped, or None if it may be imported."""
        if self.schema.table == PERMITS_TABLE:
            created = record.get(CUTOFF_COLUMN)
            if created and date.fromisoformat(created) < self.config.permits_cutoff_date:
                return SkipReason.BEFORE_CUTOFF

        for column in self.schema.required_columns:
            if record.get(column.name) in (None, ""):
                return SkipReason.MISSING_REQUIRED
        return None

    async def write_batch(self, batch: list[dict[str, Any]]) -> int:
        """Write one batch; returns the number of distinct rows written.

        Rows of an upsert batch sharing a conflict key collapse into the last
        one, so they count once.
        """
        if self.schema.uses_upsert:
            rows = collapse_on_key(batch, self.schema.conflict_key)
            await self.store.upsert(self.schema.table, rows, self.schema.conflict_key)
            return len(rows)

        await self.store.insert(self.schema.table, batch)
        return len(batch)

    async def process_chunk(
        self, rows: list[Row], progress: ImportProgress, summary: ImportSummary
    ) -> None:
        batch: list[dict[str, Any]] = []
        for raw in rows:
            progress.rows_read += 1
            record = self.map_row(raw)
            reason = self.skip_reason(record)
            if reason is not None:
                progress.skipped_rows += 1
                summary.skip_reasons[reason.value] = summary.skip_reasons.get(reason.value, 0) + 1
                continue
            batch.append(record)
            progress.total_rows += 1

        progress.chunks_processed += 1
        if not batch:
            return

        try:
            written = await self.write_batch(batch)
        except StoreError as e:
            progress.failed_rows += len(batch)
            summary.errors.append(f"Batch error: {e.message}")
            logger.warning(
                f"Batch {progress.chunks_processed} of {len(batch)} rows rejected by "
                f"{self.schema.table}: {e.message}"
            )
            return

        progress.imported_rows += written
        if written < len(batch):
            progress.duplicate_rows += len(batch) - written

        if self.aggregator is not None:
            try:
                summary.aggregate_rows += await self.aggregator.apply(self.store, batch)
            except StoreError as e:
                message = f"Aggregate error ({self.aggregator.target_table}): {e.message}"
                summary.aggregate_errors.append(message)
                logger.error(
                    f"{message} - {self.aggregator.target_table} is out of sync with "
                    f"{self.schema.table} batch {progress.chunks_processed}"
                )

    async def run(
        self,
        path: Path,
        *,
        expected_rows: int | None = None,
        progress: ImportProgress | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ImportSummary:
        """Stream ``path`` into the target table.

        Args:
            path: CSV file
            expected_rows: Data row count if already known (enables percent)
            progress: Counters to update in place (a fresh set by default)
            on_progress: Called after every chunk with the running counters

        Returns:
            ImportSummary with final counters and error messages
        """
        start_time = time.time()
        if progress is None:
            progress = ImportProgress()
        if expected_rows is not None:
            progress.expected_rows = expected_rows
        summary = ImportSummary(table=self.schema.table, file_name=path.name, status=ImportStatus.SUCCESS)
        fatal = False

        bind_import_context(table=self.schema.table, file=path.name)
        logger.info(f"Starting import of {path.name} into {self.schema.table}")

        try:
            async for chunk in iter_chunks(path, self.config.chunk_size):
                await self.process_chunk(chunk, progress, summary)
                if on_progress is not None:
                    outcome = on_progress(progress)
                    if inspect.isawaitable(outcome):
                        await outcome
        except CSVParseError as e:
            fatal = True
            summary.errors.append(f"Import error: {e}")
            logger.error(f"Import of {path.name} aborted: {e}", exc_info=True)
        finally:
            clear_import_context()

        summary.total_rows = progress.total_rows
        summary.imported_rows = progress.imported_rows
        summary.failed_rows = progress.failed_rows
        summary.skipped_rows = progress.skipped_rows
        summary.duplicate_rows = progress.duplicate_rows
        summary.rows_read = progress.rows_read
        summary.translation_stats = self.resolver.stats() if self.translate_columns else {}
        summary.duration_seconds = time.time() - start_time

        if fatal or (progress.failed_rows and not progress.imported_rows):
            summary.status = ImportStatus.FAILED
        elif progress.failed_rows:
            summary.status = ImportStatus.PARTIAL_SUCCESS

        logger.info(
            f"Import of {path.name} finished ({summary.status.value}): "
            f"{summary.imported_rows} imported, {summary.failed_rows} failed, "
            f"{summary.skipped_rows} skipped"
        )
        return summary
