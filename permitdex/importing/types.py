"""Type definitions for import runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ImportStatus(str, Enum):
    """Outcome of an import run."""

    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"  # some batches failed
    FAILED = "FAILED"  # fatal stream error or nothing imported


class SkipReason(str, Enum):
    """Why a row was dropped before reaching a batch (never an error)."""

    BEFORE_CUTOFF = "before_cutoff"
    MISSING_REQUIRED = "missing_required"


@dataclass
class ImportProgress:
    """Running counters of an import in progress.

    ``total_rows`` counts rows that passed validation and joined a batch;
    ``skipped_rows`` counts rows dropped by validation. Skips are never
    counted as failures.
    ``duplicate_rows`` counts upsert rows merged into a later row with the
    same key in the same batch; they are part of ``total_rows`` but not of
    ``imported_rows``.
    """

    rows_read: int = 0
    total_rows: int = 0
    imported_rows: int = 0
    failed_rows: int = 0
    skipped_rows: int = 0
    duplicate_rows: int = 0
    chunks_processed: int = 0
    expected_rows: int | None = None  # known only after a full pre-pass

    @property
    def percent(self) -> float | None:
        """Exact completion percentage, or None when the row total is unknown."""
        if self.expected_rows is None:
            return None
        if self.expected_rows == 0:
            return 100.0
        return round(min(self.rows_read / self.expected_rows, 1.0) * 100, 1)


@dataclass
class ImportSummary:
    """Final result of an import run."""

    table: str
    file_name: str
    status: ImportStatus
    total_rows: int = 0
    imported_rows: int = 0
    failed_rows: int = 0
    skipped_rows: int = 0
    duplicate_rows: int = 0
    rows_read: int = 0
    skip_reasons: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    aggregate_errors: list[str] = field(default_factory=list)
    aggregate_rows: int = 0
    translation_stats: dict[str, int] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.status in (ImportStatus.SUCCESS, ImportStatus.PARTIAL_SUCCESS)

    def displayed_errors(self, limit: int = 5) -> tuple[list[str], int]:
        """First ``limit`` error messages and how many more were recorded."""
        return self.errors[:limit], max(len(self.errors) - limit, 0)
