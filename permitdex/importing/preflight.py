"""Full-file pass that finds Arabic names lacking a curated translation.

Run before an import that has translation enabled, so the operator can see
which names will stay in Arabic (or be romanized) and confirm or cancel.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Mapping
from dataclasses import dataclass
from pathlib import Path

from permitdex.importing.arabic import contains_arabic
from permitdex.importing.reader import iter_chunks
from permitdex.importing.translations import TranslationStore, translate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreflightResult:
    untranslated: frozenset[str]
    rows_scanned: int = 0
    arabic_values: int = 0

    @property
    def needs_confirmation(self) -> bool:
        return bool(self.untranslated)


async def scan_for_untranslated(
    path: Path,
    column_mapping: Mapping[str, str],
    translate_columns: Collection[str],
    store: TranslationStore,
    chunk_size: int = 10_000,
) -> PreflightResult:
    """Collect distinct untranslated Arabic values in translation-enabled columns.

    Streams the whole file independently of the import pass; also counts the
    data rows so the import can report an exact percentage.

    Raises:
        CSVParseError: If the file cannot be parsed
    """
    sources = [
        column_mapping[column]
        for column in translate_columns
        if column_mapping.get(column)
    ]

    untranslated: set[str] = set()
    rows_scanned = 0
    arabic_values = 0

    async for chunk in iter_chunks(path, chunk_size):
        rows_scanned += len(chunk)
        if not sources:
            continue
        for row in chunk:
            for source in sources:
                value = row.get(source)
                if not isinstance(value, str) or not contains_arabic(value):
                    continue
                arabic_values += 1
                if translate(value, store) is None:
                    untranslated.add(value)

    logger.info(
        f"Pre-flight scan of {path.name}: {rows_scanned} rows, {arabic_values} Arabic values, "
        f"{len(untranslated)} distinct without a curated translation"
    )
    return PreflightResult(
        untranslated=frozenset(untranslated),
        rows_scanned=rows_scanned,
        arabic_values=arabic_values,
    )
