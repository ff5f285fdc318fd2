"""Maintenance jobs over already-imported data.

- :func:`retranslate_names` re-applies the curated translations to a names
  export and upserts the corrected names.
- :func:`export_developers` produces the cleaned developer name list used
  for the external enrichment pass.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from permitdex.db.store import TargetStore
from permitdex.importing.aggregates import COMPANIES_TABLE, CompanyType
from permitdex.importing.arabic import contains_arabic
from permitdex.importing.coercion import parse_number
from permitdex.importing.errors import StoreError
from permitdex.importing.reader import iter_chunks
from permitdex.importing.translations import TranslationStore, translate

logger = logging.getLogger(__name__)

RETRANSLATE_BATCH_SIZE = 100

DEVELOPERS_INSTRUCTION = (
    "For each Dubai UAE real estate developer company below, find publicly available "
    "information. Return as JSON array where each object has: name (exact match), email, "
    "phone, website, address, emirate, established_year, employees_range "
    "(1-10/11-50/51-200/201-500/500+), description, specializations (array like "
    "['Residential','Commercial']), key_people (array of {name,role}), social_links "
    "({linkedin,twitter}). Only include fields where you find actual data. Skip companies "
    "you can't find info for."
)


@dataclass
class RetranslateResult:
    """Counters from a retranslation run."""

    rows: int = 0
    translated: int = 0
    not_translated: int = 0
    non_arabic: int = 0
    updated: int = 0
    failed: int = 0
    missing: set[str] = field(default_factory=set)
    errors: list[str] = field(default_factory=list)


async def retranslate_names(
    path: Path,
    store: TargetStore,
    translations: TranslationStore,
    *,
    table: str = "projects",
    key_column: str = "project_id",
    name_column: str = "project_name",
    batch_size: int = RETRANSLATE_BATCH_SIZE,
) -> RetranslateResult:
    """Upsert ``(key, name)`` pairs from ``path`` with curated names applied.

    Rows without a numeric key are ignored. Arabic names without a curated
    translation are written unchanged and reported in ``missing``. A rejected
    batch is counted as failed and the run continues.

    Raises:
        CSVParseError: If the file cannot be parsed
    """
    result = RetranslateResult()
    pending: list[dict[str, Any]] = []

    async def flush() -> None:
        if not pending:
            return
        batch = list(pending)
        pending.clear()
        try:
            await store.upsert(table, batch, (key_column,), update_columns=(name_column,))
        except StoreError as e:
            result.failed += len(batch)
            result.errors.append(f"Batch error: {e.message}")
            logger.warning(f"Retranslation batch of {len(batch)} rows rejected: {e.message}")
        else:
            result.updated += len(batch)

    async for chunk in iter_chunks(path, batch_size):
        for row in chunk:
            key = parse_number(row.get(key_column))
            if not key:
                continue

            name = row.get(name_column) or ""
            if contains_arabic(name):
                curated = translate(name, translations)
                if curated is None:
                    result.missing.add(name)
                    result.not_translated += 1
                else:
                    name = curated
                    result.translated += 1
            else:
                result.non_arabic += 1

            result.rows += 1
            pending.append({key_column: key, name_column: name})
            if len(pending) >= batch_size:
                await flush()
    await flush()

    logger.info(
        f"Retranslated {path.name}: {result.translated} translated, "
        f"{result.not_translated} without translation, {result.non_arabic} non-Arabic; "
        f"{result.updated} updated, {result.failed} failed"
    )
    return result


_LEGAL_SUFFIXES = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\s*-?\s*L\.?L\.?C\.?$",
        r"\s*-?\s*S\.?O\.?C\.?$",
        r"\s*-?\s*BRANCH$",
        r"\s*-?\s*LIMITED$",
        r"\s*-?\s*LTD\.?$",
        r"\s*-?\s*FZCO\.?$",
        r"\s*-?\s*FZC\.?$",
        r"\s*-?\s*FZE\.?$",
        r"\s*-?\s*PJSC\.?$",
        r"\s*-?\s*PVT\.?\s*LTD\.?$",
        r"\s*-?\s*PRIVATE\s+LIMITED$",
        r"\s*-?\s*INC\.?$",
        r"\s*-?\s*CORP\.?$",
        r"\s*-?\s*CO\.?$",
    )
]
_BRANCH_ANYWHERE = re.compile(r"\s*-?\s*\(?BRANCH\)?", re.IGNORECASE)
_DEVELOPER_WORDS = re.compile(r"DEVELOP(MENT|ER)S?", re.IGNORECASE)
_REAL_ESTATE = re.compile(r"REAL\s+ESTATE\s*&?\s*", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def clean_company_name(name: str) -> str:
    """Strip legal-form suffixes and branch markers from a company name.

    Each suffix pattern is applied once, in a fixed order, so only the
    trailing forms are removed ("X LLC BRANCH" becomes "X LLC"). "REAL
    ESTATE" is dropped only from names that already say DEVELOPMENT/DEVELOPER.
    """
    cleaned = name
    for pattern in _LEGAL_SUFFIXES:
        cleaned = pattern.sub("", cleaned, count=1)
    cleaned = _BRANCH_ANYWHERE.sub("", cleaned).strip()

    if _DEVELOPER_WORDS.search(cleaned):
        cleaned = _REAL_ESTATE.sub("", cleaned)

    return _WHITESPACE.sub(" ", cleaned).strip()


async def export_developers(store: TargetStore) -> list[str]:
    """Cleaned, de-duplicated, sorted developer names from ``companies``."""
    rows = await store.select(
        COMPANIES_TABLE, ["name_en"], {"type": CompanyType.DEVELOPER.value}
    )
    names = {clean_company_name(row["name_en"]) for row in rows if row.get("name_en")}
    developers = sorted(name for name in names if name)
    logger.info(f"Exported {len(developers)} developer names from {len(rows)} companies")
    return developers


def developers_document(developers: list[str]) -> dict[str, Any]:
    return {"instruction": DEVELOPERS_INSTRUCTION, "developers": developers}
