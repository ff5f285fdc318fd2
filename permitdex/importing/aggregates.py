"""Derived directory tables folded from imported batches.

Contractor and consultant project rows add to a per-license project count in
``companies``; developer rows seed ``companies`` entries; land-registry rows
feed the ``areas`` directory. Counts are incremented by the store in a single
``INSERT ... ON CONFLICT`` statement, so concurrent imports cannot lose
increments.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from permitdex.db.store import TargetStore

logger = logging.getLogger(__name__)

COMPANIES_TABLE = "companies"
COMPANIES_KEY = ("license_no", "type")
AREAS_TABLE = "areas"
AREAS_KEY = ("munc_zip_code",)


class CompanyType(str, Enum):
    DEVELOPER = "developer"
    CONTRACTOR = "contractor"
    CONSULTANT = "consultant"


def valid_license(value: Any) -> bool:
    """License numbers that are missing, zero or negative mean "no license"."""
    if value is None or isinstance(value, bool):
        return False
    if not isinstance(value, (int, float)):
        return False
    return value > 0


class Aggregator(Protocol):
    target_table: str

    def fold(self, batch: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]: ...

    async def apply(self, store: TargetStore, batch: Sequence[Mapping[str, Any]]) -> int: ...


@dataclass(frozen=True)
class CompanyAggregator:
    """Folds source rows into ``companies`` rows for one company type.

    With ``accumulate`` each row counts as one project for its license and the
    store adds the batch count to the stored count. Without it, companies are
    only seeded (count 0 on first insert, existing counts left untouched).
    """

    company_type: CompanyType
    license_column: str
    name_column: str
    accumulate: bool = True
    target_table: str = COMPANIES_TABLE

    def fold(self, batch: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        companies: dict[Any, dict[str, Any]] = {}
        for row in batch:
            license_no = row.get(self.license_column)
            name = row.get(self.name_column)
            if not valid_license(license_no) or not name:
                continue

            existing = companies.get(license_no)
            if existing is None:
                companies[license_no] = {
                    "license_no": license_no,
                    "name_en": name,
                    "type": self.company_type.value,
                    "project_count": 1 if self.accumulate else 0,
                }
            elif self.accumulate:
                existing["project_count"] += 1
        return list(companies.values())

    async def apply(self, store: TargetStore, batch: Sequence[Mapping[str, Any]]) -> int:
        rows = self.fold(batch)
        if not rows:
            return 0

        if self.accumulate:
            await store.upsert(
                self.target_table,
                rows,
                COMPANIES_KEY,
                update_columns=("name_en",),
                increment_columns=("project_count",),
            )
        else:
            await store.upsert(
                self.target_table,
                rows,
                COMPANIES_KEY,
                update_columns=("name_en",),
            )

        logger.debug(f"Upserted {len(rows)} {self.company_type.value} companies")
        return len(rows)


@dataclass(frozen=True)
class AreaAggregator:
    """One ``areas`` row per zip code; the last name seen for a zip wins."""

    zip_column: str = "munc_zip_code"
    name_column: str = "area_name_en"
    target_table: str = AREAS_TABLE

    def fold(self, batch: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        areas: dict[Any, dict[str, Any]] = {}
        for row in batch:
            zip_code = row.get(self.zip_column)
            name = row.get(self.name_column)
            if not zip_code or not name:
                continue
            areas[zip_code] = {"munc_zip_code": zip_code, "area_name_en": name}
        return list(areas.values())

    async def apply(self, store: TargetStore, batch: Sequence[Mapping[str, Any]]) -> int:
        rows = self.fold(batch)
        if not rows:
            return 0
        await store.upsert(self.target_table, rows, AREAS_KEY)
        logger.debug(f"Upserted {len(rows)} areas")
        return len(rows)


AGGREGATORS: Mapping[str, Aggregator] = {
    "contractor_projects": CompanyAggregator(
        CompanyType.CONTRACTOR, "contractor_license_no", "contractor_english"
    ),
    "consultant_projects": CompanyAggregator(
        CompanyType.CONSULTANT, "consultant_license_no", "consultant_english"
    ),
    "developers": CompanyAggregator(
        CompanyType.DEVELOPER, "developer_id", "developer_name_en", accumulate=False
    ),
    "land_registry": AreaAggregator(),
}


def get_aggregator(table: str) -> Aggregator | None:
    return AGGREGATORS.get(table)
