"""Declarative column definitions for every importable table.

The registry drives header auto-matching, required-column gating, type
coercion and which columns may carry Arabic names eligible for translation.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from permitdex.importing.errors import UnknownTableError

PERMITS_TABLE = "project_information"
SURROGATE_KEY = "id"


class ColumnType(str, Enum):
    """Semantic type a raw CSV value is coerced to."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class ColumnSpec:
    """One target column of an importable table."""

    name: str
    type: ColumnType = ColumnType.TEXT
    required: bool = False
    translatable: bool = False  # may hold Arabic names eligible for translation


@dataclass(frozen=True)
class SchemaDefinition:
    """Target table definition.

    ``conflict_key`` names the column(s) an upsert de-duplicates on. Tables
    keyed only by the surrogate ``id`` are append-only.
    """

    table: str
    display_name: str
    conflict_key: tuple[str, ...]
    columns: tuple[ColumnSpec, ...]

    def __post_init__(self) -> None:
        names = [column.name for column in self.columns]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate columns in schema '{self.table}': {duplicates}")
        if not self.conflict_key:
            raise ValueError(f"Schema '{self.table}' must declare a conflict key")

    @property
    def uses_upsert(self) -> bool:
        return self.conflict_key != (SURROGATE_KEY,)

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    @property
    def required_columns(self) -> list[ColumnSpec]:
        return [column for column in self.columns if column.required]

    @property
    def optional_columns(self) -> list[ColumnSpec]:
        return [column for column in self.columns if not column.required]

    @property
    def translatable_columns(self) -> list[ColumnSpec]:
        return [column for column in self.columns if column.translatable]

    def column(self, name: str) -> ColumnSpec:
        for column in self.columns:
            if column.name == name:
                return column
        raise KeyError(f"Table '{self.table}' has no column '{name}'")

    def has_column(self, name: str) -> bool:
        return any(column.name == name for column in self.columns)


def _schema(
    table: str, display_name: str, conflict_key: str, *columns: ColumnSpec
) -> SchemaDefinition:
    return SchemaDefinition(
        table=table,
        display_name=display_name,
        conflict_key=tuple(part.strip() for part in conflict_key.split(",")),
        columns=columns,
    )


def _text(name: str, required: bool = False, translatable: bool = False) -> ColumnSpec:
    return ColumnSpec(name, ColumnType.TEXT, required, translatable)


def _number(name: str, required: bool = False) -> ColumnSpec:
    return ColumnSpec(name, ColumnType.NUMBER, required)


def _date(name: str) -> ColumnSpec:
    return ColumnSpec(name, ColumnType.DATE)


def _boolean(name: str) -> ColumnSpec:
    return ColumnSpec(name, ColumnType.BOOLEAN)


def _company_projects(table: str, display_name: str, role: str, other: str) -> SchemaDefinition:
    return _schema(
        table,
        display_name,
        SURROGATE_KEY,
        _number(f"{role}_license_no"),
        _text(f"{role}_english"),
        _number("project_no"),
        _number("parcel_id", required=True),
        _text("project_type"),
        _text(f"{other}_english"),
        _text("building_type"),
        _text("community_name"),
        _number("building_count"),
        _date("first_building_permit_date"),
        _date("last_app_submission_date"),
        _text("project_status"),
        _date("project_closing_date"),
    )


_SCHEMAS: tuple[SchemaDefinition, ...] = (
    _schema(
        PERMITS_TABLE,
        "Project Information",
        "project_no",
        _number("project_no", required=True),
        _number("parcel_id", required=True),
        _text("consultant_english"),
        _text("contractor_english"),
        _number("consultant_license_no"),
        _number("contractor_license_no"),
        _text("project_status_english"),
        _date("project_creation_date"),
        _date("project_completion_date"),
        _date("permit_date"),
        _date("work_start_date"),
        _date("expected_completion_date"),
        _text("related_entity_name_en"),
        _text("applicanttype"),
    ),
    _schema(
        "land_registry",
        "Land Registry",
        "property_id",
        _number("property_id"),
        _number("parcel_id", required=True),
        _number("project_id"),
        _number("area_id"),
        _number("zone_id"),
        _text("area_name_en"),
        _number("land_number"),
        _number("land_sub_number"),
        _number("actual_area"),
        _text("property_type_en"),
        _text("property_sub_type_en"),
        _text("land_type_en"),
        _boolean("is_free_hold"),
        _boolean("is_registered"),
        _number("munc_zip_code"),
    ),
    _schema(
        "buildings",
        "Buildings",
        "property_id",
        _number("property_id"),
        _number("parcel_id", required=True),
        _number("project_id"),
        _text("area_name_en"),
        _number("land_number"),
        _text("building_number"),
        _number("floors"),
        _number("rooms"),
        _text("rooms_en"),
        _number("car_parks"),
        _number("built_up_area"),
        _number("actual_area"),
        _number("common_area"),
        _number("shops"),
        _number("flats"),
        _number("offices"),
        _number("elevators"),
        _number("swimming_pools"),
        _text("property_type_en"),
        _text("property_sub_type_en"),
        _text("master_project_en"),
        _text("project_name_en"),
        _text("land_type_en"),
        _boolean("is_free_hold"),
        _date("creation_date"),
    ),
    _schema(
        "projects",
        "Projects (RERA)",
        "project_id",
        _number("project_id", required=True),
        _number("project_number"),
        _text("project_name", translatable=True),
        _number("master_developer_id"),
        _number("developer_id"),
        _text("developer_name"),
        _text("master_developer_name"),
        _text("project_status"),
        _number("percent_completed"),
        _date("project_start_date"),
        _date("project_end_date"),
        _date("completion_date"),
        _text("area_name_en"),
        _text("master_project_en"),
        _text("zoning_authority_en"),
        _text("project_description_en"),
        _number("no_of_lands"),
        _number("no_of_buildings"),
        _number("no_of_villas"),
        _number("no_of_units"),
        _text("escrow_agent_name"),
    ),
    _schema(
        "developers",
        "Developers",
        "developer_id",
        _number("developer_id", required=True),
        _number("developer_number"),
        _text("developer_name_en"),
        _text("license_number"),
        _text("license_source_en"),
        _text("license_type_en"),
        _date("license_issue_date"),
        _date("license_expiry_date"),
        _text("legal_status_en"),
        _text("phone"),
        _text("fax"),
        _text("webpage"),
        _date("registration_date"),
    ),
    _company_projects("contractor_projects", "Contractor Projects", "contractor", "consultant"),
    _company_projects("consultant_projects", "Consultant Projects", "consultant", "contractor"),
    _schema(
        "areas",
        "Areas",
        "munc_zip_code",
        _number("munc_zip_code", required=True),
        _text("area_name_en", required=True),
    ),
    _schema(
        "companies",
        "Companies",
        "license_no,type",
        _number("license_no", required=True),
        _text("name_en", required=True),
        _text("type", required=True),
        _number("project_count"),
    ),
)

SCHEMAS: Mapping[str, SchemaDefinition] = {schema.table: schema for schema in _SCHEMAS}


def get_schema(table: str) -> SchemaDefinition:
    """Look up a schema by table name.

    Raises:
        UnknownTableError: If the table is not importable
    """
    try:
        return SCHEMAS[table]
    except KeyError:
        raise UnknownTableError(table, sorted(SCHEMAS)) from None


def list_schemas() -> list[SchemaDefinition]:
    """All importable schemas in registration order (for table pickers)."""
    return list(_SCHEMAS)


_SEPARATORS = re.compile(r"[_\s]")


def normalize_header(name: str) -> str:
    """Case- and separator-insensitive form used for header matching."""
    return _SEPARATORS.sub("", name.lower())


def auto_map_columns(headers: Iterable[str], schema: SchemaDefinition) -> dict[str, str]:
    """Match source headers to target columns by exact normalized name.

    Returns a ``target column -> source header`` mapping; columns without an
    exact match are left out. The first matching header wins.
    """
    headers = list(headers)
    mapping: dict[str, str] = {}
    for column in schema.columns:
        wanted = normalize_header(column.name)
        for header in headers:
            if header.lower() == column.name.lower() or normalize_header(header) == wanted:
                mapping[column.name] = header
                break
    return mapping
